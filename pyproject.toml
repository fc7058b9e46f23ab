[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "mediaorganizer"
version = "0.1.0"
description = "Organize photos, videos and audio into date-based folders, with duplicate detection and resumable runs"
requires-python = ">=3.10"
keywords = ["media", "photos", "organizer", "exif", "duplicates", "sorting"]
classifiers = [
    "Development Status :: 4 - Beta",
    "Environment :: Console",
    "Intended Audience :: End Users/Desktop",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Multimedia :: Graphics",
    "Topic :: System :: Archiving",
    "Topic :: Utilities",
]
dependencies = [
    "pillow",
    "pyyaml",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[project.scripts]
mediaorganizer = "mediaorganizer.cli:main"

[tool.hatch.build.targets.wheel]
packages = ["mediaorganizer"]

[tool.pytest.ini_options]
testpaths = ["tests"]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.mypy]
python_version = "3.10"
warn_unused_ignores = true
