import json
import logging
import os

import pytest

from mediaorganizer.config import (
    Config,
    ConfigError,
    OrganizationScheme,
    build_parser,
    is_valid_scheme,
    load_config,
    setup_logging,
)


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    package_logger = logging.getLogger("mediaorganizer")
    for handler in list(package_logger.handlers):
        package_logger.removeHandler(handler)
        handler.close()
    package_logger.setLevel(logging.NOTSET)


@pytest.fixture
def source(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    src = tmp_path / "src"
    src.mkdir()
    return src


@pytest.mark.parametrize(
    "scheme, expected",
    [
        ("extension_first", True),
        ("date_first", True),
        ("", False),
        ("random", False),
        ("date-first", False),
        ("EXTENSION_FIRST", False),
        ("Extension_First", False),
    ],
)
def test_is_valid_scheme(scheme, expected):
    assert is_valid_scheme(scheme) is expected


def test_scheme_values_are_all_valid():
    values = [scheme.value for scheme in OrganizationScheme]
    assert values == ["extension_first", "date_first"]
    assert all(is_valid_scheme(value) for value in values)


def test_missing_source_raises(source):
    with pytest.raises(ConfigError, match="source directory is required"):
        load_config([])


def test_invalid_scheme_raises(source):
    with pytest.raises(ConfigError, match="invalid organization scheme: bogus"):
        load_config(["-s", str(source), "--scheme", "bogus"])


def test_defaults(source):
    cfg = load_config(["--source", "src"])
    cwd = os.getcwd()
    assert cfg.source_dir == os.path.join(cwd, "src")
    assert cfg.db_path == os.path.join(cwd, "src", ".mediaorganizer.db")
    assert cfg.dest_dirs == {
        "image": os.path.join(cwd, "output", "images"),
        "video": os.path.join(cwd, "output", "videos"),
        "audio": os.path.join(cwd, "output", "audio"),
    }
    assert cfg.organization_scheme is OrganizationScheme.EXTENSION_FIRST
    assert cfg.concurrent_jobs == 4
    assert cfg.duplicates_dir == "duplicates"
    assert cfg.destination == ""
    assert cfg.space_replacement == ""
    assert cfg.dry_run is False
    assert cfg.copy_files is False


def test_flags_are_applied(source):
    cfg = load_config(
        [
            "-s", "src", "--dest", "out", "--scheme", "date_first", "-d", "-c",
            "-j", "8", "--db", "journal.db", "--fresh", "--delete-empty-dirs",
            "--duplicates-dir", "dups", "--image-dest", "pics",
        ]
    )
    cwd = os.getcwd()
    assert cfg.destination == os.path.join(cwd, "out")
    assert cfg.organization_scheme is OrganizationScheme.DATE_FIRST
    assert cfg.dry_run is True
    assert cfg.copy_files is True
    assert cfg.concurrent_jobs == 8
    assert cfg.db_path == os.path.join(cwd, "journal.db")
    assert cfg.fresh is True
    assert cfg.delete_empty_dirs is True
    assert cfg.duplicates_dir == "dups"
    assert cfg.dest_dirs["image"] == os.path.join(cwd, "pics")


def test_space_replace_without_value_uses_underscore(source):
    cfg = load_config(["-s", "src", "--space-replace"])
    assert cfg.space_replacement == "_"


def test_space_replace_with_value(source):
    cfg = load_config(["-s", "src", "--space-replace=-"])
    assert cfg.space_replacement == "-"


def test_yaml_config_file(source, tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text(
        "source: src\n"
        "organization_scheme: date_first\n"
        "destination: unified\n"
        "concurrent_jobs: 2\n"
        "dry_run: true\n"
        "destinations:\n"
        "  image: photos\n"
        "extension_destinations:\n"
        "  nef: raw\n"
    )
    cfg = load_config(["--config", str(config_path)])
    cwd = os.getcwd()
    assert cfg.source_dir == os.path.join(cwd, "src")
    assert cfg.organization_scheme is OrganizationScheme.DATE_FIRST
    assert cfg.destination == os.path.join(cwd, "unified")
    assert cfg.concurrent_jobs == 2
    assert cfg.dry_run is True
    assert cfg.dest_dirs["image"] == os.path.join(cwd, "photos")
    assert cfg.dest_dirs["video"] == os.path.join(cwd, "output", "videos")
    assert cfg.extension_dirs == {"nef": "raw"}


def test_flags_override_config_file(source, tmp_path):
    config_path = tmp_path / "config.json"
    config_path.write_text(
        json.dumps({"source": "elsewhere", "concurrent_jobs": 2, "dry_run": True})
    )
    cfg = load_config(["--config", str(config_path), "-s", "src", "-j", "6"])
    assert cfg.source_dir == os.path.join(os.getcwd(), "src")
    assert cfg.concurrent_jobs == 6
    assert cfg.dry_run is True


def test_config_file_overrides_space_replace_flag(source, tmp_path):
    config_path = tmp_path / "config.yml"
    config_path.write_text("space_replacement: '+'\n")
    cfg = load_config(["--config", str(config_path), "-s", "src", "--space-replace"])
    assert cfg.space_replacement == "+"


def test_missing_config_file_raises(source, tmp_path):
    with pytest.raises(ConfigError, match="error reading config file"):
        load_config(["--config", str(tmp_path / "absent.yaml"), "-s", "src"])


def test_unsupported_config_type_raises(source, tmp_path):
    config_path = tmp_path / "config.ini"
    config_path.write_text("[x]\n")
    with pytest.raises(ConfigError, match="unsupported config type"):
        load_config(["--config", str(config_path), "-s", "src"])


def test_bad_value_type_in_config_file_raises(source, tmp_path):
    config_path = tmp_path / "config.yaml"
    config_path.write_text("concurrent_jobs: many\n")
    with pytest.raises(ConfigError, match="concurrent_jobs"):
        load_config(["--config", str(config_path), "-s", "src"])


def test_verbose_sets_debug_level(source):
    cfg = load_config(["-s", "src", "-v"])
    assert cfg.verbose is True
    assert logging.getLogger("mediaorganizer").getEffectiveLevel() == logging.DEBUG


def test_non_verbose_sets_info_level(source):
    cfg = load_config(["-s", "src"])
    assert cfg.verbose is False
    assert logging.getLogger("mediaorganizer").getEffectiveLevel() == logging.INFO


def test_log_file_receives_messages(tmp_path):
    log_path = tmp_path / "run.log"
    setup_logging(Config(source_dir=str(tmp_path), log_file=str(log_path)))
    logging.getLogger("mediaorganizer.scanner").info("hello from scan")
    for handler in logging.getLogger("mediaorganizer").handlers:
        handler.flush()
    text = log_path.read_text()
    assert "Logging to file" in text
    assert "hello from scan" in text


def test_setup_logging_does_not_stack_handlers(tmp_path):
    log_path = tmp_path / "run.log"
    cfg = Config(source_dir=str(tmp_path), log_file=str(log_path))
    setup_logging(cfg)
    setup_logging(cfg)
    logging.getLogger("mediaorganizer.scanner").info("single message")
    for handler in logging.getLogger("mediaorganizer").handlers:
        handler.flush()
    text = log_path.read_text()
    assert text.count("single message") == 1


def test_parser_leaves_unset_options_none():
    args = build_parser().parse_args([])
    assert args.dry_run is None
    assert args.jobs is None
    assert args.space_replace is None