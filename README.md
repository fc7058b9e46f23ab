# mediaorganizer

Sort a directory of photos, videos and audio files into a date-based folder
tree. Each file is renamed after its capture time, exact duplicates are
detected by SHA-256 hash and placed in a separate duplicates folder, and
every step is recorded in a SQLite journal so an interrupted run can be
resumed.

## Installation

```
pip install .
```

## Usage

```
mediaorganizer --source ~/Pictures/inbox --dry-run
```

Start with `--dry-run` to see what would happen; nothing is moved or copied
in that mode. Log output goes to standard error. While a scan runs, a line
`Scanned: N/M | Organized: K` is printed to standard output every five
seconds. The command exits with status 1 if the configuration is invalid or
the source directory does not exist, and on SIGINT/SIGTERM (after closing
the journal).

### Capture time and dimensions

For images, the capture time is taken from the EXIF `DateTimeOriginal` or
`DateTime` tag when present, and the larger of width and height is read for
JPEG, PNG, GIF and TIFF files. Otherwise, and for all video and audio files,
the file's modification time is used.

Recognised extensions (case-insensitive):

- images: jpg, jpeg, png, gif, bmp, webp, tiff, tif, nef, arw, cr2, cr3, dng, heic, raf
- video: mp4, avi, mov, mkv, wmv, flv, webm, m4v, mpeg, mpg, 3gp, asf, m2v, vob, m2t, mts
- audio: mp3, wav, aac, ogg, flac, m4a, wma, amr

Files starting with `._` and the journal's own database files are ignored.

### Organization schemes

`extension_first` (default), one destination per media type:

```
<type-dest>/<ext>/YYYY/YYYY-MM/YYYY-MM-DD/YYYYMMDD-HHMMSS_<dim> (<name>).<ext>
```

```
mediaorganizer -s ./inbox --image-dest ./photos --video-dest ./videos --audio-dest ./audio
```

`date_first`, one destination for everything (set with `--dest`; without
it, the per-type destinations are used as the base):

```
<dest>/YYYY/YYYY-MM/YYYY-MM-DD/<ext>/YYYYMMDD-HHMMSS_<dim>_<name>.<ext>
```

```
mediaorganizer -s ./inbox --scheme date_first --dest ./library
```

Naming details:

- `_<dim>` appears only when a dimension is known; in `date_first` only for images.
- The original name (all extensions stripped) is left out if it already
  starts with the timestamp, or when `--no-original-name` is given.
- The extension is lower-cased.
- When several files share the same timestamp, media type and extension,
  later ones get a `_002`, `_003`, … suffix before the extension.
- An entry in `extension_destinations` sends that extension to its own
  directory as `<dir>/YYYY/YYYY-MM/YYYY-MM-DD/`, whatever the scheme.

### Options

| Option | Meaning |
| --- | --- |
| `-s`, `--source` | Directory to scan (required) |
| `--dest` | Single destination, used with `date_first` |
| `--image-dest`, `--video-dest`, `--audio-dest` | Per-type destinations (defaults `./output/images`, `./output/videos`, `./output/audio`) |
| `--scheme` | `extension_first` or `date_first` |
| `-d`, `--dry-run` | Only report what would be done |
| `-c`, `--copy` | Copy instead of move |
| `--delete-empty-dirs` | After moving, remove folders in the source that are empty |
| `-j`, `--jobs` | Number of concurrent workers (default 4) |
| `--space-replace [CHAR]` | Replace spaces in original names (`_` if given without a value) |
| `--no-original-name` | Keep only timestamp and dimension in new names |
| `--duplicates-dir` | Name or absolute path for duplicates (default `duplicates`) |
| `--db` | Journal database path (default `<source>/.mediaorganizer.db`) |
| `--fresh` | Delete the existing journal and start over |
| `-l`, `--log-file` | Also append log output to this file |
| `-v`, `--verbose` | Debug logging |
| `--config` | Read settings from a `.yaml`, `.yml` or `.json` file |

### Configuration file

Recognised keys (case-insensitive):

| Key | Option |
| --- | --- |
| `source` | `--source` |
| `destination` | `--dest` |
| `destinations` | mapping of `image`/`video`/`audio` to directories |
| `extension_destinations` | mapping of extension (no dot) to directory |
| `organization_scheme` | `--scheme` |
| `space_replacement` | `--space-replace` |
| `no_original_name` | `--no-original-name` |
| `duplicates_dir` | `--duplicates-dir` |
| `dry_run` | `--dry-run` |
| `verbose` | `--verbose` |
| `log_file` | `--log-file` |
| `concurrent_jobs` | `--jobs` |
| `copy_files` | `--copy` |
| `delete_empty_dirs` | `--delete-empty-dirs` |
| `db_path` | `--db` |
| `fresh` | `--fresh` |

```yaml
source: /home/me/inbox
organization_scheme: date_first
destination: /home/me/library
duplicates_dir: duplicates
concurrent_jobs: 8
copy_files: true
extension_destinations:
  nef: /home/me/raw
```

Options given on the command line override the file.

### Resuming

If the journal database already exists (and `--fresh` is not given), the
run resumes: source files recorded as completed or dry-run are skipped,
failed records are reset and retried, and records that have a destination
but were not yet moved are finished. If such a file's source is gone but
its destination exists, it is marked completed. Because dry-run records
count as done, run with `--fresh` (or a different `--db`) after a dry run
to actually organize the same files.

### Duplicates

Files are hashed only when another journaled file has the same size. When
a hash matches another file (from this run, an earlier run, or one already
present in a destination folder), the file is placed in the duplicates
folder: a relative `--duplicates-dir` is placed inside the type or
extension destination, an absolute one is used as is.

## Library use

```python
from mediaorganizer.journal import Journal
from mediaorganizer.scanner import MediaScanner

with Journal("/tmp/inbox/.mediaorganizer.db") as journal:
    scanner = MediaScanner(
        "/tmp/inbox", "/tmp/library", {}, {}, "date_first", "", False,
        "duplicates", True, False, 4, False, journal, False,
    )
    result = scanner.scan()
    print(result.organized_files, result.duplicate_count)
```

Other modules:

- `mediaorganizer.mediatypes`: `MediaType`, `MediaFile` (`extension()`,
  `destination_dir()`, `new_filename()`) and `determine_media_type()`.
- `mediaorganizer.metadata`: `extract_file_metadata()`, `compute_file_hash()`.
- `mediaorganizer.journal`: the SQLite `Journal`, `FileRecord`, `FileStatus`.
- `mediaorganizer.fileops`: `move_file()`, `copy_file()`,
  `remove_empty_directories()`.
- `mediaorganizer.progress`: `ProgressReporter` and `format_duration()`.

## Limitations

Video and audio files are dated by their modification time only; creation
dates stored inside video or audio containers are not read.