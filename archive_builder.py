# Filename: archive_builder.py
import glob
import os
import shutil
import zipfile
from pathlib import Path

from collector_log import log_progress, log_warning
from snapshot_producers import run_producers

DEFAULT_ARCHIVE_NAME = "aks_logs.zip"
SNAPSHOT_SUBDIR = "collect"
COPY_CHUNK_SIZE = 1024 * 1024


class BuildResult:
    """What build_archive_with_report produced."""

    def __init__(self, archive_path, snapshot_outcomes):
        self.archive_path = Path(archive_path)
        self.snapshot_outcomes = snapshot_outcomes
        self.snapshot_size_bytes = 0
        self.added_files = []
        self.skipped_files = []
        self.tripped_by = None
        self.size_bytes = 0

    @property
    def truncated(self):
        return self.tripped_by is not None

    def __repr__(self):
        return (f"BuildResult(archive_path={str(self.archive_path)!r}, added={len(self.added_files)}, "
                f"tripped_by={self.tripped_by!r}, size_bytes={self.size_bytes})")


def archive_name_for(path):
    """Entry name zip would store for an on-disk path: drive and leading separators dropped."""
    name = os.path.normpath(os.path.splitdrive(path)[1])
    name = name.lstrip(os.sep)
    if os.altsep:
        name = name.lstrip(os.altsep)
    return name.replace(os.sep, "/")


def archive_members(archive_path):
    with zipfile.ZipFile(archive_path, "r") as zf:
        return zf.namelist()


def _append_file(archive_path, file_path, arcname):
    with zipfile.ZipFile(archive_path, "a", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False) as zf:
        zf.write(file_path, arcname)


def _remove_entry(archive_path, arcname):
    """Rewrites the archive without arcname, then swaps it in place of the original."""
    archive_path = Path(archive_path)
    tmp_path = archive_path.with_name(archive_path.name + ".rewrite")
    try:
        with zipfile.ZipFile(archive_path, "r") as zin, \
                zipfile.ZipFile(tmp_path, "w", compression=zipfile.ZIP_DEFLATED) as zout:
            for info in zin.infolist():
                if info.filename == arcname:
                    continue
                clone = zipfile.ZipInfo(info.filename, date_time=info.date_time)
                clone.compress_type = info.compress_type
                clone.external_attr = info.external_attr
                clone.create_system = info.create_system
                clone.file_size = info.file_size
                force_zip64 = info.file_size > zipfile.ZIP64_LIMIT
                with zin.open(info) as src, zout.open(clone, "w", force_zip64=force_zip64) as dst:
                    shutil.copyfileobj(src, dst, COPY_CHUNK_SIZE)
        os.replace(tmp_path, archive_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()


def _iter_candidates(candidate_globs):
    """Expanded candidate files in priority order; each pattern's matches sorted."""
    for pattern in candidate_globs:
        for path in sorted(glob.glob(pattern)):
            if os.path.isfile(path):
                yield path


def _add_snapshot_outputs(archive_path, work_dir, collect_dir):
    added = 0
    with zipfile.ZipFile(archive_path, "a", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False) as zf:
        for foldername, subfolders, filenames in os.walk(collect_dir):
            subfolders.sort()
            for filename in sorted(filenames):
                file_path = os.path.join(foldername, filename)
                arcname = os.path.relpath(file_path, work_dir).replace(os.sep, "/")
                try:
                    zf.write(file_path, arcname)
                    added += 1
                except (OSError, ValueError) as e:
                    log_warning(f"Could not add snapshot output {arcname}: {e}")
    return added


def build_archive_with_report(snapshot_producers, candidate_globs, max_size_bytes, work_dir,
                              archive_name=DEFAULT_ARCHIVE_NAME) -> BuildResult:
    """
    Builds a zip of snapshot outputs plus as many candidate files as fit.

    Every snapshot producer runs and everything it wrote is archived without a
    size check. Candidate files are then appended one at a time in glob order;
    after each append the archive size is measured, and the first append that
    brings it to max_size_bytes or beyond is removed again and ends the loop.
    The candidates kept are therefore always a prefix of the expanded list.
    """
    if isinstance(max_size_bytes, bool) or not isinstance(max_size_bytes, int) or max_size_bytes <= 0:
        raise ValueError(f"max_size_bytes must be a positive integer, got {max_size_bytes!r}")

    work_dir = Path(work_dir)
    collect_dir = work_dir / SNAPSHOT_SUBDIR
    archive_path = work_dir / archive_name
    collect_dir.mkdir(parents=True, exist_ok=True)
    zipfile.ZipFile(archive_path, "w").close()

    log_progress("Collecting system information...")
    outcomes = run_producers(snapshot_producers, collect_dir)
    result = BuildResult(archive_path, outcomes)

    snapshot_count = _add_snapshot_outputs(archive_path, work_dir, collect_dir)
    result.snapshot_size_bytes = os.path.getsize(archive_path)
    log_progress(f"Included {snapshot_count} collected file(s) in zip ({result.snapshot_size_bytes} bytes).")

    # Each file is added on its own so the size can be checked after every
    # addition; slower than one bulk write, but it tells us exactly which file
    # crossed the limit.
    log_progress("Adding log files to zip archive...")
    present = set(archive_members(archive_path))
    for file_path in _iter_candidates(candidate_globs):
        arcname = archive_name_for(file_path)
        if arcname in present:
            continue
        try:
            _append_file(archive_path, file_path, arcname)
        except (OSError, ValueError) as e:
            log_warning(f"Could not add {file_path}: {e}")
            result.skipped_files.append(file_path)
            if arcname in archive_members(archive_path):
                _remove_entry(archive_path, arcname)
            continue

        size = os.path.getsize(archive_path)
        if size >= max_size_bytes:
            log_warning(f"ZIP file size {size} >= {max_size_bytes}; removing last log file and terminating adding more files.")
            _remove_entry(archive_path, arcname)
            result.tripped_by = file_path
            break
        present.add(arcname)
        result.added_files.append(file_path)

    result.size_bytes = os.path.getsize(archive_path)
    log_progress(f"Added {len(result.added_files)} log file(s); archive is {result.size_bytes} bytes.")
    return result


def build_archive(snapshot_producers, candidate_globs, max_size_bytes, work_dir,
                  archive_name=DEFAULT_ARCHIVE_NAME) -> Path:
    return build_archive_with_report(snapshot_producers, candidate_globs, max_size_bytes, work_dir,
                                     archive_name=archive_name).archive_path
