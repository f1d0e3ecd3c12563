# Filename: scratch_area.py
import os
import re
import shutil
import signal
import stat
import tempfile
from contextlib import contextmanager
from pathlib import Path

from collector_log import log_progress

SCRATCH_PREFIX = "tmp."
SCRATCH_NAME_PATTERN = re.compile(r"^tmp\.[A-Za-z0-9_]+$")
TERMINATING_SIGNALS = ("SIGHUP", "SIGINT", "SIGPIPE", "SIGQUIT", "SIGTERM")


class ScratchAreaUnavailable(Exception):
    """The temporary working directory could not be created."""


class UnsafeCleanupRefused(Exception):
    """The scratch path does not look like a directory we created; it was not removed."""


class CollectionTerminated(BaseException):
    """A terminating signal arrived. Derives from BaseException so broad handlers let it through."""

    def __init__(self, signum):
        super().__init__(f"terminated by signal {signum}")
        self.signum = signum


class ScratchArea:
    """Handle for an exclusively owned temporary directory."""

    def __init__(self, path, temp_root, debug=False, identity=None):
        self.path = Path(path)
        self.temp_root = Path(temp_root)
        self.debug = debug
        # (st_dev, st_ino) of the directory mkdtemp() created; None for handles not made by acquire.
        self.identity = identity
        self.released = False

    def __repr__(self):
        return f"ScratchArea({str(self.path)!r})"

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        release_scratch_area(self)
        return False


def looks_like_scratch_dir(path, temp_root):
    """True only for a direct child of temp_root named like a mkdtemp() result."""
    path = Path(os.path.abspath(path))
    temp_root = Path(os.path.abspath(temp_root))
    if path == Path(path.anchor) or path == temp_root:
        return False
    return path.parent == temp_root and SCRATCH_NAME_PATTERN.match(path.name) is not None


def _directory_identity(path):
    st = os.lstat(path)
    if not stat.S_ISDIR(st.st_mode):
        return None
    return (st.st_dev, st.st_ino)


def acquire_scratch_area(temp_root=None, debug=False) -> ScratchArea:
    temp_root = os.path.abspath(temp_root or tempfile.gettempdir())
    try:
        workdir = tempfile.mkdtemp(prefix=SCRATCH_PREFIX, dir=temp_root)
        identity = _directory_identity(workdir)
    except OSError as e:
        raise ScratchAreaUnavailable(f"Could not create temporary working directory under {temp_root}: {e}") from e
    if identity is None or not looks_like_scratch_dir(workdir, temp_root):
        raise ScratchAreaUnavailable(f"Could not create temporary working directory (got {workdir!r}).")
    log_progress(f"Created temporary directory: {workdir}")
    return ScratchArea(workdir, temp_root, debug=debug, identity=identity)


def release_scratch_area(handle: ScratchArea):
    """
    Removes the scratch directory unless debug mode is on. Safe to call twice.

    Checked first, in every mode: the path must match the mkdtemp naming
    pattern and still be the very directory acquire_scratch_area created
    (same device and inode). Otherwise UnsafeCleanupRefused is raised and
    nothing is deleted.
    """
    if handle.released:
        return
    refusal = (f"WORKDIR ({handle.path}) doesn't look like a proper mktemp directory; "
               "not removing it for safety reasons!")
    if not looks_like_scratch_dir(handle.path, handle.temp_root) or handle.identity is None:
        raise UnsafeCleanupRefused(refusal)
    try:
        identity = _directory_identity(handle.path)
    except FileNotFoundError:
        handle.released = True
        return
    if identity != handle.identity:
        raise UnsafeCleanupRefused(refusal)
    if handle.debug:
        log_progress(f"DEBUG active; leaving {handle.path} behind.")
    else:
        log_progress(f"Cleaning up {handle.path}...")
        shutil.rmtree(handle.path, ignore_errors=True)
    handle.released = True


@contextmanager
def terminate_on_signals(signal_names=TERMINATING_SIGNALS):
    """Turns terminating signals into CollectionTerminated for the duration of the block."""
    def _raise_terminated(signum, frame):
        raise CollectionTerminated(signum)

    previous = {}
    for name in signal_names:
        signum = getattr(signal, name, None)
        if signum is None:
            continue
        previous[signum] = signal.signal(signum, _raise_terminated)
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)
