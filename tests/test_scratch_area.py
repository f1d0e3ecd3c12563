import importlib.util
import os
import signal
import time
from pathlib import Path

import pytest

ROOT_DIR = Path(__file__).resolve().parents[1]

spec_sa = importlib.util.spec_from_file_location("scratch_area", ROOT_DIR / "scratch_area.py")
scratch_area = importlib.util.module_from_spec(spec_sa)
spec_sa.loader.exec_module(scratch_area)


def test_acquire_creates_mktemp_style_directory(tmp_path: Path):
    area = scratch_area.acquire_scratch_area(tmp_path)
    assert area.path.is_dir()
    assert area.path.parent == tmp_path
    assert scratch_area.SCRATCH_NAME_PATTERN.match(area.path.name)
    scratch_area.release_scratch_area(area)


def test_release_removes_directory_and_is_idempotent(tmp_path: Path):
    area = scratch_area.acquire_scratch_area(tmp_path)
    (area.path / "collect").mkdir()
    (area.path / "collect" / "lscpu.txt").write_text("x")
    scratch_area.release_scratch_area(area)
    assert not area.path.exists()
    scratch_area.release_scratch_area(area)
    assert area.released is True


def test_debug_leaves_directory_behind(tmp_path: Path):
    area = scratch_area.acquire_scratch_area(tmp_path, debug=True)
    scratch_area.release_scratch_area(area)
    assert area.path.is_dir()


def test_context_manager_cleans_up_on_exception(tmp_path: Path):
    with pytest.raises(RuntimeError):
        with scratch_area.acquire_scratch_area(tmp_path) as area:
            (area.path / "aks_logs.zip").write_bytes(b"PK")
            raise RuntimeError("boom")
    assert not area.path.exists()


def test_release_refuses_path_outside_pattern(tmp_path: Path):
    important = tmp_path / "important"
    important.mkdir()
    (important / "keep.txt").write_text("do not delete")
    handle = scratch_area.ScratchArea(important, tmp_path)

    with pytest.raises(scratch_area.UnsafeCleanupRefused):
        scratch_area.release_scratch_area(handle)
    assert (important / "keep.txt").exists()
    assert handle.released is False


def test_release_refuses_even_in_debug_mode(tmp_path: Path):
    handle = scratch_area.ScratchArea(tmp_path / "var", tmp_path, debug=True)
    with pytest.raises(scratch_area.UnsafeCleanupRefused):
        scratch_area.release_scratch_area(handle)


@pytest.mark.parametrize("relative", [".", "tmp.abc/nested", "tmp.", "tmp.a b", "tmpXabc"])
def test_release_refuses_crafted_handles(tmp_path: Path, relative):
    target = tmp_path / relative
    target.mkdir(parents=True, exist_ok=True)
    handle = scratch_area.ScratchArea(target, tmp_path)
    with pytest.raises(scratch_area.UnsafeCleanupRefused):
        scratch_area.release_scratch_area(handle)
    assert target.exists()


def test_release_refuses_filesystem_root(tmp_path: Path):
    handle = scratch_area.ScratchArea("/", "/")
    with pytest.raises(scratch_area.UnsafeCleanupRefused):
        scratch_area.release_scratch_area(handle)


def test_looks_like_scratch_dir():
    assert scratch_area.looks_like_scratch_dir("/tmp/tmp.Ab3_xY9q", "/tmp")
    assert not scratch_area.looks_like_scratch_dir("/tmp", "/tmp")
    assert not scratch_area.looks_like_scratch_dir("/", "/")
    assert not scratch_area.looks_like_scratch_dir("/var/tmp.abc", "/tmp")


def test_acquire_fails_when_temp_root_missing(tmp_path: Path):
    with pytest.raises(scratch_area.ScratchAreaUnavailable):
        scratch_area.acquire_scratch_area(tmp_path / "no" / "such" / "dir")


def test_terminate_on_signals_raises_and_restores_handler(tmp_path: Path):
    before = signal.getsignal(signal.SIGTERM)
    with pytest.raises(scratch_area.CollectionTerminated) as excinfo:
        with scratch_area.terminate_on_signals():
            with scratch_area.acquire_scratch_area(tmp_path) as area:
                os.kill(os.getpid(), signal.SIGTERM)
                time.sleep(5)
    assert excinfo.value.signum == signal.SIGTERM
    assert not area.path.exists()
    assert signal.getsignal(signal.SIGTERM) == before


def test_collection_terminated_is_not_an_exception():
    assert not issubclass(scratch_area.CollectionTerminated, Exception)


def test_release_refuses_well_named_directory_it_did_not_create(tmp_path: Path):
    data = tmp_path / "tmp.data"
    data.mkdir()
    (data / "etcd.db").write_text("precious")
    handle = scratch_area.ScratchArea(data, tmp_path)

    with pytest.raises(scratch_area.UnsafeCleanupRefused):
        scratch_area.release_scratch_area(handle)
    assert (data / "etcd.db").read_text() == "precious"


def test_release_refuses_handle_pointed_at_another_directory(tmp_path: Path):
    area = scratch_area.acquire_scratch_area(tmp_path)
    other = tmp_path / "tmp.other"
    other.mkdir()
    real_path, area.path = area.path, other

    with pytest.raises(scratch_area.UnsafeCleanupRefused):
        scratch_area.release_scratch_area(area)
    assert other.is_dir()
    area.path = real_path
    scratch_area.release_scratch_area(area)
    assert not real_path.exists()


def test_release_refuses_directory_swapped_for_symlink(tmp_path: Path):
    area = scratch_area.acquire_scratch_area(tmp_path)
    target = tmp_path / "kubelet"
    target.mkdir()
    (target / "config.yaml").write_text("x")
    area.path.rmdir()
    area.path.symlink_to(target, target_is_directory=True)

    with pytest.raises(scratch_area.UnsafeCleanupRefused):
        scratch_area.release_scratch_area(area)
    assert (target / "config.yaml").exists()


def test_release_of_already_removed_directory_is_a_no_op(tmp_path: Path):
    area = scratch_area.acquire_scratch_area(tmp_path)
    area.path.rmdir()
    scratch_area.release_scratch_area(area)
    assert area.released is True


def test_acquire_records_directory_identity(tmp_path: Path):
    area = scratch_area.acquire_scratch_area(tmp_path)
    st = os.stat(area.path)
    assert area.identity == (st.st_dev, st.st_ino)
    scratch_area.release_scratch_area(area)
