import logging
import shutil

import pytest

from paraingest.workspace import TempWorkspace, safe_rmtree, temp_workspace


def test_workspace_exists_only_inside_block(work_root):
    with TempWorkspace("job-", work_root) as path:
        assert path.is_dir()
        assert path.parent == work_root
        assert path.name.startswith("job-")
        (path / "nested").mkdir()
        (path / "nested" / "page_1.png").write_bytes(b"x")
    assert not path.exists()
    assert list(work_root.iterdir()) == []


def test_workspace_removed_when_block_raises(work_root):
    with pytest.raises(RuntimeError, match="boom"):
        with temp_workspace("job-", work_root) as path:
            (path / "file.txt").write_text("data")
            raise RuntimeError("boom")
    assert not path.exists()


def test_workspace_tolerates_directory_already_removed(work_root):
    with TempWorkspace.acquire("job-", work_root) as path:
        shutil.rmtree(path)
    assert list(work_root.iterdir()) == []


def test_safe_rmtree_on_missing_path(tmp_path):
    assert safe_rmtree(tmp_path / "never-created") is True


def _flaky_rmtree(monkeypatch, failures):
    """Make shutil.rmtree raise PermissionError for the first `failures` calls."""
    real_rmtree = shutil.rmtree
    calls = []

    def rmtree(path, *args, **kwargs):
        calls.append(path)
        if len(calls) <= failures:
            raise PermissionError(13, "Permission denied", str(path))
        return real_rmtree(path, *args, **kwargs)

    monkeypatch.setattr(shutil, "rmtree", rmtree)
    return calls


def test_safe_rmtree_retries_after_permission_error(tmp_path, monkeypatch, caplog):
    target = tmp_path / "job"
    (target / "nested").mkdir(parents=True)
    calls = _flaky_rmtree(monkeypatch, failures=1)
    with caplog.at_level(logging.WARNING, logger="paraingest"):
        assert safe_rmtree(target) is True
    assert len(calls) == 2
    assert not target.exists()
    assert "Permission denied" in caplog.text


def test_safe_rmtree_gives_up_without_raising(tmp_path, monkeypatch):
    target = tmp_path / "job"
    target.mkdir()
    _flaky_rmtree(monkeypatch, failures=99)
    assert safe_rmtree(target) is False
    assert target.exists()


def test_failed_removal_is_not_reported_as_removed(work_root, monkeypatch, caplog):
    _flaky_rmtree(monkeypatch, failures=99)
    with caplog.at_level(logging.DEBUG, logger="paraingest"):
        with TempWorkspace("job-", work_root) as path:
            pass
    assert path.exists()
    assert "Removed workspace" not in caplog.text
    assert "still present after cleanup" in caplog.text


def test_cleanup_failure_does_not_mask_block_error(work_root, monkeypatch):
    _flaky_rmtree(monkeypatch, failures=99)
    with pytest.raises(RuntimeError, match="boom"):
        with TempWorkspace("job-", work_root):
            raise RuntimeError("boom")
