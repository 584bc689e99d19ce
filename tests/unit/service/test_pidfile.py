"""
Unit tests for PidFile.

Tests cover:
- Writing the current pid and removing the file
- remove() leaves a file it did not write untouched
- Stale detection via psutil
- Write failures are tolerated
"""

import os

import psutil
import pytest

from zerotier_one.service.pidfile import PidFile


@pytest.mark.unit
def test_write_and_remove(tmp_path):
    pid_file = PidFile(tmp_path / "service.pid")
    assert pid_file.write()
    assert (tmp_path / "service.pid").read_text() == str(os.getpid())
    assert pid_file.read() == os.getpid()

    pid_file.remove()
    assert not (tmp_path / "service.pid").exists()


@pytest.mark.unit
def test_remove_missing_file_is_harmless(tmp_path):
    PidFile(tmp_path / "service.pid").remove()


@pytest.mark.unit
def test_remove_leaves_foreign_file(tmp_path):
    path = tmp_path / "service.pid"
    path.write_text("4321")

    PidFile(path).remove()

    assert path.read_text() == "4321"


@pytest.mark.unit
def test_unparsable_pid_reads_as_none(tmp_path):
    path = tmp_path / "service.pid"
    path.write_text("not a pid")
    pid_file = PidFile(path)
    assert pid_file.read() is None
    assert pid_file.is_stale()


@pytest.mark.unit
def test_live_pid_is_not_stale(tmp_path):
    path = tmp_path / "service.pid"
    path.write_text(str(os.getpid()))
    assert not PidFile(path).is_stale()


@pytest.mark.unit
def test_dead_pid_is_stale(tmp_path, monkeypatch):
    path = tmp_path / "service.pid"
    path.write_text("424242")
    monkeypatch.setattr(psutil, "pid_exists", lambda pid: False)
    assert PidFile(path).is_stale()


@pytest.mark.unit
def test_existing_live_pid_is_overwritten_with_warning(tmp_path, caplog):
    path = tmp_path / "service.pid"
    parent = os.getppid()
    path.write_text(str(parent))

    with caplog.at_level("WARNING"):
        assert PidFile(path).write()

    assert path.read_text() == str(os.getpid())
    assert str(parent) in caplog.text


@pytest.mark.unit
def test_write_failure_is_tolerated(tmp_path):
    pid_file = PidFile(tmp_path / "missing-dir" / "service.pid")
    assert not pid_file.write()
    pid_file.remove()


@pytest.mark.unit
def test_existing_dead_pid_is_replaced_quietly(tmp_path, monkeypatch, caplog):
    path = tmp_path / "service.pid"
    path.write_text("424242")
    monkeypatch.setattr(psutil, "pid_exists", lambda pid: False)

    with caplog.at_level("INFO"):
        assert PidFile(path).write()

    assert path.read_text() == str(os.getpid())
    assert "stale PID file for PID 424242" in caplog.text
    assert not [r for r in caplog.records if r.levelname == "WARNING"]
