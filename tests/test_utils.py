"""Tests for the subprocess runner and small helpers."""

import os
import sys
import threading

import ffmpeg
import pytest

from chunksub.exceptions import FileSystemError, PipelineCancelled, SubprocessTimeout
from chunksub.utils import ensure_dir_exists, remove_file, round_half_up, run_command


class TestRunCommand:

    def test_returns_output(self):
        stdout, _ = run_command([sys.executable, "-c", "print('hello')"], timeout=30)
        assert stdout.strip() == b"hello"

    def test_arguments_not_interpreted_by_shell(self, tmp_path):
        marker = tmp_path / "pwned"
        arg = f"x; touch {marker}"
        stdout, _ = run_command([sys.executable, "-c", "import sys; print(sys.argv[1])", arg], timeout=30)
        assert stdout.decode().strip() == arg
        assert not marker.exists()

    def test_non_zero_exit(self):
        with pytest.raises(ffmpeg.Error) as excinfo:
            run_command([sys.executable, "-c", "import sys; sys.stderr.write('boom'); sys.exit(3)"], timeout=30)
        assert b"boom" in excinfo.value.stderr

    def test_timeout(self):
        with pytest.raises(SubprocessTimeout) as excinfo:
            run_command([sys.executable, "-c", "import time; time.sleep(30)"], timeout=0.5)
        assert excinfo.value.timeout == 0.5

    def test_cancel(self):
        cancel = threading.Event()
        timer = threading.Timer(0.3, cancel.set)
        timer.start()
        try:
            with pytest.raises(PipelineCancelled):
                run_command([sys.executable, "-c", "import time; time.sleep(30)"], timeout=20, cancel_event=cancel)
        finally:
            timer.cancel()

    def test_missing_program(self):
        with pytest.raises(OSError):
            run_command(["definitely-not-a-real-binary-chunksub"])


class TestHelpers:

    def test_round_half_up(self):
        assert round_half_up(2.5) == 3
        assert round_half_up(3.5) == 4
        assert round_half_up(19.44) == 19
        assert round_half_up(52.78) == 53

    def test_ensure_dir_exists(self, tmp_path):
        target = tmp_path / "a" / "b"
        ensure_dir_exists(str(target))
        assert target.is_dir()
        ensure_dir_exists(str(target))

    def test_ensure_dir_exists_on_file(self, tmp_path):
        path = tmp_path / "file"
        path.write_text("x")
        with pytest.raises(FileSystemError):
            ensure_dir_exists(str(path))

    def test_remove_file(self, tmp_path):
        path = tmp_path / "f"
        path.write_text("x")
        assert remove_file(str(path))
        assert not remove_file(str(path))
        assert not remove_file(None)
        assert not os.path.exists(path)
