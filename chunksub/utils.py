"""Utility functions for ChunkSub."""

import logging
import math
import os
import subprocess
import threading
import time
from typing import Optional, Sequence, Tuple

import ffmpeg

from .exceptions import FileSystemError, PipelineCancelled, SubprocessTimeout

logger = logging.getLogger(__name__)

# How often a running subprocess is checked for cancellation
_POLL_INTERVAL_SEC = 0.25

def ensure_dir_exists(dir_path: str) -> None:
    """
    Ensures that a directory exists. Creates it if it doesn't.

    Args:
        dir_path: The path to the directory.

    Raises:
        FileSystemError: If the directory cannot be created due to permissions
                         or if the path exists but is not a directory.
    """
    if not dir_path:
        raise ValueError("Directory path cannot be empty.")
    try:
        if not os.path.exists(dir_path):
            os.makedirs(dir_path)
            logger.info(f"Created directory: {dir_path}")
        elif not os.path.isdir(dir_path):
            raise FileSystemError(f"Path exists but is not a directory: {dir_path}")
    except OSError as e:
        logger.error(f"Error creating or accessing directory {dir_path}: {e}", exc_info=True)
        raise FileSystemError(f"Could not create or access directory {dir_path}: {e}") from e

def remove_file(file_path: Optional[str]) -> bool:
    """Deletes a file if it exists. Returns True when a file was removed."""
    if not file_path or not os.path.exists(file_path):
        return False
    try:
        os.remove(file_path)
        logger.debug(f"Removed temporary file: {file_path}")
        return True
    except OSError as e:
        logger.warning(f"Could not remove temporary file {file_path}: {e}")
        return False

def round_half_up(value: float) -> int:
    """Rounds .5 away from zero for positive values, unlike the built-in round()."""
    return int(math.floor(value + 0.5))

def _wait(
    process: subprocess.Popen,
    args: Sequence[str],
    timeout: Optional[float],
    cancel_event: Optional[threading.Event],
) -> Tuple[bytes, bytes]:
    """Collects the output of process, killing it on timeout, cancellation or error."""
    deadline = time.monotonic() + timeout if timeout is not None else None
    try:
        while True:
            wait_for = _POLL_INTERVAL_SEC
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise SubprocessTimeout(args, timeout)
                wait_for = min(wait_for, remaining)
            try:
                stdout, stderr = process.communicate(timeout=wait_for)
                break
            except subprocess.TimeoutExpired:
                if cancel_event is not None and cancel_event.is_set():
                    raise PipelineCancelled(f"Cancelled while running {args[0]}")
    except BaseException:
        process.kill()
        process.communicate()
        raise

    if process.returncode != 0:
        raise ffmpeg.Error(os.path.basename(args[0]), stdout, stderr)
    return stdout, stderr

def run_command(
    args: Sequence[str],
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Tuple[bytes, bytes]:
    """
    Runs an external tool from an argument vector (never through a shell).

    Args:
        args: Program and arguments, e.g. an ffprobe command line.
        timeout: Seconds before the process is killed. None waits forever.
        cancel_event: When set while the process runs, the process is killed.

    Returns:
        (stdout, stderr) of the finished process.

    Raises:
        ffmpeg.Error: If the process exits with a non-zero status.
        SubprocessTimeout: If the timeout expires.
        PipelineCancelled: If cancel_event is set.
    """
    args = [str(arg) for arg in args]
    logger.debug(f"Running: {args}")
    process = subprocess.Popen(args, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
    return _wait(process, args, timeout, cancel_event)

def run_stream(
    stream,
    cmd: str = 'ffmpeg',
    timeout: Optional[float] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Tuple[bytes, bytes]:
    """Starts an ffmpeg-python output stream with run_async; same timeout and error handling as run_command."""
    args = stream.compile(cmd=cmd)
    logger.debug(f"Running: {args}")
    process = stream.run_async(cmd=cmd, pipe_stdout=True, pipe_stderr=True)
    return _wait(process, args, timeout, cancel_event)

def stderr_text(error: ffmpeg.Error) -> str:
    """Decodes the stderr captured on an ffmpeg.Error."""
    return error.stderr.decode('utf-8', errors='replace').strip() if error.stderr else "No stderr output"
