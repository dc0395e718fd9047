"""Reads media duration and video dimensions with ffprobe."""

import json
import math
import logging
import os
import threading
from typing import Any, Dict, Optional

import ffmpeg

from .exceptions import ProbeError
from .utils import run_command, stderr_text

logger = logging.getLogger(__name__)

def _seconds(value: Any) -> Optional[float]:
    """ffprobe durations are strings; 'N/A' and other junk mean unknown."""
    try:
        seconds = float(value)
    except (TypeError, ValueError):
        return None
    return seconds if math.isfinite(seconds) else None

class MediaProbe:
    """Thin wrapper over ffprobe's JSON output."""

    def __init__(self, ffprobe_path: Optional[str] = None, timeout: Optional[float] = None):
        """
        Args:
            ffprobe_path: Optional path to the ffprobe executable.
                          If None, assumes ffprobe is in the system PATH.
            timeout: Seconds allowed per ffprobe invocation.
        """
        self.ffprobe_cmd = ffprobe_path or 'ffprobe'
        self.timeout = timeout

    def _probe(self, path: str, cancel_event: Optional[threading.Event] = None) -> Dict[str, Any]:
        if not os.path.exists(path):
            raise FileNotFoundError(f"Media file not found: {path}")
        # Same arguments ffmpeg.probe() uses, run through our timeout-aware runner
        args = [self.ffprobe_cmd, '-v', 'error', '-show_format', '-show_streams', '-of', 'json', path]
        try:
            stdout, _ = run_command(args, timeout=self.timeout, cancel_event=cancel_event)
        except ffmpeg.Error as e:
            raise ProbeError(f"ffprobe failed for {path}: {stderr_text(e)}") from e
        except OSError as e:
            raise ProbeError(f"Could not run {self.ffprobe_cmd}: {e}") from e
        try:
            return json.loads(stdout.decode('utf-8'))
        except ValueError as e:
            raise ProbeError(f"ffprobe returned invalid JSON for {path}: {e}") from e

    def probe_duration(self, path: str, cancel_event: Optional[threading.Event] = None) -> float:
        """
        Returns the media duration in seconds.

        Raises:
            ProbeError: If ffprobe fails or reports no usable duration.
        """
        info = self._probe(path, cancel_event)
        duration = _seconds((info.get('format') or {}).get('duration'))
        if duration is None:
            # Some containers only report duration per stream
            durations = [d for d in (_seconds(s.get('duration')) for s in info.get('streams', [])) if d is not None]
            duration = max(durations) if durations else None
        if duration is None:
            raise ProbeError(f"Could not determine duration of {path}")
        if duration <= 0:
            raise ProbeError(f"Media {path} reports non-positive duration {duration}")
        logger.info(f"Probed duration of {path}: {duration:.2f}s")
        return duration

    def probe_video_height(self, path: str, cancel_event: Optional[threading.Event] = None) -> int:
        """Returns the height of the first video stream in pixels."""
        info = self._probe(path, cancel_event)
        video_stream = next((s for s in info.get('streams', []) if s.get('codec_type') == 'video'), None)
        if video_stream is None or not video_stream.get('height'):
            raise ProbeError(f"No video stream with a height found in {path}")
        height = int(video_stream['height'])
        logger.info(f"Probed video height of {path}: {height}px")
        return height
