"""Handles audio extraction from media files using ffmpeg."""

import ffmpeg
import os
import logging
import threading
from typing import List, Optional

from .exceptions import ExtractError
from .utils import ensure_dir_exists, remove_file, run_stream, stderr_text

logger = logging.getLogger(__name__)

class AudioExtractor:
    """Cuts time ranges out of a media file's audio track."""

    def __init__(self, ffmpeg_path: Optional[str] = None, timeout: Optional[float] = None):
        """
        Initializes the AudioExtractor.

        Args:
            ffmpeg_path: Optional path to the ffmpeg executable.
                         If None, assumes ffmpeg is in the system PATH.
            timeout: Seconds allowed for a single ffmpeg invocation.
        """
        self.ffmpeg_cmd = ffmpeg_path or 'ffmpeg'
        self.timeout = timeout
        logger.info(f"Using ffmpeg command: {self.ffmpeg_cmd}")

    def _extract_stream(self, source_path: str, start_sec: float, duration_sec: float, output_path: str):
        # -ss/-t are input options so ffmpeg seeks before decoding
        return (
            ffmpeg
            .input(source_path, ss=f"{start_sec:.3f}", t=f"{duration_sec:.3f}")
            .output(output_path, vn=None, acodec='copy', loglevel='error')
            .overwrite_output()
        )

    def build_extract_args(self, source_path: str, start_sec: float, duration_sec: float, output_path: str) -> List[str]:
        """
        Builds the ffmpeg argument vector for a stream-copy range extraction.

        The audio stream is copied as-is and any video stream is dropped.
        """
        return self._extract_stream(source_path, start_sec, duration_sec, output_path).compile(cmd=self.ffmpeg_cmd)

    def extract_range(
        self,
        source_path: str,
        start_sec: float,
        duration_sec: float,
        output_path: str,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        """
        Extracts [start_sec, start_sec + duration_sec) of the audio without re-encoding.

        Args:
            source_path: Path to the input audio/video file.
            start_sec: Offset of the range in the source timeline.
            duration_sec: Length of the range.
            output_path: Where to write the extracted audio. Its extension picks the container.
            cancel_event: Kills ffmpeg when set.

        Returns:
            output_path.

        Raises:
            FileNotFoundError: If the input file does not exist.
            ExtractError: If ffmpeg fails to extract the range.
            FileSystemError: If the output directory cannot be created/accessed.
            SubprocessTimeout: If ffmpeg runs past the timeout.
        """
        if not os.path.exists(source_path):
            raise FileNotFoundError(f"Input media file not found: {source_path}")
        ensure_dir_exists(os.path.dirname(os.path.abspath(output_path)))

        logger.debug(f"Extracting {duration_sec:.3f}s at {start_sec:.3f}s from {source_path} to {output_path}")
        stream = self._extract_stream(source_path, start_sec, duration_sec, output_path)
        try:
            run_stream(stream, cmd=self.ffmpeg_cmd, timeout=self.timeout, cancel_event=cancel_event)
        except ffmpeg.Error as e:
            stderr_output = stderr_text(e)
            logger.error(f"ffmpeg stderr: {stderr_output}")
            remove_file(output_path) # Attempt cleanup if extraction failed mid-way
            raise ExtractError(f"ffmpeg failed to extract {start_sec:.3f}s+{duration_sec:.3f}s from {source_path}: {stderr_output}") from e
        except OSError as e:
            remove_file(output_path)
            raise ExtractError(f"Could not run {self.ffmpeg_cmd}: {e}") from e
        except BaseException:
            remove_file(output_path)
            raise

        if not os.path.exists(output_path) or os.path.getsize(output_path) == 0:
            remove_file(output_path)
            raise ExtractError(f"ffmpeg produced no audio for range {start_sec:.3f}s+{duration_sec:.3f}s of {source_path}")
        return output_path
