"""Splits long media into overlapping audio segments for chunked transcription."""

import logging
import os
import threading
import uuid
from typing import List, Optional, Tuple

from .audio_extractor import AudioExtractor
from .exceptions import PipelineCancelled
from .media_probe import MediaProbe
from .models import AudioSegment
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)


def plan_windows(total_duration: float, segment_duration_sec: float, overlap_sec: float) -> List[Tuple[float, float]]:
    """
    Computes the (start, duration) of every segment.

    Starts advance by segment_duration_sec; each window reaches forward by
    overlap_sec more, clipped at the end of the media.

    >>> plan_windows(500, 240, 5)
    [(0, 245), (240, 245), (480, 20)]
    """
    if segment_duration_sec <= 0:
        raise ValueError(f"segment_duration_sec must be > 0, got {segment_duration_sec}")
    if overlap_sec < 0:
        raise ValueError(f"overlap_sec must be >= 0, got {overlap_sec}")

    windows = []
    index = 0
    start = 0
    while start < total_duration:
        windows.append((start, min(segment_duration_sec + overlap_sec, total_duration - start)))
        index += 1
        # Multiply rather than accumulate so starts stay exact multiples of the stride
        start = index * segment_duration_sec
    return windows


class AudioSegmenter:
    """Produces the ordered list of AudioSegment files for a source."""

    def __init__(self, probe: MediaProbe, extractor: AudioExtractor, temp_dir: str):
        self.probe = probe
        self.extractor = extractor
        self.temp_dir = temp_dir

    def _segment_path(self, prefix: str, index: int, ext: str) -> str:
        return os.path.join(self.temp_dir, f"{prefix}-{index:03d}{ext}")

    def segment(
        self,
        source_path: str,
        segment_duration_sec: float,
        overlap_sec: float,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[AudioSegment]:
        """
        Extracts every window of source_path into its own temporary file.

        Args:
            source_path: Audio or video file to split.
            segment_duration_sec: Stride between segment starts.
            overlap_sec: Extra seconds each segment shares with the next one.
            cancel_event: Aborts extraction when set.

        Returns:
            Segments in increasing index order. The caller owns the files and
            must release() them.

        Raises:
            ValueError: On non-positive segment duration or negative overlap.
            FileNotFoundError: If source_path does not exist.
            ProbeError: If the duration cannot be determined.
            ExtractError: If any window fails; no segment files are left behind.
            PipelineCancelled: If cancel_event is set; no segment files are left behind.
        """
        if segment_duration_sec <= 0:
            raise ValueError(f"segment_duration_sec must be > 0, got {segment_duration_sec}")
        if overlap_sec < 0:
            raise ValueError(f"overlap_sec must be >= 0, got {overlap_sec}")
        if not os.path.isfile(source_path):
            raise FileNotFoundError(f"Source media not found: {source_path}")

        total_duration = self.probe.probe_duration(source_path, cancel_event=cancel_event)
        windows = plan_windows(total_duration, segment_duration_sec, overlap_sec)
        logger.info(
            f"Splitting {source_path} ({total_duration:.2f}s) into {len(windows)} segments "
            f"of {segment_duration_sec}s + {overlap_sec}s overlap"
        )

        ensure_dir_exists(self.temp_dir)
        ext = os.path.splitext(source_path)[1] or '.mp3'
        prefix = f"chunk-{uuid.uuid4().hex[:12]}"

        segments: List[AudioSegment] = []
        try:
            for index, (start, duration) in enumerate(windows):
                if cancel_event is not None and cancel_event.is_set():
                    raise PipelineCancelled("Segmentation cancelled")
                path = self.extractor.extract_range(
                    source_path, start, duration, self._segment_path(prefix, index, ext), cancel_event=cancel_event
                )
                segments.append(AudioSegment(index=index, path=path, start_offset=start, requested_duration=duration))
                logger.debug(f"Segment {index}: [{start:.2f}, {start + duration:.2f})")
        except BaseException:
            logger.warning(f"Segmentation of {source_path} aborted; removing {len(segments)} extracted segment(s)")
            for seg in segments:
                seg.release()
            raise

        return segments
