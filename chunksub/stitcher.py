"""Transcribes overlapping segments and stitches them into one global transcript."""

import logging
import mimetypes
import threading
import time
from concurrent.futures import FIRST_COMPLETED, Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from tqdm import tqdm

from .exceptions import ChunkTranscriptionError, PipelineCancelled, TranscriptionTimeout
from .models import AudioSegment, TranscriptLine
from .segmenter import AudioSegmenter

logger = logging.getLogger(__name__)

# A chunk line is a duplicate unless it ends more than this far past the last accepted end
DEDUP_TOLERANCE_SEC = 0.1
DEFAULT_SEGMENT_DURATION_SEC = 240
DEFAULT_OVERLAP_SEC = 5
DEFAULT_MIME_TYPE = 'audio/mpeg'
_WAIT_INTERVAL_SEC = 0.25

TranscribeFn = Callable[[bytes, str], Sequence[Any]]


@dataclass(frozen=True)
class StitchState:
    """Accumulator of the merge fold: accepted lines and the largest accepted end."""
    lines: Tuple[TranscriptLine, ...] = ()
    last_end: Optional[float] = None


def merge_chunk(state: StitchState, chunk_lines: Iterable[TranscriptLine]) -> StitchState:
    """
    Appends a chunk's (already offset) lines to the accumulated transcript.

    A line is accepted only if it ends more than DEDUP_TOLERANCE_SEC after the
    last accepted end, so words re-transcribed in the overlap window are not
    repeated. Accepted lines keep the order they arrived in.
    """
    chunk_lines = list(chunk_lines)
    if state.last_end is None:
        accepted = tuple(chunk_lines)
    else:
        threshold = state.last_end + DEDUP_TOLERANCE_SEC
        accepted = tuple(line for line in chunk_lines if line.end > threshold)
    if not accepted:
        return state
    ends = [line.end for line in accepted]
    if state.last_end is not None:
        ends.append(state.last_end)
    return StitchState(lines=state.lines + accepted, last_end=max(ends))


def guess_mime_type(path: str) -> str:
    mime_type, _ = mimetypes.guess_type(path)
    return mime_type or DEFAULT_MIME_TYPE


def _coerce_line(item: Any) -> TranscriptLine:
    if isinstance(item, TranscriptLine):
        return item
    if isinstance(item, dict):
        return TranscriptLine.from_dict(item)
    raise TypeError(f"Transcription returned {type(item).__name__}, expected TranscriptLine")


class TranscriptStitcher:
    """
    Drives segmentation and per-chunk transcription, then merges the chunks.

    Chunks may be transcribed by up to max_workers threads at once, but they
    are always merged in index order.
    """

    def __init__(
        self,
        segmenter: AudioSegmenter,
        max_workers: int = 1,
        transcription_timeout: Optional[float] = None,
        clock_tolerance_sec: Optional[float] = 5.0,
        show_progress: bool = False,
    ):
        """
        Args:
            segmenter: Produces the temporary segment files.
            max_workers: Maximum transcription calls in flight.
            transcription_timeout: Seconds allowed per transcription call. None disables it.
            clock_tolerance_sec: How far past its own audio length a chunk's last
                                 timestamp may reach. None disables the check.
            show_progress: Display a tqdm progress bar over chunks.
        """
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.segmenter = segmenter
        self.max_workers = max_workers
        self.transcription_timeout = transcription_timeout
        self.clock_tolerance_sec = clock_tolerance_sec
        self.show_progress = show_progress

    def stitch(
        self,
        source_path: str,
        transcribe_fn: TranscribeFn,
        segment_duration_sec: float = DEFAULT_SEGMENT_DURATION_SEC,
        overlap_sec: float = DEFAULT_OVERLAP_SEC,
        mime_type: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> List[TranscriptLine]:
        """
        Produces the canonical transcript of source_path.

        Args:
            source_path: Audio or video file to transcribe.
            transcribe_fn: Called as transcribe_fn(audio_bytes, mime_type) for each
                           chunk; returns lines timed relative to the chunk start.
            segment_duration_sec: Stride between chunks; also the offset applied
                                  per chunk index.
            overlap_sec: Seconds each chunk shares with the next.
            mime_type: MIME type passed to transcribe_fn. Guessed from the file name if None.
            cancel_event: Aborts the job when set.

        Returns:
            The deduplicated transcript on the source timeline.

        Raises:
            ProbeError, ExtractError: From segmentation.
            ChunkTranscriptionError: If any chunk fails; carries chunk_index.
            TranscriptionTimeout: If a chunk exceeds transcription_timeout.
            PipelineCancelled: If cancel_event is set.
        """
        mime_type = mime_type or guess_mime_type(source_path)
        segments = self.segmenter.segment(source_path, segment_duration_sec, overlap_sec, cancel_event=cancel_event)
        logger.info(f"Transcribing {len(segments)} chunks ({mime_type}, {self.max_workers} worker(s))")

        started = time.time()
        try:
            state = self._transcribe_and_merge(segments, transcribe_fn, mime_type, segment_duration_sec, cancel_event)
        finally:
            for segment in segments:
                segment.release()

        logger.info(f"Stitched {len(state.lines)} lines from {len(segments)} chunks in {time.time() - started:.2f}s")
        return list(state.lines)

    def _transcribe_segment(self, segment: AudioSegment, transcribe_fn: TranscribeFn, mime_type: str) -> List[TranscriptLine]:
        """Runs on a worker thread. The segment file is released as soon as the call returns."""
        try:
            audio_bytes = segment.read_bytes()
            logger.debug(f"Chunk {segment.index}: sending {len(audio_bytes)} bytes")
            lines = [_coerce_line(item) for item in (transcribe_fn(audio_bytes, mime_type) or [])]
        except ChunkTranscriptionError:
            raise
        except Exception as e:
            raise ChunkTranscriptionError(segment.index, f"Transcription failed for chunk {segment.index}: {e}") from e
        finally:
            segment.release()
        logger.debug(f"Chunk {segment.index}: {len(lines)} lines")
        return lines

    def _check_chunk_clock(self, segment: AudioSegment, lines: Sequence[TranscriptLine]) -> None:
        if self.clock_tolerance_sec is None or not lines:
            return
        latest = max(line.end for line in lines)
        limit = segment.requested_duration + self.clock_tolerance_sec
        if latest > limit:
            raise ChunkTranscriptionError(
                segment.index,
                f"Chunk {segment.index} reports a timestamp at {latest:.2f}s, past its "
                f"{segment.requested_duration:.2f}s of audio (tolerance {self.clock_tolerance_sec}s)",
            )

    def _transcribe_and_merge(
        self,
        segments: List[AudioSegment],
        transcribe_fn: TranscribeFn,
        mime_type: str,
        segment_duration_sec: float,
        cancel_event: Optional[threading.Event],
    ) -> StitchState:
        state = StitchState()
        in_flight: Dict[Future, Tuple[AudioSegment, Optional[float]]] = {}
        completed: Dict[int, List[TranscriptLine]] = {}
        next_submit = 0
        next_merge = 0

        executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="chunksub-transcribe")
        progress = tqdm(total=len(segments), unit="chunk", desc="Transcribing", disable=not self.show_progress)
        try:
            while next_merge < len(segments):
                # Never more futures than workers, so each submitted call starts immediately
                while next_submit < len(segments) and len(in_flight) < self.max_workers:
                    segment = segments[next_submit]
                    deadline = time.monotonic() + self.transcription_timeout if self.transcription_timeout else None
                    future = executor.submit(self._transcribe_segment, segment, transcribe_fn, mime_type)
                    in_flight[future] = (segment, deadline)
                    next_submit += 1

                done, _ = wait(list(in_flight), timeout=_WAIT_INTERVAL_SEC, return_when=FIRST_COMPLETED)
                for future in done:
                    segment, _ = in_flight.pop(future)
                    completed[segment.index] = future.result()

                if cancel_event is not None and cancel_event.is_set():
                    raise PipelineCancelled("Transcription cancelled")

                now = time.monotonic()
                for segment, deadline in in_flight.values():
                    if deadline is not None and now > deadline:
                        raise TranscriptionTimeout(segment.index, self.transcription_timeout)

                # Merge the contiguous run of finished chunks
                while next_merge in completed:
                    segment = segments[next_merge]
                    lines = completed.pop(next_merge)
                    self._check_chunk_clock(segment, lines)
                    offset = segment.index * segment_duration_sec
                    before = len(state.lines)
                    state = merge_chunk(state, (line.shifted(offset) for line in lines))
                    logger.info(
                        f"Chunk {segment.index + 1}/{len(segments)}: kept {len(state.lines) - before} "
                        f"of {len(lines)} lines"
                    )
                    progress.update(1)
                    next_merge += 1
        finally:
            progress.close()
            executor.shutdown(wait=False, cancel_futures=True)
        return state
