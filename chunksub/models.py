"""Data models for ChunkSub."""

import json
import logging
import os
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .exceptions import FileSystemError
from .utils import remove_file, round_half_up

logger = logging.getLogger(__name__)

# Reference frame height the ASS style block is laid out for
ASS_REFERENCE_HEIGHT = 1080

@dataclass(frozen=True)
class TranscriptLine:
    """One spoken/subtitled utterance on the timeline, in seconds."""
    start: float
    end: float
    text: str

    def __post_init__(self):
        if self.start < 0:
            raise ValueError(f"Line start must be >= 0, got {self.start}")
        if self.end <= self.start:
            raise ValueError(f"Line end ({self.end}) must be after start ({self.start})")
        if not isinstance(self.text, str) or not self.text.strip():
            raise ValueError("Line text must be a non-empty string")

    def shifted(self, offset: float) -> "TranscriptLine":
        """Returns a copy moved by offset seconds."""
        return replace(self, start=self.start + offset, end=self.end + offset)

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end, "text": self.text}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TranscriptLine":
        return cls(start=float(data["start"]), end=float(data["end"]), text=str(data["text"]))


@dataclass
class AudioSegment:
    """
    A temporary audio file holding one slice of the source timeline.

    The segment owns its file until release() is called.
    """
    index: int
    path: str
    start_offset: float
    requested_duration: float

    @property
    def end_offset(self) -> float:
        return self.start_offset + self.requested_duration

    def read_bytes(self) -> bytes:
        with open(self.path, 'rb') as f:
            return f.read()

    def release(self) -> None:
        """Deletes the backing file. Safe to call more than once."""
        remove_file(self.path)


class LanguageMode(str, Enum):
    """Which text survives into the rendered subtitles."""
    JAPANESE = "japanese"
    ENGLISH = "english"
    BOTH = "both"

    @classmethod
    def parse(cls, value: str) -> "LanguageMode":
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            choices = ", ".join(mode.value for mode in cls)
            raise ValueError(f"Unknown language mode '{value}'. Choose one of: {choices}") from None


class SubtitleFormat(str, Enum):
    SRT = "srt"
    ASS = "ass"


@dataclass
class StyleOptions:
    """
    Subtitle sizing policy shared by the ASS renderer and the video burner.

    Attributes:
        font_size: Explicit font size in pixels. Derived from video_height when None.
        video_height: Height of the target video in pixels.
        margin_ratio: Bottom margin as a fraction of the video height.
        font_height_ratio: Font size as a fraction of the video height.
        min_font_size: Lower bound for the derived font size.
        font_name: Font family passed to the renderer.
    """
    font_size: Optional[int] = None
    video_height: int = ASS_REFERENCE_HEIGHT
    margin_ratio: float = 0.05
    font_height_ratio: float = 0.018
    min_font_size: int = 16
    font_name: str = "Arial"

    @property
    def resolved_font_size(self) -> int:
        if self.font_size:
            return int(self.font_size)
        return max(self.min_font_size, round_half_up(self.video_height * self.font_height_ratio))

    @property
    def margin_v(self) -> int:
        """Bottom margin in video pixels, used when burning."""
        return round_half_up(self.video_height * self.margin_ratio)

    @property
    def ass_margin_v(self) -> int:
        """Bottom margin in the ASS style block, normalised to the 1080-line reference frame."""
        implied_height = ASS_REFERENCE_HEIGHT * self.resolved_font_size / (ASS_REFERENCE_HEIGHT * self.font_height_ratio)
        return round_half_up(implied_height * self.margin_ratio)

    def burn_directives(self) -> str:
        """Builds the force_style string for ffmpeg's subtitles filter."""
        return (
            f"FontName={self.font_name},Fontsize={self.resolved_font_size},"
            "PrimaryColour=&HFFFFFF&,OutlineColour=&H66000000&,Outline=8,Shadow=0,"
            "BackColour=&H66000000&,BorderStyle=3,Alignment=2,"
            f"MarginV={self.margin_v}"
        )


@dataclass
class GenerationResult:
    """Paths produced by one SubtitleGenerator run."""
    transcript_path: str
    subtitle_paths: Dict[str, str] = field(default_factory=dict)
    video_path: Optional[str] = None
    line_count: int = 0


def validate_transcript(lines: Sequence[Any]) -> bool:
    """True if lines is a non-empty sequence of well-formed TranscriptLine objects."""
    if not lines:
        return False
    return all(
        isinstance(line, TranscriptLine)
        and line.start >= 0
        and line.end > line.start
        and line.text.strip()
        for line in lines
    )

def load_transcript(path: str) -> List[TranscriptLine]:
    """
    Loads a transcript saved as a JSON array of {start, end, text} objects.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the JSON is not a list of valid lines.
    """
    if not os.path.isfile(path):
        raise FileNotFoundError(f"Transcript file not found: {path}")
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if isinstance(data, dict) and "transcript" in data:
        data = data["transcript"]
    if not isinstance(data, list):
        raise ValueError(f"Transcript file {path} must contain a JSON array of lines.")
    lines = [TranscriptLine.from_dict(item) for item in data]
    logger.info(f"Loaded {len(lines)} transcript lines from {path}")
    return lines

def save_transcript(lines: Sequence[TranscriptLine], path: str) -> None:
    """Writes lines as a UTF-8 JSON array (non-ASCII text kept readable)."""
    try:
        with open(path, 'w', encoding='utf-8') as f:
            json.dump([line.to_dict() for line in lines], f, ensure_ascii=False, indent=2)
    except OSError as e:
        raise FileSystemError(f"Could not write transcript to {path}: {e}") from e
    logger.info(f"Saved {len(lines)} transcript lines to {path}")
