"""Handles rendering transcripts into subtitle markup (SRT and ASS)."""

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Sequence, Union

from .exceptions import EmptyRenderError, FormattingError, MalformedTimecode
from .language_filter import filter_for_language
from .models import LanguageMode, StyleOptions, SubtitleFormat, TranscriptLine
from .timecode import format_ass_time, format_srt_time, parse_srt_time
from .utils import ensure_dir_exists

logger = logging.getLogger(__name__)

_SRT_TIMING_RE = re.compile(r"^\s*(\S+)\s*-->\s*(\S+)")

class SubtitleFormatter(ABC):
    """Abstract base class for subtitle formatters."""

    extension: str = ""

    @abstractmethod
    def format_subtitles(self, lines: Sequence[TranscriptLine], style: StyleOptions) -> str:
        """
        Formats transcript lines into subtitle markup.

        Args:
            lines: Lines to render, already filtered for the language mode.
            style: Sizing options. Formats without styling ignore them.

        Returns:
            The complete file contents.
        """
        pass


class SRTFormatter(SubtitleFormatter):
    """Formats subtitles into the SRT (SubRip Text) format."""

    extension = "srt"

    def format_subtitles(self, lines: Sequence[TranscriptLine], style: Optional[StyleOptions] = None) -> str:
        blocks = [
            f"{index}\n{format_srt_time(line.start)} --> {format_srt_time(line.end)}\n{line.text}\n"
            for index, line in enumerate(lines, start=1)
        ]
        return "\n".join(blocks)


class ASSFormatter(SubtitleFormatter):
    """
    Formats subtitles into the ASS (Advanced SubStation Alpha) format.

    One Default style is declared; every line becomes a Dialogue event.
    Dialogue text is written as-is, commas included, since Text is the last
    field of the event line.
    """

    extension = "ass"

    STYLE_FORMAT = (
        "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, BackColour, "
        "Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, BorderStyle, Outline, "
        "Shadow, Alignment, MarginL, MarginR, MarginV, Encoding"
    )
    EVENT_FORMAT = "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"

    def build_header(self, style: StyleOptions) -> str:
        # BorderStyle=3 draws an opaque box behind the text
        style_line = (
            f"Style: Default,{style.font_name},{style.resolved_font_size},"
            "&H00FFFFFF,&H000000FF,&H99000000,&H99000000,0,0,0,0,100,100,0,0,3,2,0,2,10,10,"
            f"{style.ass_margin_v},1"
        )
        return "\n".join([
            "[Script Info]",
            "Title: Subtitle",
            "ScriptType: v4.00+",
            "",
            "[V4+ Styles]",
            self.STYLE_FORMAT,
            style_line,
            "",
            "[Events]",
            self.EVENT_FORMAT,
            "",
        ])

    def format_subtitles(self, lines: Sequence[TranscriptLine], style: Optional[StyleOptions] = None) -> str:
        style = style or StyleOptions()
        events = "\n".join(
            f"Dialogue: 0,{format_ass_time(line.start)},{format_ass_time(line.end)},Default,,0,0,0,,{line.text}"
            for line in lines
        )
        return self.build_header(style) + events


FORMATTERS: Dict[SubtitleFormat, SubtitleFormatter] = {
    SubtitleFormat.SRT: SRTFormatter(),
    SubtitleFormat.ASS: ASSFormatter(),
}


class SubtitleRenderer:
    """Applies the language policy to a transcript and renders it with a formatter."""

    def __init__(self, formatters: Optional[Dict[SubtitleFormat, SubtitleFormatter]] = None):
        self.formatters = dict(formatters or FORMATTERS)

    def get_formatter(self, fmt: Union[SubtitleFormat, str]) -> SubtitleFormatter:
        try:
            return self.formatters[SubtitleFormat(str(getattr(fmt, 'value', fmt)).lower())]
        except (ValueError, KeyError):
            raise FormattingError(f"Unsupported subtitle format '{fmt}'.") from None

    def render(
        self,
        lines: Sequence[TranscriptLine],
        fmt: Union[SubtitleFormat, str],
        mode: Union[LanguageMode, str],
        style: Optional[StyleOptions] = None,
    ) -> str:
        """
        Renders lines as subtitle markup for the given language mode.

        Args:
            lines: The canonical transcript. It is not modified.
            fmt: Target format, 'srt' or 'ass'.
            mode: Language mode: 'japanese', 'english' or 'both'.
            style: Sizing options for styled formats. Defaults to StyleOptions().

        Returns:
            The subtitle file contents.

        Raises:
            EmptyRenderError: If no line survives language filtering.
            FormattingError: If the format is not supported.
        """
        formatter = self.get_formatter(fmt)
        filtered = filter_for_language(lines, mode)
        if not filtered:
            raise EmptyRenderError(f"No subtitle lines left to render in '{getattr(mode, 'value', mode)}' mode.")
        logger.debug(f"Rendering {len(filtered)} lines as {formatter.extension.upper()}")
        return formatter.format_subtitles(filtered, style or StyleOptions())

    def write(
        self,
        lines: Sequence[TranscriptLine],
        output_path: str,
        fmt: Union[SubtitleFormat, str],
        mode: Union[LanguageMode, str],
        style: Optional[StyleOptions] = None,
    ) -> str:
        """
        Renders lines and writes them to output_path as UTF-8.

        Raises:
            EmptyRenderError: If no line survives language filtering.
            FormattingError: If the file cannot be written.
        """
        content = self.render(lines, fmt, mode, style)
        output_dir = os.path.dirname(os.path.abspath(output_path))
        ensure_dir_exists(output_dir)
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(content)
        except IOError as e:
            logger.error(f"Failed to write subtitle file to {output_path}: {e}", exc_info=True)
            raise FormattingError(f"Could not write subtitle file: {e}") from e
        logger.info(f"Wrote subtitles to {output_path}")
        return output_path


def parse_srt(content: str) -> List[TranscriptLine]:
    """
    Parses SRT text (e.g. a file the user edited) back into transcript lines.

    Sequence numbers are ignored; blocks are read in file order. Blocks with
    no text are skipped.

    Raises:
        MalformedTimecode: If a timing line has a bad time code.
        FormattingError: If a block has no timing line.
    """
    lines: List[TranscriptLine] = []
    blocks = re.split(r"\n\s*\n", content.replace('\r\n', '\n').lstrip('\ufeff').strip())
    for block in blocks:
        if not block.strip():
            continue
        rows = block.split('\n')
        timing_index = next((i for i, row in enumerate(rows) if '-->' in row), None)
        if timing_index is None:
            raise FormattingError(f"SRT block has no timing line: {block[:40]!r}")
        match = _SRT_TIMING_RE.match(rows[timing_index])
        if not match:
            raise MalformedTimecode(f"Bad SRT timing line: {rows[timing_index]!r}")
        start, end = parse_srt_time(match.group(1)), parse_srt_time(match.group(2))
        text = "\n".join(rows[timing_index + 1:]).strip()
        if not text:
            logger.warning(f"Skipping SRT block without text at {match.group(1)}")
            continue
        try:
            lines.append(TranscriptLine(start=start, end=end, text=text))
        except ValueError as e:
            raise FormattingError(f"Invalid SRT block at {match.group(1)}: {e}") from e
    return lines
