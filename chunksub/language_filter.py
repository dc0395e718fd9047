"""Per-language text policy applied to a copy of the transcript before rendering."""

import logging
import re
from typing import List, Sequence, Union

from .models import LanguageMode, TranscriptLine

logger = logging.getLogger(__name__)

ENGLISH_PLACEHOLDER = TranscriptLine(start=0, end=5, text="English subtitles not available - original audio only")

# Hiragana, Katakana, CJK Unified Ideographs
_CJK = "\u3040-\u309F\u30A0-\u30FF\u4E00-\u9FAF"
_CJK_CHAR_RE = re.compile(f"[{_CJK}]")
_LATIN_PREFIX_RE = re.compile(f"^[A-Za-z0-9\\s,.!?\"'-]+(?=[{_CJK}])")
_QUOTED_LATIN_RE = re.compile(f"\"[^\"{_CJK}]+\"")


def contains_cjk(text: str) -> bool:
    return bool(_CJK_CHAR_RE.search(text))


def clean_japanese_text(text: str) -> str:
    """
    Strips source-language residue from a translated line.

    Removes a leading Latin run directly followed by Japanese and any quoted
    span without Japanese. Returns "" when no Japanese character is left, so
    a line that is only "2024" is dropped too.
    """
    cleaned = _LATIN_PREFIX_RE.sub('', text)
    cleaned = _QUOTED_LATIN_RE.sub('', cleaned)
    if not contains_cjk(cleaned):
        return ''
    return cleaned.strip()


def filter_for_language(lines: Sequence[TranscriptLine], mode: Union[LanguageMode, str]) -> List[TranscriptLine]:
    """Returns the lines to render for mode. The input sequence is never modified."""
    mode = LanguageMode.parse(mode) if not isinstance(mode, LanguageMode) else mode

    if mode is LanguageMode.ENGLISH:
        # Only the translated text is kept, so there is no English to show
        return [ENGLISH_PLACEHOLDER]

    if mode is LanguageMode.JAPANESE:
        kept = []
        for line in lines:
            text = clean_japanese_text(line.text)
            if text:
                kept.append(TranscriptLine(start=line.start, end=line.end, text=text))
        dropped = len(lines) - len(kept)
        if dropped:
            logger.info(f"Japanese filter dropped {dropped} of {len(lines)} lines without Japanese text")
        return kept

    return list(lines)
