"""Gemini client that transcribes a chunk and translates it into Japanese in one call."""

import logging
import os
import re
from typing import List, Optional

import google.generativeai as genai

from .exceptions import ConfigurationError, TranscriptionError
from .models import TranscriptLine
from .transcriber import Transcriber

logger = logging.getLogger(__name__)

DEFAULT_GEMINI_MODEL = "gemini-2.0-flash"
# Used when a timestamped line is the last one, or the next line has no timestamp
DEFAULT_LINE_DURATION_SEC = 3

JAPANESE_TRANSCRIBE_PROMPT = """次の音声を文字起こしして、タイムスタンプ付きで日本語に翻訳してください。
フォーマット:
[MM:SS] 日本語訳

重要: 英語の原文は含めず、日本語訳のみを出力してください。
音声に含まれる全ての内容を漏れなく文字起こしし、自然な日本語に翻訳してください。
各発言や重要な内容の切れ目でタイムスタンプを付けてください。"""

_TIMESTAMPED_LINE_RE = re.compile(r"\[(\d{2}):(\d{2})\]\s*(.*)")


def _timestamp_seconds(match: "re.Match") -> int:
    return int(match.group(1)) * 60 + int(match.group(2))


def parse_timestamped_lines(text: str) -> List[TranscriptLine]:
    """
    Parses "[MM:SS] text" lines from a model response.

    A line ends where the next line starts, or DEFAULT_LINE_DURATION_SEC after
    its own start when the next line carries no timestamp. Lines with no text,
    or that would not end after they start, are skipped.
    """
    rows = [row for row in text.split('\n') if row.strip()]
    lines = []
    for i, row in enumerate(rows):
        match = _TIMESTAMPED_LINE_RE.search(row)
        if not match:
            continue
        start = _timestamp_seconds(match)
        end = start + DEFAULT_LINE_DURATION_SEC
        if i < len(rows) - 1:
            next_match = _TIMESTAMPED_LINE_RE.search(rows[i + 1])
            if next_match:
                end = _timestamp_seconds(next_match)

        line_text = match.group(3).strip()
        if not line_text or end <= start:
            logger.debug(f"Skipping response line {row!r}")
            continue
        lines.append(TranscriptLine(start=start, end=end, text=line_text))
    return lines


class GeminiTranscriber(Transcriber):
    """Sends each chunk inline to a Gemini model with a transcribe-and-translate prompt."""

    def __init__(
        self,
        model_name: str = DEFAULT_GEMINI_MODEL,
        api_key: Optional[str] = None,
        api_key_env: str = "GEMINI_API_KEY",
        prompt: str = JAPANESE_TRANSCRIBE_PROMPT,
        request_timeout: Optional[float] = None,
    ):
        """
        Args:
            model_name: Gemini model to call.
            api_key: API key. Read from api_key_env when None.
            api_key_env: Environment variable holding the API key.
            prompt: Instruction sent ahead of the audio.
            request_timeout: Seconds allowed per request.

        Raises:
            ConfigurationError: If no API key is available.
        """
        api_key = api_key or os.environ.get(api_key_env)
        if not api_key:
            raise ConfigurationError(f"No Gemini API key: set the {api_key_env} environment variable.")
        genai.configure(api_key=api_key)
        self.model_name = model_name
        self.model = genai.GenerativeModel(model_name=model_name)
        self.prompt = prompt
        self.request_timeout = request_timeout
        logger.info(f"Initialized GeminiTranscriber with model '{model_name}'")

    def transcribe(self, audio_bytes: bytes, mime_type: str) -> List[TranscriptLine]:
        request_options = {'timeout': self.request_timeout} if self.request_timeout else None
        try:
            response = self.model.generate_content(
                [self.prompt, {'mime_type': mime_type, 'data': audio_bytes}],
                request_options=request_options,
            )
            text = response.text or ""
        except Exception as e:
            logger.error(f"Gemini request failed for {len(audio_bytes)} bytes of {mime_type}: {e}", exc_info=True)
            raise TranscriptionError(f"Gemini transcription failed: {e}") from e

        lines = parse_timestamped_lines(text)
        logger.info(f"Gemini returned {len(lines)} timestamped lines")
        return lines
