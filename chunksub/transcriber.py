"""Transcription clients: map one chunk of audio bytes to timed transcript lines."""

import logging
import mimetypes
import os
import tempfile
import torch
import whisper
from abc import ABC, abstractmethod
from typing import List, Optional

from .exceptions import TranscriptionError, TranslationError
from .models import TranscriptLine
from .translator import Translator

logger = logging.getLogger(__name__)

def suffix_for_mime_type(mime_type: Optional[str]) -> str:
    """File extension to use when audio bytes have to be written to disk."""
    overrides = {'audio/mpeg': '.mp3', 'audio/mp3': '.mp3', 'audio/wav': '.wav', 'audio/x-wav': '.wav', 'audio/mp4': '.m4a'}
    if mime_type in overrides:
        return overrides[mime_type]
    return (mimetypes.guess_extension(mime_type) if mime_type else None) or '.bin'


class Transcriber(ABC):
    """
    Abstract base class for transcription services.

    Instances are callable, so one can be passed straight to
    TranscriptStitcher.stitch() as its transcribe function.
    """

    @abstractmethod
    def transcribe(self, audio_bytes: bytes, mime_type: str) -> List[TranscriptLine]:
        """
        Transcribes one chunk of audio.

        Args:
            audio_bytes: Encoded audio (any container ffmpeg understands).
            mime_type: MIME type of audio_bytes, e.g. 'audio/mpeg'.

        Returns:
            Lines in spoken order, timed from the start of audio_bytes.

        Raises:
            TranscriptionError: If transcription fails.
        """
        pass

    def __call__(self, audio_bytes: bytes, mime_type: str) -> List[TranscriptLine]:
        return self.transcribe(audio_bytes, mime_type)


class WhisperTranscriber(Transcriber):
    """Implements transcription using OpenAI's Whisper model."""

    def __init__(
        self,
        model_name: str = "medium",
        device: str = "cuda",
        fp16: bool = True,
        language: Optional[str] = None,
        task: str = "transcribe",
    ):
        """
        Initializes the WhisperTranscriber.

        Args:
            model_name: The name of the Whisper model to use (e.g., "base", "medium").
            device: The device to run the model on ("cuda" or "cpu").
            fp16: Whether to use float16 precision (only honoured on CUDA).
            language: Spoken language code. None lets Whisper detect it per chunk.
            task: "transcribe" or "translate" (Whisper can only translate into English).

        Raises:
            ValueError: If the specified device is invalid.
            TranscriptionError: If the model fails to load.
        """
        self.model_name = model_name
        self.device = device
        self.fp16 = fp16
        self.language = language
        self.task = task

        if self.device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA device requested but not available. Falling back to CPU.")
            self.device = "cpu"
        elif self.device not in ["cuda", "cpu"]:
             raise ValueError(f"Invalid device specified: {self.device}. Choose 'cuda' or 'cpu'.")

        logger.info(f"Initializing WhisperTranscriber with model '{self.model_name}' on device '{self.device}' (FP16: {self.fp16})")
        try:
            self.model = whisper.load_model(self.model_name, device=self.device)
            logger.info(f"Whisper model '{self.model_name}' loaded successfully.")
        except Exception as e:
            logger.error(f"Failed to load Whisper model '{self.model_name}': {e}", exc_info=True)
            raise TranscriptionError(f"Failed to load Whisper model '{self.model_name}': {e}") from e

    def transcribe(self, audio_bytes: bytes, mime_type: str) -> List[TranscriptLine]:
        # Whisper decodes through ffmpeg, which needs a file path
        fd, audio_path = tempfile.mkstemp(prefix="chunksub-whisper-", suffix=suffix_for_mime_type(mime_type))
        try:
            with os.fdopen(fd, 'wb') as f:
                f.write(audio_bytes)
            result = self.model.transcribe(
                audio_path,
                language=self.language,
                task=self.task,
                fp16=self.fp16 if self.device == "cuda" else False,
                verbose=None,
            )
        except Exception as e:
            logger.error(f"Error during Whisper transcription of {len(audio_bytes)} bytes: {e}", exc_info=True)
            raise TranscriptionError(f"Whisper transcription failed: {e}") from e
        finally:
            if os.path.exists(audio_path):
                os.remove(audio_path)

        lines = []
        for seg_data in result.get('segments', []):
            text = str(seg_data.get('text', '')).strip()
            start, end = float(seg_data.get('start', 0)), float(seg_data.get('end', 0))
            if not text or end <= start:
                logger.warning(f"Skipping unusable Whisper segment: {seg_data}")
                continue
            lines.append(TranscriptLine(start=max(0.0, start), end=end, text=text))
        logger.info(f"Whisper returned {len(lines)} lines (language: {result.get('language', 'N/A')})")
        return lines


class TranslatingTranscriber(Transcriber):
    """Transcribes with one client, then translates every line's text."""

    def __init__(self, transcriber: Transcriber, translator: Translator, source_lang: str = 'en', target_lang: str = 'ja'):
        self.transcriber = transcriber
        self.translator = translator
        self.source_lang = source_lang
        self.target_lang = target_lang

    def transcribe(self, audio_bytes: bytes, mime_type: str) -> List[TranscriptLine]:
        lines = self.transcriber.transcribe(audio_bytes, mime_type)
        if not lines:
            return []
        try:
            translations = self.translator.translate_batch([line.text for line in lines], self.source_lang, self.target_lang)
        except TranslationError as e:
            raise TranscriptionError(f"Translation of chunk transcript failed: {e}") from e
        if len(translations) != len(lines):
            raise TranscriptionError(
                f"Translator returned {len(translations)} texts for {len(lines)} lines; cannot pair them with timings."
            )

        translated = []
        for line, text in zip(lines, translations):
            if not text or not text.strip():
                logger.warning(f"Empty translation for '{line.text[:30]}...'. Skipping line.")
                continue
            translated.append(TranscriptLine(start=line.start, end=line.end, text=text.strip()))
        return translated
