"""Orchestrates the subtitle generation pipeline."""

import logging
import os
import threading
import time
import uuid
from typing import Dict, List, Optional, Sequence, Union

from .exceptions import ChunkSubError, EmptyRenderError, FileSystemError
from .media_probe import MediaProbe
from .models import (
    GenerationResult, LanguageMode, StyleOptions, SubtitleFormat, TranscriptLine,
    load_transcript, save_transcript, validate_transcript,
)
from .stitcher import TranscribeFn, TranscriptStitcher
from .subtitle_formatter import SubtitleRenderer, parse_srt
from .utils import ensure_dir_exists, remove_file
from .video_burner import VideoBurner

logger = logging.getLogger(__name__)

class SubtitleGenerator:
    """
    Manages the end-to-end process of generating subtitles for a media file:
    chunked transcription, transcript persistence, rendering and burning.
    """

    def __init__(
        self,
        config: dict,
        stitcher: TranscriptStitcher,
        transcriber: TranscribeFn,
        renderer: Optional[SubtitleRenderer] = None,
        burner: Optional[VideoBurner] = None,
        probe: Optional[MediaProbe] = None,
    ):
        """
        Initializes the SubtitleGenerator.

        Args:
            config: A dictionary containing configuration settings.
            stitcher: Drives segmentation and per-chunk transcription.
            transcriber: Transcription client, called as transcriber(audio_bytes, mime_type).
            renderer: Renders transcripts to SRT/ASS. A default one is created if None.
            burner: Needed only when subtitles are burned into video.
            probe: Reads the video height for burn styling.
        """
        self.config = config
        self.stitcher = stitcher
        self.transcriber = transcriber
        self.renderer = renderer or SubtitleRenderer()
        self.burner = burner
        self.probe = probe

        self.temp_dir = config.get('temp_dir')
        if not self.temp_dir:
            raise ChunkSubError("Configuration missing 'temp_dir'.")
        try:
             ensure_dir_exists(self.temp_dir)
             test_file = os.path.join(self.temp_dir, f".chunksub_write_test_{uuid.uuid4().hex[:8]}")
             with open(test_file, "w") as f: f.write("test")
             os.remove(test_file)
        except (FileSystemError, OSError, ValueError) as e:
             raise ChunkSubError(f"Temporary directory '{self.temp_dir}' is invalid or not writable: {e}") from e

        self.output_formats = [SubtitleFormat(fmt) for fmt in config.get('output_formats', ['srt', 'ass'])]
        self.language_mode = LanguageMode.parse(config.get('language_mode', 'japanese'))

    def _style(self, video_height: Optional[int] = None) -> StyleOptions:
        style = StyleOptions(font_size=self.config.get('font_size'), margin_ratio=self.config.get('margin_ratio', 0.05))
        if video_height:
            style.video_height = video_height
        return style

    def _write_subtitles(
        self,
        lines: Sequence[TranscriptLine],
        base_path: str,
        mode: LanguageMode,
    ) -> Dict[str, str]:
        """Writes one file per configured format. Falls back to 'both' if the mode filters everything out."""
        paths = {}
        for fmt in self.output_formats:
            output_path = f"{base_path}.{fmt.value}"
            try:
                self.renderer.write(lines, output_path, fmt, mode, self._style())
            except EmptyRenderError as e:
                logger.warning(f"{e} Falling back to '{LanguageMode.BOTH.value}' mode for {output_path}.")
                self.renderer.write(lines, output_path, fmt, LanguageMode.BOTH, self._style())
            paths[fmt.value] = output_path
        return paths

    def _burn(
        self,
        lines: Sequence[TranscriptLine],
        video_path: str,
        output_path: str,
        mode: LanguageMode,
        cancel_event: Optional[threading.Event] = None,
    ) -> str:
        if self.burner is None or self.probe is None:
            raise ChunkSubError("Burning subtitles requires a VideoBurner and a MediaProbe.")
        style = self._style(self.probe.probe_video_height(video_path, cancel_event=cancel_event))
        logger.info(f"Burn style: font size {style.resolved_font_size}, bottom margin {style.margin_v}px")

        subtitle_path = os.path.join(self.temp_dir, f"subtitle-{uuid.uuid4().hex[:12]}.srt")
        try:
            self.renderer.write(lines, subtitle_path, SubtitleFormat.SRT, mode, style)
            return self.burner.burn_subtitles(video_path, subtitle_path, style.burn_directives(), output_path, cancel_event=cancel_event)
        finally:
            remove_file(subtitle_path)

    def generate(
        self,
        media_path: str,
        output_dir: str,
        language_mode: Optional[Union[LanguageMode, str]] = None,
        burn: bool = False,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationResult:
        """
        Executes the full pipeline for a single audio or video file.

        Args:
            media_path: Path to the input media file.
            output_dir: Directory to save the transcript, subtitles and video.
            language_mode: Overrides the configured language mode.
            burn: Also write <name>.subtitled.mp4 with burned-in subtitles.
            cancel_event: Aborts the run when set.

        Returns:
            The paths written.

        Raises:
            ChunkSubError: For any configuration or processing errors in the pipeline.
            FileNotFoundError: If the input file is not found.
        """
        started = time.time()
        logger.info(f"--- Starting ChunkSub process for: {media_path} ---")
        if not os.path.isfile(media_path):
            raise FileNotFoundError(f"Input media file not found: {media_path}")
        ensure_dir_exists(output_dir)
        mode = LanguageMode.parse(language_mode) if language_mode else self.language_mode
        base_path = os.path.join(output_dir, os.path.splitext(os.path.basename(media_path))[0])

        try:
            logger.info("Step 1: Transcribing audio in overlapping chunks...")
            transcript = self.stitcher.stitch(
                media_path,
                self.transcriber,
                segment_duration_sec=self.config.get('segment_duration_sec', 240),
                overlap_sec=self.config.get('overlap_sec', 5),
                cancel_event=cancel_event,
            )
            if not transcript:
                raise ChunkSubError("Transcription produced no lines. Cannot proceed.")

            logger.info("Step 2: Saving transcript...")
            transcript_path = f"{base_path}.transcript.json"
            save_transcript(transcript, transcript_path)

            logger.info(f"Step 3: Rendering subtitles ({mode.value})...")
            result = GenerationResult(
                transcript_path=transcript_path,
                subtitle_paths=self._write_subtitles(transcript, base_path, mode),
                line_count=len(transcript),
            )

            if burn:
                logger.info("Step 4: Burning subtitles into video...")
                result.video_path = self._burn(transcript, media_path, f"{base_path}.subtitled.mp4", mode, cancel_event)

        except (ChunkSubError, FileNotFoundError) as e:
            logger.error(f"ChunkSub process failed: {e}", exc_info=False)
            raise
        except Exception as e:
            logger.critical(f"An unexpected critical error occurred during subtitle generation: {e}", exc_info=True)
            raise ChunkSubError(f"An unexpected critical error occurred: {e}") from e

        logger.info(f"--- ChunkSub process completed successfully in {time.time() - started:.2f} seconds ---")
        return result

    def render_from_transcript(
        self,
        transcript_path: str,
        output_dir: str,
        language_mode: Optional[Union[LanguageMode, str]] = None,
        video_path: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> GenerationResult:
        """
        Renders an edited transcript (JSON or SRT) again, optionally burning it into video_path.

        Raises:
            ChunkSubError: If the transcript is empty or invalid, or rendering fails.
            FileNotFoundError: If the transcript or video is missing.
        """
        mode = LanguageMode.parse(language_mode) if language_mode else self.language_mode
        lines = self._load_lines(transcript_path)
        ensure_dir_exists(output_dir)

        name = os.path.basename(transcript_path)
        for suffix in ('.transcript.json', '.json', '.srt'):
            if name.lower().endswith(suffix):
                name = name[:-len(suffix)]
                break
        base_path = os.path.join(output_dir, name)

        result = GenerationResult(
            transcript_path=transcript_path,
            subtitle_paths=self._write_subtitles(lines, base_path, mode),
            line_count=len(lines),
        )
        if video_path:
            result.video_path = self._burn(lines, video_path, f"{base_path}.subtitled.mp4", mode, cancel_event)
        return result

    def _load_lines(self, transcript_path: str) -> List[TranscriptLine]:
        try:
            if transcript_path.lower().endswith('.srt'):
                if not os.path.isfile(transcript_path):
                    raise FileNotFoundError(f"Transcript file not found: {transcript_path}")
                with open(transcript_path, 'r', encoding='utf-8-sig') as f:
                    lines = parse_srt(f.read())
            else:
                lines = load_transcript(transcript_path)
        except (ValueError, KeyError, TypeError) as e:
            raise ChunkSubError(f"Invalid transcript file {transcript_path}: {e}") from e
        if not validate_transcript(lines):
            raise ChunkSubError(f"Transcript {transcript_path} has no usable lines.")
        return lines
