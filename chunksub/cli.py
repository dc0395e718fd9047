"""Command-Line Interface handler for ChunkSub."""

import argparse
import logging
import os
import sys
from typing import List, Optional

from .audio_extractor import AudioExtractor
from .config_loader import ConfigLoader
from .exceptions import ChunkSubError, ConfigurationError
from .gemini_transcriber import GeminiTranscriber
from .log_setup import setup_logging
from .media_probe import MediaProbe
from .models import LanguageMode
from .segmenter import AudioSegmenter
from .stitcher import TranscriptStitcher
from .subtitle_formatter import SubtitleRenderer
from .subtitle_generator import SubtitleGenerator
from .transcriber import Transcriber, TranslatingTranscriber, WhisperTranscriber
from .translator import HuggingFaceTranslator
from .video_burner import VideoBurner

logger = logging.getLogger(__name__)

def build_transcriber(config: dict) -> Transcriber:
    """Creates the transcription client named by config['transcriber']."""
    if config['transcriber'] == 'gemini':
        return GeminiTranscriber(
            model_name=config.get('gemini_model', 'gemini-2.0-flash'),
            api_key_env=config.get('gemini_api_key_env', 'GEMINI_API_KEY'),
            request_timeout=config.get('transcription_timeout_sec'),
        )

    device = config.get('device', 'cuda')
    transcriber: Transcriber = WhisperTranscriber(
        model_name=config.get('whisper_model', 'medium'),
        device=device,
        fp16=config.get('whisper_fp16', True) if device == 'cuda' else False,
        language=config.get('whisper_language'),
    )
    if config.get('translate', True):
        translator = HuggingFaceTranslator(model_name=config.get('translation_model'), device=device)
        transcriber = TranslatingTranscriber(transcriber, translator, source_lang=config.get('whisper_language') or 'en')
    return transcriber


def build_generator(config: dict, with_transcriber: bool = True, show_progress: bool = True) -> SubtitleGenerator:
    """Wires every pipeline component from a validated config."""
    timeout = config.get('subprocess_timeout_sec')
    probe = MediaProbe(ffprobe_path=config.get('ffprobe_path'), timeout=timeout)
    extractor = AudioExtractor(ffmpeg_path=config.get('ffmpeg_path'), timeout=timeout)
    segmenter = AudioSegmenter(probe, extractor, temp_dir=config['temp_dir'])
    stitcher = TranscriptStitcher(
        segmenter,
        max_workers=config.get('max_workers', 1),
        transcription_timeout=config.get('transcription_timeout_sec'),
        clock_tolerance_sec=config.get('clock_tolerance_sec'),
        show_progress=show_progress,
    )
    return SubtitleGenerator(
        config=config,
        stitcher=stitcher,
        transcriber=build_transcriber(config) if with_transcriber else None,
        renderer=SubtitleRenderer(),
        burner=VideoBurner(ffmpeg_path=config.get('ffmpeg_path'), timeout=config.get('burn_timeout_sec')),
        probe=probe,
    )


class CLIHandler:
    """Parses arguments and orchestrates the ChunkSub process."""

    def __init__(self):
        self.parser = self._create_parser()

    def _create_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        common = argparse.ArgumentParser(add_help=False)
        common.add_argument("-o", "--output-dir", required=True, help="Directory to save the generated files.")
        common.add_argument("-c", "--config", default=None, help="Path to the configuration YAML file. Built-in defaults are used if omitted.")
        common.add_argument("--temp-dir", default=None, help="Override the temporary directory specified in the config file.")
        common.add_argument(
            "--language",
            default=None,
            choices=[mode.value for mode in LanguageMode],
            help="Override the language mode used when rendering subtitles.",
        )
        common.add_argument(
            "--log-level",
            default="INFO",
            choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
            help="Set the logging level for console and file output."
        )

        parser = argparse.ArgumentParser(
            description="ChunkSub: Transcribe long recordings in overlapping chunks and render subtitles.",
            formatter_class=argparse.ArgumentDefaultsHelpFormatter
        )
        subparsers = parser.add_subparsers(dest="command", required=True)

        transcribe = subparsers.add_parser(
            "transcribe", parents=[common], formatter_class=argparse.ArgumentDefaultsHelpFormatter,
            help="Transcribe a media file and write transcript + subtitles.",
        )
        transcribe.add_argument("-i", "--input", required=True, help="Path to the input audio/video file.")
        transcribe.add_argument("--burn", action="store_true", help="Also burn the subtitles into the video.")
        transcribe.add_argument("--segment-duration", type=float, default=None, help="Override segment_duration_sec.")
        transcribe.add_argument("--overlap", type=float, default=None, help="Override overlap_sec.")
        transcribe.add_argument("--workers", type=int, default=None, help="Override max_workers.")
        transcribe.add_argument("--transcriber", default=None, choices=["gemini", "whisper"], help="Override the transcription client.")
        transcribe.add_argument("--device", default=None, choices=["cuda", "cpu"], help="Override the processing device for Whisper.")

        render = subparsers.add_parser(
            "render", parents=[common], formatter_class=argparse.ArgumentDefaultsHelpFormatter,
            help="Render subtitles from an edited transcript (.json or .srt).",
        )
        render.add_argument("-t", "--transcript", required=True, help="Transcript JSON or SRT file.")

        burn = subparsers.add_parser(
            "burn", parents=[common], formatter_class=argparse.ArgumentDefaultsHelpFormatter,
            help="Burn an edited transcript into a video.",
        )
        burn.add_argument("-t", "--transcript", required=True, help="Transcript JSON or SRT file.")
        burn.add_argument("-v", "--video", required=True, help="Video to burn the subtitles into.")

        return parser

    def _apply_overrides(self, args: argparse.Namespace, config: dict) -> dict:
        overrides = {
            'temp_dir': args.temp_dir,
            'language_mode': args.language,
            'segment_duration_sec': getattr(args, 'segment_duration', None),
            'overlap_sec': getattr(args, 'overlap', None),
            'max_workers': getattr(args, 'workers', None),
            'transcriber': getattr(args, 'transcriber', None),
            'device': getattr(args, 'device', None),
        }
        for key, value in overrides.items():
            if value is not None:
                logger.info(f"Overriding {key} from config with CLI argument: {value}")
                config[key] = value
        return ConfigLoader().validate(config)

    def run(self, argv: Optional[List[str]] = None) -> None:
        """Parses arguments, sets up logging, loads config, and runs the requested command."""
        args = self.parser.parse_args(argv)
        log_level = getattr(logging, args.log_level.upper(), logging.INFO)

        # Basic logging first so config errors are visible
        setup_logging(log_level=log_level, log_dir='logs', log_file='chunksub_init.log')

        try:
            config = ConfigLoader().load_config(args.config)
            config = self._apply_overrides(args, config)
        except ConfigurationError as e:
            logger.critical(f"Invalid configuration: {e}")
            sys.exit(1)
        except FileNotFoundError:
             logger.critical(f"Configuration file not found: {args.config}")
             sys.exit(1)

        setup_logging(log_level=log_level, log_dir=config['log_dir'], log_file=config['log_file'])

        try:
            if args.command == "transcribe":
                if not os.path.isfile(args.input):
                    logger.critical(f"Input file not found or is not a file: {args.input}")
                    sys.exit(1)
                generator = build_generator(config)
                result = generator.generate(args.input, args.output_dir, burn=args.burn)
            else:
                generator = build_generator(config, with_transcriber=False)
                video = getattr(args, 'video', None)
                result = generator.render_from_transcript(args.transcript, args.output_dir, video_path=video)

            for fmt, path in result.subtitle_paths.items():
                logger.info(f"{fmt.upper()} subtitles: {path}")
            if result.video_path:
                logger.info(f"Subtitled video: {result.video_path}")
            logger.info("ChunkSub finished successfully.")
            sys.exit(0)

        except (ChunkSubError, FileNotFoundError) as e:
             logger.error(f"A ChunkSub error occurred: {e}")
             sys.exit(1)
        except KeyboardInterrupt:
             logger.warning("Process interrupted by user (Ctrl+C). Exiting.")
             sys.exit(1)
        except Exception as e:
             logger.critical(f"An unexpected critical error occurred at the top level: {e}", exc_info=True)
             sys.exit(2)


def main() -> None:
    """Console-script entry point."""
    CLIHandler().run()
