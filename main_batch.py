#!/usr/bin/env python3
"""
ChunkSub Batch Processing Entry Point

Transcribes every audio/video file in a directory, smallest first, writing
transcripts and subtitles into a Subs/ folder beside the inputs.
"""

import argparse
import logging
import os
import sys
import time
from typing import List, Tuple

from tqdm import tqdm

from chunksub.cli import build_generator
from chunksub.config_loader import ConfigLoader
from chunksub.exceptions import ChunkSubError, ConfigurationError, FileSystemError
from chunksub.log_setup import setup_logging
from chunksub.models import LanguageMode
from chunksub.utils import ensure_dir_exists

logger = logging.getLogger(__name__)

MEDIA_EXTENSIONS = ('.mp4', '.mkv', '.mov', '.webm', '.mp3', '.m4a', '.wav', '.flac', '.ogg')

def find_and_sort_media(input_dir: str) -> List[Tuple[str, int]]:
    """
    Finds all media files in the input directory and sorts them by size.

    Args:
        input_dir: The directory to search for media files.

    Returns:
        A list of (filepath, filesize) tuples, smallest first.

    Raises:
        FileNotFoundError: If the input directory doesn't exist.
        ValueError: If the input path is not a directory.
    """
    if not os.path.exists(input_dir):
        raise FileNotFoundError(f"Input directory not found: {input_dir}")
    if not os.path.isdir(input_dir):
        raise ValueError(f"Input path is not a directory: {input_dir}")

    media = []
    logger.info(f"Scanning directory for media files: {input_dir}")
    for filename in os.listdir(input_dir):
        if filename.lower().endswith(MEDIA_EXTENSIONS):
            filepath = os.path.join(input_dir, filename)
            try:
                if os.path.isfile(filepath):
                    media.append((filepath, os.path.getsize(filepath)))
            except OSError as e:
                logger.warning(f"Could not access file {filepath}: {e}. Skipping.")

    media.sort(key=lambda item: item[1])
    logger.info(f"Found {len(media)} media files. Sorted by size (smallest first).")
    return media


def run_batch_processing():
    """Parses arguments, sets up, and runs the batch subtitle generation."""
    parser = argparse.ArgumentParser(
        description="ChunkSub Batch: Transcribe and subtitle every media file in a directory.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )
    parser.add_argument("-i", "--input-dir", required=True, help="Directory containing the input media files.")
    parser.add_argument("-c", "--config", default=None, help="Path to the configuration YAML file.")
    parser.add_argument("--temp-dir", default=None, help="Override the temporary directory specified in the config file.")
    parser.add_argument(
        "--language",
        default=None,
        choices=[mode.value for mode in LanguageMode],
        help="Override the language mode used when rendering subtitles."
    )
    parser.add_argument("--burn", action="store_true", help="Also burn subtitles into each video.")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Set the logging level for console and file output."
    )

    args = parser.parse_args()

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    setup_logging(log_level=log_level, log_dir='logs', log_file='chunksub_batch_init.log')

    try:
        config_loader = ConfigLoader()
        config = config_loader.load_config(args.config)
        if args.temp_dir:
            logger.info(f"Overriding temp_dir from config with CLI argument: {args.temp_dir}")
            config['temp_dir'] = args.temp_dir
        if args.language:
            config['language_mode'] = args.language
        config = config_loader.validate(config)
    except (ConfigurationError, FileNotFoundError) as e:
        logger.critical(f"Failed to load configuration: {e}")
        sys.exit(1)

    setup_logging(log_level=log_level, log_dir=config['log_dir'], log_file='chunksub_batch.log')

    try:
        media_paths = [item[0] for item in find_and_sort_media(args.input_dir)]
    except (FileNotFoundError, ValueError) as e:
        logger.critical(f"Input directory error: {e}")
        sys.exit(1)
    if not media_paths:
        logger.warning(f"No media files found in {args.input_dir}. Exiting.")
        sys.exit(0)

    output_dir = os.path.join(args.input_dir, "Subs")
    try:
        ensure_dir_exists(output_dir)
    except FileSystemError as e:
        logger.critical(f"Could not create output directory: {e}")
        sys.exit(1)

    # Components (and the transcription model) are built once for the whole batch
    try:
        logger.info("Initializing ChunkSub components for batch processing...")
        generator = build_generator(config, show_progress=False)
    except ChunkSubError as e:
        logger.critical(f"Failed to initialize ChunkSub components: {e}", exc_info=True)
        sys.exit(1)
    except Exception as e:
        logger.critical(f"An unexpected error occurred during component initialization: {e}", exc_info=True)
        sys.exit(1)

    total_files = len(media_paths)
    files_processed = 0
    files_failed = 0
    batch_start_time = time.time()
    logger.info(f"--- Starting Batch Subtitle Generation for {total_files} files ---")

    with tqdm(total=total_files, unit="file", desc="Starting Batch") as pbar:
        for media_path in media_paths:
            filename = os.path.basename(media_path)
            pbar.set_description(f"Processing: {filename[:30]}...")
            try:
                file_start_time = time.time()
                result = generator.generate(media_path, output_dir, burn=args.burn)
                logger.info(
                    f"{filename}: {result.line_count} lines, "
                    f"{len(result.subtitle_paths)} subtitle file(s) in {time.time() - file_start_time:.2f}s"
                )
                files_processed += 1
            except (ChunkSubError, FileNotFoundError) as e:
                logger.error(f"ChunkSub failed for '{filename}': {e}")
                files_failed += 1
            except KeyboardInterrupt:
                 logger.warning("Batch process interrupted by user (Ctrl+C). Exiting.")
                 sys.exit(1)
            except Exception as e:
                logger.error(f"An unexpected error occurred processing '{filename}': {e}", exc_info=True)
                files_failed += 1
            finally:
                 pbar.update(1)

    logger.info("--- Batch Subtitle Generation Finished ---")
    logger.info(f"Total time: {time.time() - batch_start_time:.2f} seconds")
    logger.info(f"Successfully processed: {files_processed}/{total_files} files")
    logger.info(f"Failed: {files_failed}/{total_files} files")

    sys.exit(1 if files_failed > 0 else 0)


if __name__ == "__main__":
    if sys.version_info < (3, 9):
        sys.stderr.write("ChunkSub requires Python 3.9 or later.\n")
        sys.exit(1)

    run_batch_processing()
