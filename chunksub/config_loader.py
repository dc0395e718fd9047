"""Handles loading and validating configuration from YAML files."""

import yaml
import os
import logging
from typing import Any, Dict, Optional

from .exceptions import ConfigurationError
from .models import LanguageMode, SubtitleFormat

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: Dict[str, Any] = {
    'temp_dir': 'tmp',
    'log_dir': 'logs',
    'log_file': 'chunksub.log',
    'ffmpeg_path': None,
    'ffprobe_path': None,
    # Chunking
    'segment_duration_sec': 240,
    'overlap_sec': 5,
    'max_workers': 1,
    'subprocess_timeout_sec': 600,
    'burn_timeout_sec': None,
    'transcription_timeout_sec': None,
    'clock_tolerance_sec': 5.0,
    # Transcription
    'transcriber': 'gemini',
    'gemini_model': 'gemini-2.0-flash',
    'gemini_api_key_env': 'GEMINI_API_KEY',
    'whisper_model': 'medium',
    'whisper_language': None,
    'device': 'cuda',
    'whisper_fp16': True,
    'translate': True,
    'translation_model': 'Helsinki-NLP/opus-mt-en-jap',
    # Rendering
    'language_mode': 'japanese',
    'font_size': None,
    'margin_ratio': 0.05,
    'output_formats': ['srt', 'ass'],
}

TRANSCRIBERS = ('gemini', 'whisper')

class ConfigLoader:
    """Loads configuration settings from a YAML file and fills in defaults."""

    def load_config(self, config_path: Optional[str]) -> dict:
        """
        Loads configuration from the specified YAML file path.

        Args:
            config_path: The path to the YAML configuration file. None gives the defaults.

        Returns:
            DEFAULT_CONFIG overlaid with the file's settings.

        Raises:
            FileNotFoundError: If the configuration file does not exist.
            ConfigurationError: If the file cannot be parsed as YAML or
                              a setting is invalid.
        """
        if config_path is None:
            return self.validate(dict(DEFAULT_CONFIG))

        logger.info(f"Attempting to load configuration from: {config_path}")
        if not os.path.exists(config_path):
            logger.error(f"Configuration file not found at path: {config_path}")
            raise FileNotFoundError(f"Configuration file not found: {config_path}")
        if not os.path.isfile(config_path):
             logger.error(f"Configuration path is not a file: {config_path}")
             raise ConfigurationError(f"Configuration path is not a file: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                loaded = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.error(f"Error parsing YAML configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Invalid YAML format in {config_path}: {e}") from e
        except IOError as e:
            logger.error(f"Error reading configuration file {config_path}: {e}", exc_info=True)
            raise ConfigurationError(f"Could not read configuration file {config_path}: {e}") from e

        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            logger.error(f"Configuration file {config_path} did not load as a dictionary (root object).")
            raise ConfigurationError(f"Invalid YAML structure in {config_path}. Root must be a mapping (dictionary).")

        unknown = sorted(set(loaded) - set(DEFAULT_CONFIG))
        if unknown:
            logger.warning(f"Ignoring unknown configuration keys: {', '.join(unknown)}")

        config = dict(DEFAULT_CONFIG)
        config.update({key: value for key, value in loaded.items() if key in DEFAULT_CONFIG})
        config = self.validate(config)
        logger.info(f"Configuration loaded successfully from {config_path}")
        return config

    def validate(self, config: dict) -> dict:
        """
        Checks value ranges and normalises enum-like settings in place.

        Raises:
            ConfigurationError: On the first invalid setting.
        """
        def number(key: str, minimum: float, inclusive: bool, allow_none: bool = False) -> None:
            value = config.get(key)
            if value is None and allow_none:
                return
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise ConfigurationError(f"'{key}' must be a number, got {value!r}")
            if value < minimum or (value == minimum and not inclusive):
                relation = ">=" if inclusive else ">"
                raise ConfigurationError(f"'{key}' must be {relation} {minimum}, got {value}")

        number('segment_duration_sec', 0, inclusive=False)
        number('overlap_sec', 0, inclusive=True)
        number('max_workers', 1, inclusive=True)
        number('subprocess_timeout_sec', 0, inclusive=False, allow_none=True)
        number('burn_timeout_sec', 0, inclusive=False, allow_none=True)
        number('transcription_timeout_sec', 0, inclusive=False, allow_none=True)
        number('clock_tolerance_sec', 0, inclusive=True, allow_none=True)
        number('margin_ratio', 0, inclusive=True)
        number('font_size', 1, inclusive=True, allow_none=True)
        config['max_workers'] = int(config['max_workers'])

        if not config.get('temp_dir'):
            raise ConfigurationError("Configuration missing 'temp_dir'.")

        transcriber = str(config.get('transcriber', '')).lower()
        if transcriber not in TRANSCRIBERS:
            raise ConfigurationError(f"'transcriber' must be one of {', '.join(TRANSCRIBERS)}, got {config.get('transcriber')!r}")
        config['transcriber'] = transcriber

        try:
            config['language_mode'] = LanguageMode.parse(config['language_mode']).value
        except ValueError as e:
            raise ConfigurationError(str(e)) from e

        formats = config.get('output_formats')
        if isinstance(formats, str):
            formats = [formats]
        if not formats:
            raise ConfigurationError("'output_formats' must list at least one of: srt, ass")
        try:
            config['output_formats'] = [SubtitleFormat(str(fmt).lower()).value for fmt in formats]
        except ValueError as e:
            raise ConfigurationError(f"Unsupported entry in 'output_formats': {e}") from e

        return config
