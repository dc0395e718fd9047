"""Handles translating transcript text with Hugging Face seq2seq models."""

import logging
import torch
from abc import ABC, abstractmethod
from transformers import AutoTokenizer, AutoModelForSeq2SeqLM
from typing import List, Sequence

from .exceptions import TranslationError

logger = logging.getLogger(__name__)

DEFAULT_TRANSLATION_MODEL = "Helsinki-NLP/opus-mt-en-jap"

class Translator(ABC):
    """Abstract base class for translation services."""

    @abstractmethod
    def translate_batch(self, texts: Sequence[str], source_lang: str, target_lang: str) -> List[str]:
        """
        Translates several texts, keeping their order.

        Args:
            texts: The texts to translate.
            source_lang: Source language code (e.g., 'en').
            target_lang: Target language code (e.g., 'ja').

        Returns:
            One translation per input text.

        Raises:
            TranslationError: If translation fails.
        """
        pass

    def translate(self, text: str, source_lang: str, target_lang: str) -> str:
        """Translates a single string."""
        if not text:
            return ""
        return self.translate_batch([text], source_lang, target_lang)[0]


class HuggingFaceTranslator(Translator):
    """Implements translation using Hugging Face Transformers models."""

    def __init__(self, model_name: str = DEFAULT_TRANSLATION_MODEL, device: str = "cuda", batch_size: int = 16):
        """
        Initializes the HuggingFaceTranslator.

        Args:
            model_name: The name of the Hugging Face translation model.
            device: The device to run the model on ("cuda" or "cpu").
            batch_size: How many texts are sent through the model at once.

        Raises:
            ValueError: If the specified device is invalid.
            TranslationError: If the model or tokenizer fails to load.
        """
        self.model_name = model_name
        self.device = device
        self.batch_size = max(1, batch_size)

        if self.device == "cuda" and not torch.cuda.is_available():
            logger.warning("CUDA device requested but not available for translation. Falling back to CPU.")
            self.device = "cpu"
        elif self.device not in ["cuda", "cpu"]:
             raise ValueError(f"Invalid device specified: {self.device}. Choose 'cuda' or 'cpu'.")

        logger.info(f"Initializing HuggingFaceTranslator with model '{self.model_name}' on device '{self.device}'")
        try:
            self.tokenizer = AutoTokenizer.from_pretrained(self.model_name)
            self.model = AutoModelForSeq2SeqLM.from_pretrained(self.model_name)
            self.model.to(self.device)
            self.model.eval()
        except Exception as e:
            logger.error(f"Failed to load translation model or tokenizer '{self.model_name}': {e}", exc_info=True)
            raise TranslationError(f"Failed to load translation model/tokenizer '{self.model_name}': {e}") from e

    def translate_batch(self, texts: Sequence[str], source_lang: str = 'en', target_lang: str = 'ja') -> List[str]:
        results: List[str] = []
        for i in range(0, len(texts), self.batch_size):
            batch = list(texts[i:i + self.batch_size])
            logger.debug(f"Translating {len(batch)} texts ({source_lang}->{target_lang}), first: '{batch[0][:50]}'")
            try:
                inputs = self.tokenizer(batch, return_tensors="pt", padding=True, truncation=True, max_length=512)
                inputs = {k: v.to(self.device) for k, v in inputs.items()}
                with torch.no_grad():
                    translated_tokens = self.model.generate(**inputs)
                results.extend(self.tokenizer.batch_decode(translated_tokens, skip_special_tokens=True))
            except Exception as e:
                logger.error(f"Error translating batch starting with '{batch[0][:50]}': {e}", exc_info=True)
                raise TranslationError(f"Hugging Face translation failed: {e}") from e
        return results
