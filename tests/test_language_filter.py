"""Tests for the per-language text policy."""

import pytest

from chunksub.language_filter import ENGLISH_PLACEHOLDER, clean_japanese_text, filter_for_language
from chunksub.models import LanguageMode, TranscriptLine


class TestCleanJapaneseText:

    def test_strips_quoted_english_prefix(self):
        assert clean_japanese_text('"Hello world" こんにちは世界') == "こんにちは世界"

    def test_strips_unquoted_english_prefix(self):
        assert clean_japanese_text("OK, 分かりました") == "分かりました"

    def test_strips_quoted_english_inside(self):
        assert clean_japanese_text('これは"test"です') == "これはです"

    def test_keeps_quoted_japanese(self):
        assert clean_japanese_text('彼は"はい"と言った') == '彼は"はい"と言った'

    def test_keeps_katakana_and_kanji(self):
        assert clean_japanese_text("コンピューター科学") == "コンピューター科学"

    @pytest.mark.parametrize("text", ["Hello there", "2024", "...", '"quoted only"'])
    def test_drops_lines_without_japanese(self, text):
        assert clean_japanese_text(text) == ""


class TestFilterForLanguage:

    def test_japanese_mode(self):
        lines = [
            TranscriptLine(0, 2, '"Hello world" こんにちは世界'),
            TranscriptLine(2, 4, "No Japanese here"),
            TranscriptLine(4, 6, "さようなら"),
        ]
        result = filter_for_language(lines, LanguageMode.JAPANESE)
        assert result == [TranscriptLine(0, 2, "こんにちは世界"), TranscriptLine(4, 6, "さようなら")]

    def test_japanese_mode_does_not_mutate_input(self):
        lines = [TranscriptLine(0, 2, '"Hello world" こんにちは世界')]
        filter_for_language(lines, "japanese")
        assert lines[0].text == '"Hello world" こんにちは世界'

    def test_english_mode_placeholder(self, sample_lines):
        result = filter_for_language(sample_lines, LanguageMode.ENGLISH)
        assert len(result) == 1
        assert result[0].start == 0
        assert result[0].end == 5
        assert result[0].text == "English subtitles not available - original audio only"
        assert result[0] == ENGLISH_PLACEHOLDER

    def test_both_mode_is_a_copy(self, sample_lines):
        result = filter_for_language(sample_lines, "both")
        assert result == sample_lines
        assert result is not sample_lines

    def test_unknown_mode(self, sample_lines):
        with pytest.raises(ValueError):
            filter_for_language(sample_lines, "klingon")
