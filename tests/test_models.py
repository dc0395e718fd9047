"""Tests for the transcript data model and style policy."""

import json

import pytest

from chunksub.models import (
    AudioSegment, LanguageMode, StyleOptions, TranscriptLine,
    load_transcript, save_transcript, validate_transcript,
)


class TestTranscriptLine:

    @pytest.mark.parametrize("start, end, text", [
        (-1, 2, "x"),
        (2, 2, "x"),
        (3, 2, "x"),
        (0, 1, "   "),
        (0, 1, ""),
    ])
    def test_rejects_invalid(self, start, end, text):
        with pytest.raises(ValueError):
            TranscriptLine(start, end, text)

    def test_shifted_returns_copy(self):
        line = TranscriptLine(1, 2, "x")
        assert line.shifted(240) == TranscriptLine(241, 242, "x")
        assert line.start == 1

    def test_dict_round_trip(self):
        line = TranscriptLine(1.5, 2.25, "こんにちは")
        assert TranscriptLine.from_dict(line.to_dict()) == line


class TestTranscriptFiles:

    def test_save_and_load(self, tmp_path, sample_lines):
        path = tmp_path / "t.json"
        save_transcript(sample_lines, str(path))
        assert "こんにちは" in path.read_text(encoding="utf-8")
        assert load_transcript(str(path)) == sample_lines

    def test_load_wrapped_object(self, tmp_path):
        path = tmp_path / "t.json"
        path.write_text(json.dumps({"transcript": [{"start": 0, "end": 1, "text": "x"}]}), encoding="utf-8")
        assert load_transcript(str(path)) == [TranscriptLine(0, 1, "x")]

    def test_load_rejects_non_list(self, tmp_path):
        path = tmp_path / "t.json"
        path.write_text('"just a string"', encoding="utf-8")
        with pytest.raises(ValueError):
            load_transcript(str(path))

    def test_load_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_transcript(str(tmp_path / "nope.json"))

    def test_validate_transcript(self, sample_lines):
        assert validate_transcript(sample_lines)
        assert not validate_transcript([])
        assert not validate_transcript([{"start": 0, "end": 1, "text": "x"}])


class TestAudioSegment:

    def test_release_is_idempotent(self, tmp_path):
        path = tmp_path / "chunk-000.mp3"
        path.write_bytes(b"abc")
        segment = AudioSegment(index=0, path=str(path), start_offset=0, requested_duration=245)
        assert segment.end_offset == 245
        assert segment.read_bytes() == b"abc"
        segment.release()
        segment.release()
        assert not path.exists()


class TestLanguageMode:

    def test_parse(self):
        assert LanguageMode.parse(" Japanese ") is LanguageMode.JAPANESE
        assert LanguageMode.parse("both") is LanguageMode.BOTH

    def test_parse_unknown(self):
        with pytest.raises(ValueError):
            LanguageMode.parse("french")


class TestStyleOptions:

    @pytest.mark.parametrize("height, font_size, margin_v", [
        (1080, 19, 54),
        (720, 16, 36),
        (2160, 39, 108),
        (480, 16, 24),
    ])
    def test_derived_from_height(self, height, font_size, margin_v):
        style = StyleOptions(video_height=height)
        assert style.resolved_font_size == font_size
        assert style.margin_v == margin_v

    def test_margin_ratio_configurable(self):
        assert StyleOptions(video_height=1080, margin_ratio=0.08).margin_v == 86

    def test_ass_margin_reference_policy(self):
        for font_size in (16, 19, 24, 39):
            expected = int((1080 * font_size / 19.44 * 0.05) + 0.5)
            assert StyleOptions(font_size=font_size).ass_margin_v == expected

    def test_burn_directives_contain_style_numbers(self):
        style = StyleOptions(video_height=720, margin_ratio=0.08)
        directives = style.burn_directives()
        assert "FontName=Arial" in directives
        assert f"Fontsize={style.resolved_font_size}" in directives
        assert f"MarginV={style.margin_v}" in directives
        assert "BorderStyle=3" in directives
