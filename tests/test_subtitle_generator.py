"""Tests for the end-to-end orchestration, with stitching and ffmpeg faked."""

import json
import os

import pytest

from chunksub.config_loader import ConfigLoader
from chunksub.exceptions import ChunkSubError, ChunkTranscriptionError
from chunksub.models import TranscriptLine
from chunksub.subtitle_generator import SubtitleGenerator

from conftest import FakeProbe


class FakeStitcher:
    def __init__(self, lines=None, error=None):
        self.lines = lines or []
        self.error = error
        self.calls = []

    def stitch(self, source_path, transcribe_fn, segment_duration_sec=240, overlap_sec=5, mime_type=None, cancel_event=None):
        self.calls.append((source_path, transcribe_fn, segment_duration_sec, overlap_sec))
        if self.error:
            raise self.error
        return list(self.lines)


class FakeBurner:
    def __init__(self):
        self.calls = []

    def burn_subtitles(self, video_path, subtitle_path, style_directives, output_path, cancel_event=None):
        with open(subtitle_path, encoding="utf-8") as f:
            self.calls.append((video_path, f.read(), style_directives, output_path))
        with open(output_path, "wb") as f:
            f.write(b"video")
        return output_path


def transcribe(audio_bytes, mime_type):
    return []


@pytest.fixture
def config(tmp_path):
    config = ConfigLoader().load_config(None)
    config['temp_dir'] = str(tmp_path / "tmp")
    config['segment_duration_sec'] = 120
    config['overlap_sec'] = 3
    return config


@pytest.fixture
def media_file(tmp_path):
    path = tmp_path / "talk.mp4"
    path.write_bytes(b"video")
    return str(path)


@pytest.fixture
def output_dir(tmp_path):
    return str(tmp_path / "out")


JAPANESE_LINES = [TranscriptLine(0, 2.5, "こんにちは"), TranscriptLine(2.5, 5, '"Hi" 元気ですか')]


class TestGenerate:

    def test_writes_transcript_and_subtitles(self, config, media_file, output_dir):
        stitcher = FakeStitcher(JAPANESE_LINES)
        generator = SubtitleGenerator(config, stitcher, transcribe)

        result = generator.generate(media_file, output_dir)

        assert stitcher.calls == [(media_file, transcribe, 120, 3)]
        assert result.line_count == 2
        assert result.transcript_path == os.path.join(output_dir, "talk.transcript.json")
        with open(result.transcript_path, encoding="utf-8") as f:
            assert json.load(f)[1]["text"] == '"Hi" 元気ですか'
        assert sorted(result.subtitle_paths) == ["ass", "srt"]
        with open(result.subtitle_paths["srt"], encoding="utf-8") as f:
            assert "\n元気ですか\n" in f.read()
        assert result.video_path is None

    def test_falls_back_to_both_when_filter_empties(self, config, media_file, output_dir):
        generator = SubtitleGenerator(config, FakeStitcher([TranscriptLine(0, 1, "only English")]), transcribe)
        result = generator.generate(media_file, output_dir, language_mode="japanese")
        with open(result.subtitle_paths["srt"], encoding="utf-8") as f:
            assert "only English" in f.read()

    def test_empty_transcript(self, config, media_file, output_dir):
        generator = SubtitleGenerator(config, FakeStitcher([]), transcribe)
        with pytest.raises(ChunkSubError):
            generator.generate(media_file, output_dir)

    def test_chunk_failure_propagates(self, config, media_file, output_dir):
        generator = SubtitleGenerator(config, FakeStitcher(error=ChunkTranscriptionError(2)), transcribe)
        with pytest.raises(ChunkTranscriptionError) as excinfo:
            generator.generate(media_file, output_dir)
        assert excinfo.value.chunk_index == 2
        assert not os.path.exists(os.path.join(output_dir, "talk.transcript.json"))

    def test_missing_media(self, config, tmp_path, output_dir):
        generator = SubtitleGenerator(config, FakeStitcher(JAPANESE_LINES), transcribe)
        with pytest.raises(FileNotFoundError):
            generator.generate(str(tmp_path / "missing.mp4"), output_dir)

    def test_burn(self, config, media_file, output_dir):
        burner = FakeBurner()
        generator = SubtitleGenerator(
            config, FakeStitcher(JAPANESE_LINES), transcribe, burner=burner, probe=FakeProbe(height=720)
        )

        result = generator.generate(media_file, output_dir, burn=True)

        assert result.video_path == os.path.join(output_dir, "talk.subtitled.mp4")
        video, subtitles, directives, _ = burner.calls[0]
        assert video == media_file
        assert subtitles.startswith("1\n00:00:00,000 --> 00:00:02,500\nこんにちは\n")
        assert "Fontsize=16" in directives
        assert "MarginV=36" in directives
        # The temporary subtitle file is gone
        assert os.listdir(config['temp_dir']) == []

    def test_burn_requires_burner(self, config, media_file, output_dir):
        generator = SubtitleGenerator(config, FakeStitcher(JAPANESE_LINES), transcribe)
        with pytest.raises(ChunkSubError):
            generator.generate(media_file, output_dir, burn=True)

    def test_unwritable_temp_dir(self, config, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("x")
        config['temp_dir'] = str(blocker)
        with pytest.raises(ChunkSubError):
            SubtitleGenerator(config, FakeStitcher(), transcribe)


class TestRenderFromTranscript:

    def test_from_edited_srt(self, config, tmp_path, output_dir):
        edited = tmp_path / "edited.srt"
        edited.write_text("1\n00:00:01,000 --> 00:00:03,000\n修正済み\n", encoding="utf-8")
        generator = SubtitleGenerator(config, FakeStitcher(), None)

        result = generator.render_from_transcript(str(edited), output_dir, language_mode="both")

        assert result.line_count == 1
        with open(os.path.join(output_dir, "edited.ass"), encoding="utf-8") as f:
            assert f.read().endswith("Dialogue: 0,0:00:01.00,0:00:03.00,Default,,0,0,0,,修正済み")

    def test_from_json_with_burn(self, config, tmp_path, output_dir, media_file):
        transcript = tmp_path / "talk.transcript.json"
        transcript.write_text(json.dumps([{"start": 0, "end": 2, "text": "字幕"}]), encoding="utf-8")
        burner = FakeBurner()
        generator = SubtitleGenerator(config, FakeStitcher(), None, burner=burner, probe=FakeProbe(height=1080))

        result = generator.render_from_transcript(str(transcript), output_dir, video_path=media_file)

        assert set(result.subtitle_paths.values()) == {
            os.path.join(output_dir, "talk.srt"), os.path.join(output_dir, "talk.ass"),
        }
        assert result.video_path == os.path.join(output_dir, "talk.subtitled.mp4")
        assert "Fontsize=19" in burner.calls[0][2]

    def test_invalid_transcript(self, config, tmp_path, output_dir):
        transcript = tmp_path / "bad.json"
        transcript.write_text('[{"start": 5, "end": 1, "text": "x"}]', encoding="utf-8")
        generator = SubtitleGenerator(config, FakeStitcher(), None)
        with pytest.raises(ChunkSubError):
            generator.render_from_transcript(str(transcript), output_dir)

    def test_empty_transcript(self, config, tmp_path, output_dir):
        transcript = tmp_path / "empty.json"
        transcript.write_text("[]", encoding="utf-8")
        generator = SubtitleGenerator(config, FakeStitcher(), None)
        with pytest.raises(ChunkSubError):
            generator.render_from_transcript(str(transcript), output_dir)
