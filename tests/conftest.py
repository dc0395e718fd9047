"""Shared fakes for the pipeline tests: no ffmpeg, no models, no network."""

import os
import sys
import textwrap

import pytest

from chunksub.exceptions import ExtractError, ProbeError
from chunksub.models import TranscriptLine
from chunksub.segmenter import AudioSegmenter


class FakeProbe:
    """Reports a fixed duration/height instead of running ffprobe."""

    def __init__(self, duration=500.0, height=1080):
        self.duration = duration
        self.height = height

    def probe_duration(self, path, cancel_event=None):
        if self.duration is None:
            raise ProbeError(f"Could not determine duration of {path}")
        return self.duration

    def probe_video_height(self, path, cancel_event=None):
        return self.height


class FakeExtractor:
    """Writes "start:duration" into each segment file; optionally fails on one call."""

    def __init__(self, fail_at=None):
        self.fail_at = fail_at
        self.calls = []

    def extract_range(self, source_path, start_sec, duration_sec, output_path, cancel_event=None):
        index = len(self.calls)
        self.calls.append((start_sec, duration_sec))
        if index == self.fail_at:
            raise ExtractError(f"ffmpeg failed on range {start_sec}+{duration_sec}")
        with open(output_path, 'wb') as f:
            f.write(f"{start_sec:g}:{duration_sec:g}".encode('utf-8'))
        return output_path


def chunk_start(audio_bytes):
    """Recovers the window start a FakeExtractor wrote into a segment."""
    return float(audio_bytes.decode('utf-8').split(':')[0])


@pytest.fixture
def source_file(tmp_path):
    path = tmp_path / "lecture.mp3"
    path.write_bytes(b"not really audio")
    return str(path)


@pytest.fixture
def segment_dir(tmp_path):
    path = tmp_path / "segments"
    path.mkdir()
    return str(path)


@pytest.fixture
def make_segmenter(segment_dir):
    def _make(duration=500.0, fail_at=None):
        return AudioSegmenter(FakeProbe(duration), FakeExtractor(fail_at=fail_at), temp_dir=segment_dir)
    return _make


@pytest.fixture
def sample_lines():
    return [
        TranscriptLine(0, 2.5, "こんにちは"),
        TranscriptLine(2.5, 5, "元気ですか"),
    ]


def leftover_files(directory):
    return sorted(os.listdir(directory))


def make_tool(directory, name, script):
    """
    Writes an executable stand-in for ffmpeg/ffprobe into directory.

    script is Python source run by the current interpreter; the command line
    arrives in sys.argv as it would for the real tool.
    """
    body_path = os.path.join(str(directory), f"{name}_body.py")
    with open(body_path, 'w', encoding='utf-8') as f:
        f.write("import json, sys, time\n" + textwrap.dedent(script))
    tool_path = os.path.join(str(directory), name)
    with open(tool_path, 'w', encoding='utf-8') as f:
        f.write(f'#!/bin/sh\nexec "{sys.executable}" "{body_path}" "$@"\n')
    os.chmod(tool_path, 0o755)
    return tool_path
