"""Tests for window planning and segment extraction."""

import random

import pytest

from chunksub.exceptions import ExtractError, PipelineCancelled, ProbeError
from chunksub.segmenter import AudioSegmenter, plan_windows

from conftest import FakeExtractor, FakeProbe, leftover_files


class TestPlanWindows:

    def test_reference_scenario(self):
        windows = plan_windows(500, 240, 5)
        assert [start for start, _ in windows] == [0, 240, 480]
        assert windows[0] == (0, 245)
        assert windows[-1] == (480, 20)

    def test_segment_count_is_ceiling(self):
        assert len(plan_windows(480, 240, 5)) == 2
        assert len(plan_windows(480.5, 240, 5)) == 3
        assert len(plan_windows(10, 240, 5)) == 1

    def test_no_overlap(self):
        assert plan_windows(100, 40, 0) == [(0, 40), (40, 40), (80, 20)]

    def test_coverage_without_gaps(self):
        rng = random.Random(42)
        for _ in range(200):
            total = rng.uniform(0.5, 5000)
            seg = rng.uniform(1, 600)
            overlap = rng.choice([0, rng.uniform(0, 30)])
            windows = plan_windows(total, seg, overlap)

            assert windows[0][0] == 0
            for (start, duration), (next_start, _) in zip(windows, windows[1:]):
                assert next_start - start == pytest.approx(seg)
                assert start + duration >= next_start - 1e-9
            last_start, last_duration = windows[-1]
            assert last_start + last_duration == pytest.approx(total)
            assert all(duration > 0 for _, duration in windows)

    @pytest.mark.parametrize("seg, overlap", [(0, 5), (-1, 5), (240, -1)])
    def test_rejects_bad_parameters(self, seg, overlap):
        with pytest.raises(ValueError):
            plan_windows(500, seg, overlap)


class TestAudioSegmenter:

    def test_segments_in_order(self, source_file, segment_dir):
        extractor = FakeExtractor()
        segmenter = AudioSegmenter(FakeProbe(500), extractor, temp_dir=segment_dir)

        segments = segmenter.segment(source_file, 240, 5)

        assert [s.index for s in segments] == [0, 1, 2]
        assert [s.start_offset for s in segments] == [0, 240, 480]
        assert [s.requested_duration for s in segments] == [245, 245, 20]
        assert extractor.calls == [(0, 245), (240, 245), (480, 20)]
        assert len(leftover_files(segment_dir)) == 3
        assert all(s.path.endswith(".mp3") for s in segments)

        for segment in segments:
            segment.release()
            segment.release()
        assert leftover_files(segment_dir) == []

    def test_extract_failure_removes_earlier_segments(self, source_file, segment_dir):
        segmenter = AudioSegmenter(FakeProbe(500), FakeExtractor(fail_at=1), temp_dir=segment_dir)

        with pytest.raises(ExtractError):
            segmenter.segment(source_file, 240, 5)
        assert leftover_files(segment_dir) == []

    def test_probe_failure(self, source_file, segment_dir):
        segmenter = AudioSegmenter(FakeProbe(None), FakeExtractor(), temp_dir=segment_dir)
        with pytest.raises(ProbeError):
            segmenter.segment(source_file, 240, 5)

    def test_missing_source(self, tmp_path, segment_dir):
        segmenter = AudioSegmenter(FakeProbe(500), FakeExtractor(), temp_dir=segment_dir)
        with pytest.raises(FileNotFoundError):
            segmenter.segment(str(tmp_path / "missing.mp3"), 240, 5)

    def test_cancelled_before_extraction(self, source_file, segment_dir):
        import threading
        cancel = threading.Event()
        cancel.set()
        extractor = FakeExtractor()
        segmenter = AudioSegmenter(FakeProbe(500), extractor, temp_dir=segment_dir)

        with pytest.raises(PipelineCancelled):
            segmenter.segment(source_file, 240, 5, cancel_event=cancel)
        assert extractor.calls == []
        assert leftover_files(segment_dir) == []

    def test_invalid_parameters(self, source_file, segment_dir):
        segmenter = AudioSegmenter(FakeProbe(500), FakeExtractor(), temp_dir=segment_dir)
        with pytest.raises(ValueError):
            segmenter.segment(source_file, 0, 5)
        with pytest.raises(ValueError):
            segmenter.segment(source_file, 240, -0.5)
