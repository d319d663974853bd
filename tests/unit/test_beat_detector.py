"""Unit tests for BeatDetector and beat-grid refinement."""

import numpy as np
import pytest

from beatcut.audio.beats import BeatDetector, refine_beat_grid
from beatcut.config import AnalysisConfig, BeatDetectionSettings
from beatcut.errors import AnalysisFailed
from beatcut.models import AudioBuffer, BandType, BeatPoint

from conftest import SAMPLE_RATE, click_track, make_buffers


def detect_all(detector, buffers):
    beats = []
    for buffer in buffers:
        beats.extend(detector.process(buffer).beats)
    return beats


@pytest.mark.unit
class TestBeatDetector:
    """Test cases for BeatDetector."""
    
    def test_120_bpm_click_track(self, default_config, click_buffers):
        detector = BeatDetector(default_config)
        
        beats = detect_all(detector, click_buffers)
        
        assert len(beats) >= 12
        assert detector.tempo == pytest.approx(120.0, abs=2.0)
        assert detector.rhythm_strength > 0.5
        assert all(0.0 <= beat.confidence <= 1.0 for beat in beats)
    
    def test_beats_land_on_clicks(self, default_config, click_buffers):
        detector = BeatDetector(default_config)
        
        beats = detect_all(detector, click_buffers)
        
        for beat in beats:
            nearest_click = round(beat.timestamp / 0.5) * 0.5
            assert beat.timestamp == pytest.approx(nearest_click, abs=1e-3)
    
    def test_buffer_size_does_not_change_beats(self, default_config):
        signal = click_track(100, 6.0)
        small = detect_all(BeatDetector(default_config), make_buffers(signal, 1000))
        large = detect_all(BeatDetector(default_config), make_buffers(signal, 8820))
        
        assert [b.timestamp for b in small] == pytest.approx([b.timestamp for b in large])
    
    def test_debounce_suppresses_close_onsets(self, default_config):
        signal = np.zeros(3 * SAMPLE_RATE, dtype=np.float32)
        signal[int(1.0 * SAMPLE_RATE)] = 1.0
        signal[int(1.05 * SAMPLE_RATE)] = 1.0
        detector = BeatDetector(default_config)
        
        beats = detect_all(detector, make_buffers(signal, 4096))
        
        assert len(beats) == 1
        assert beats[0].timestamp == pytest.approx(1.0, abs=1e-3)
    
    def test_silence_reports_insufficient_history_then_nothing(self, default_config):
        detector = BeatDetector(default_config)
        silence = np.zeros(SAMPLE_RATE, dtype=np.float32)
        
        first = detector.process(AudioBuffer(samples=silence[:4410], sample_rate=SAMPLE_RATE, timestamp=0.0))
        assert first.insufficient_history
        assert first.beats == []
        
        later = detector.process(AudioBuffer(samples=silence[4410:], sample_rate=SAMPLE_RATE, timestamp=0.1))
        assert not later.insufficient_history
        assert later.beats == []
        assert later.tempo == 0.0
    
    def test_frames_carry_across_buffers(self, default_config):
        detector = BeatDetector(default_config)
        
        result = detector.process(AudioBuffer(samples=np.zeros(3000, dtype=np.float32),
                                              sample_rate=SAMPLE_RATE, timestamp=0.0))
        assert result.frames_processed == 1
        
        result = detector.process(AudioBuffer(samples=np.zeros(3000, dtype=np.float32),
                                              sample_rate=SAMPLE_RATE, timestamp=3000 / SAMPLE_RATE))
        # Carried tail plus the new buffer holds frames starting at 1024, 2048 and 3072
        assert result.frames_processed == 3
    
    def test_empty_buffer_fails(self, default_config):
        detector = BeatDetector(default_config)
        
        with pytest.raises(AnalysisFailed):
            detector.process(AudioBuffer(samples=np.zeros(0, dtype=np.float32), sample_rate=SAMPLE_RATE, timestamp=0.0))
        assert detector.get_stats().failure_count == 1
    
    def test_tempo_outside_range_is_ignored(self):
        config = AnalysisConfig(tempo_range=(60.0, 100.0))
        detector = BeatDetector(config)
        
        detect_all(detector, make_buffers(click_track(150, 6.0), 4410))
        
        assert detector.tempo == 0.0
    
    def test_bass_heavy_onsets_are_downbeats(self, default_config):
        t = np.arange(int(0.05 * SAMPLE_RATE)) / SAMPLE_RATE
        kick = (np.sin(2 * np.pi * 80 * t) * np.exp(-t * 40)).astype(np.float32)
        signal = np.zeros(5 * SAMPLE_RATE, dtype=np.float32)
        # Kicks sit further apart than the energy history, so each meets a silent baseline
        for start in (1.0, 2.5, 4.0):
            i = int(start * SAMPLE_RATE)
            signal[i:i + kick.size] += kick
        detector = BeatDetector(default_config)
        
        beats = detect_all(detector, make_buffers(signal, 4096))
        
        assert len(beats) == 3
        assert all(beat.is_downbeat for beat in beats)
        assert all(beat.band is BandType.BASS for beat in beats)
    
    def test_threshold_constants_are_configurable(self):
        strict = AnalysisConfig(beat=BeatDetectionSettings(threshold_floor=1000.0))
        detector = BeatDetector(strict)
        
        beats = detect_all(detector, make_buffers(click_track(120, 4.0), 4410))
        
        # Only an onset against an all-zero history can clear a 1000x threshold
        assert len(beats) <= 1
    
    def test_stats(self, default_config, click_buffers):
        detector = BeatDetector(default_config)
        beats = detect_all(detector, click_buffers)
        
        stats = detector.get_stats()
        assert stats.analysis_count == len(click_buffers)
        assert stats.beats_detected == len(beats)
        assert stats.estimated_tempo == pytest.approx(detector.tempo)
        assert stats.frames_processed > 0


@pytest.mark.unit
class TestRefineBeatGrid:
    """Test cases for refine_beat_grid."""
    
    @staticmethod
    def beat(timestamp, downbeat=False, confidence=0.9):
        return BeatPoint(timestamp=timestamp, strength=1.0, band=BandType.BASS,
                         confidence=confidence, is_downbeat=downbeat)
    
    def test_missing_slot_is_interpolated(self):
        beats = [self.beat(0.0, downbeat=True), self.beat(0.5), self.beat(1.5)]
        
        grid = refine_beat_grid(beats, 0.5)
        
        assert [m.timestamp for m in grid] == pytest.approx([0.0, 0.5, 1.0, 1.5])
        assert [m.interpolated for m in grid] == [False, False, True, False]
        assert grid[2].confidence == 0.5
        assert grid[2].band is None
        assert grid[0].is_downbeat
        assert grid[1].confidence == 0.9
    
    def test_jittered_beats_attach_within_thirty_percent(self):
        beats = [self.beat(0.0), self.beat(0.6), self.beat(1.17)]
        
        grid = refine_beat_grid(beats, 0.5)
        
        assert len(grid) == 3
        assert grid[1].interpolated is False
        assert grid[1].source_timestamp == pytest.approx(0.6)
        assert grid[2].interpolated is True
    
    def test_grid_extends_to_end_time(self):
        grid = refine_beat_grid([self.beat(1.0)], 0.5, end_time=3.0)
        
        assert [m.timestamp for m in grid] == pytest.approx([1.0, 1.5, 2.0, 2.5, 3.0])
        assert sum(not m.interpolated for m in grid) == 1
    
    def test_unordered_input(self):
        grid = refine_beat_grid([self.beat(1.0), self.beat(0.0), self.beat(0.5)], 0.5)
        
        assert [m.source_timestamp for m in grid] == pytest.approx([0.0, 0.5, 1.0])
    
    def test_empty_input(self):
        assert refine_beat_grid([], 0.5) == []
        assert refine_beat_grid([self.beat(0.0)], 0.0) == []
