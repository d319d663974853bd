"""Unit tests for the decision engine and its rules."""

import pytest

from beatcut.config import AnalysisConfig, RhythmMode
from beatcut.decision import DecisionEngine
from beatcut.decision.rules import first_matching_rule
from beatcut.models import ContentType, DecisionReason, RhythmAnalysis, SilenceAnalysis


@pytest.fixture
def engine(default_config):
    return DecisionEngine(default_config)


@pytest.mark.unit
class TestDecisionRules:
    """Rule ordering and outcomes with an explicit quality score."""
    
    def test_confident_speech_kept_despite_low_quality(self, engine, segment_factory):
        segment = segment_factory(ContentType.SPEECH, confidence=0.9)
        
        decision = engine.apply_rules(segment, 0.1)
        
        assert decision.should_keep
        assert decision.reason is DecisionReason.SPEECH_PRESERVATION
        assert decision.suggested_cut is None
    
    def test_unsure_low_quality_speech_removed(self, engine, segment_factory):
        segment = segment_factory(ContentType.SPEECH, confidence=0.6, start=2.0, end=3.5)
        
        decision = engine.apply_rules(segment, 0.1)
        
        assert not decision.should_keep
        assert decision.reason is DecisionReason.POOR_QUALITY_SPEECH
        assert decision.suggested_cut == (2.0, 3.5)
    
    def test_low_quality_noise_removed(self, engine, segment_factory):
        segment = segment_factory(ContentType.NOISE, confidence=0.9, start=1.0, end=2.0)
        
        decision = engine.apply_rules(segment, 0.2)
        
        assert not decision.should_keep
        assert decision.reason is DecisionReason.NOISE_REMOVAL
        assert decision.suggested_cut == (1.0, 2.0)
        assert decision.quality_score == 0.2
    
    def test_acceptable_noise_falls_through_to_threshold(self, engine, segment_factory):
        segment = segment_factory(ContentType.NOISE, confidence=0.9)
        
        decision = engine.apply_rules(segment, 0.5)
        
        assert decision.should_keep
        assert decision.reason is DecisionReason.QUALITY_THRESHOLD
    
    def test_good_music_kept(self, engine, segment_factory):
        decision = engine.apply_rules(segment_factory(ContentType.MUSIC), 0.7)
        
        assert decision.should_keep
        assert decision.reason is DecisionReason.MUSIC_PRESERVATION
    
    def test_long_silence_removed(self, engine, segment_factory):
        silence = SilenceAnalysis(is_silence=True, confidence=1.0, average_level_db=-90.0, duration=1.0)
        segment = segment_factory(ContentType.MUSIC, silence=silence)
        
        decision = engine.apply_rules(segment, 0.5)
        
        assert not decision.should_keep
        assert decision.reason is DecisionReason.SILENCE_REMOVAL
    
    def test_short_silence_uses_threshold(self, engine, segment_factory):
        silence = SilenceAnalysis(is_silence=True, confidence=1.0, duration=0.3)
        segment = segment_factory(ContentType.MUSIC, silence=silence)
        
        decision = engine.apply_rules(segment, 0.5)
        
        assert decision.reason is DecisionReason.QUALITY_THRESHOLD
    
    @pytest.mark.parametrize("quality,keep,reason", [
        (0.4, True, DecisionReason.QUALITY_THRESHOLD),
        (0.39, False, DecisionReason.BELOW_QUALITY_THRESHOLD),
    ])
    def test_quality_threshold_boundary(self, engine, segment_factory, quality, keep, reason):
        decision = engine.apply_rules(segment_factory(ContentType.MUSIC), quality)
        
        assert decision.should_keep is keep
        assert decision.reason is reason
    
    def test_speech_rule_wins_over_silence(self, default_config, segment_factory):
        silence = SilenceAnalysis(is_silence=True, confidence=1.0, duration=2.0)
        segment = segment_factory(ContentType.SPEECH, silence=silence)
        
        assert first_matching_rule(segment, 0.5, default_config).name == "speech"


@pytest.mark.unit
class TestQualityScore:
    """Test cases for the composite quality score."""
    
    @pytest.mark.parametrize("level_db,expected", [
        (-30.0, 1.0),
        (-40.0, 1.0),
        (-12.0, 1.0),
        (-50.0, 0.75),
        (-60.0, 0.5),
        (-9.0, 0.85),
        (-3.0, 0.2),
        (-70.0, 0.0),
    ])
    def test_audio_level_factor(self, engine, level_db, expected):
        assert engine.audio_level_factor(level_db) == pytest.approx(expected)
    
    def test_classification_factor(self, engine, segment_factory):
        assert engine.classification_factor(segment_factory(ContentType.SPEECH, 0.8)) == pytest.approx(0.8)
        assert engine.classification_factor(segment_factory(ContentType.MUSIC, 0.8)) == pytest.approx(0.56)
        assert engine.classification_factor(segment_factory(ContentType.NOISE, 0.8)) == pytest.approx(0.06)
    
    def test_noise_score(self, engine, segment_factory):
        # rms 0.05 is about -26 dB, inside the optimal band
        segment = segment_factory(ContentType.NOISE, confidence=0.9, rms_level=0.05)
        
        assert engine.quality_score(segment) == pytest.approx(0.5 + 0.3 + 0.4 * 0.03 + 0.2 * 0.2)
    
    def test_silence_lowers_score(self, engine, segment_factory):
        silence = SilenceAnalysis(is_silence=True, confidence=1.0, duration=1.0)
        segment = segment_factory(ContentType.NOISE, confidence=0.8, silence=silence)
        
        assert engine.quality_score(segment) == pytest.approx(0.5 + 0.3 + 0.4 * 0.06 - 0.2 * 0.5)
    
    def test_rhythm_counts_only_when_enabled(self, segment_factory):
        rhythm = RhythmAnalysis(tempo=120.0, rhythm_strength=0.8)
        segment = segment_factory(ContentType.NOISE, confidence=0.9, rhythm=rhythm)
        
        enabled = DecisionEngine(AnalysisConfig(rhythm_mode=RhythmMode.MODERATE)).quality_score(segment)
        disabled = DecisionEngine(AnalysisConfig(rhythm_mode=RhythmMode.DISABLED)).quality_score(segment)
        
        assert enabled - disabled == pytest.approx(0.1 * 0.3 * 0.8)
    
    def test_non_rhythmic_material_gets_no_bonus(self, engine, segment_factory):
        slow = segment_factory(ContentType.NOISE, confidence=0.9,
                               rhythm=RhythmAnalysis(tempo=50.0, rhythm_strength=0.9))
        
        assert engine.rhythm_factor(slow) == 0.0
    
    def test_video_quality_blend(self, engine, segment_factory):
        without = engine.quality_score(segment_factory(ContentType.NOISE, confidence=0.9))
        with_video = engine.quality_score(segment_factory(ContentType.NOISE, confidence=0.9, video_quality=0.0))
        
        assert with_video == pytest.approx(0.9 * without)
    
    def test_score_is_clamped(self, engine, segment_factory):
        for content_type in ContentType:
            for confidence in (0.0, 0.5, 1.0):
                for rms_level in (0.0, 1e-4, 0.05, 0.9):
                    for video_quality in (None, 0.0, 1.0):
                        segment = segment_factory(content_type, confidence=confidence,
                                                  rms_level=rms_level, video_quality=video_quality)
                        assert 0.0 <= engine.quality_score(segment) <= 1.0
    
    def test_confident_speech_saturates(self, engine, segment_factory):
        assert engine.quality_score(segment_factory(ContentType.SPEECH, confidence=0.8)) == 1.0


@pytest.mark.unit
class TestBatchDecisions:
    """evaluate_segments, optimisation and statistics."""
    
    @staticmethod
    def sandwich(segment_factory, middle_end):
        silence = SilenceAnalysis(is_silence=True, confidence=1.0, duration=middle_end - 2.0)
        return [
            segment_factory(ContentType.SPEECH, 0.9, start=0.0, end=2.0),
            segment_factory(ContentType.NOISE, 0.9, start=2.0, end=middle_end, silence=silence),
            segment_factory(ContentType.SPEECH, 0.9, start=middle_end, end=middle_end + 2.0),
        ]
    
    def test_short_removal_between_keeps_is_preserved(self, engine, segment_factory):
        decisions = engine.evaluate_segments(self.sandwich(segment_factory, 2.5))
        
        assert [d.should_keep for d in decisions] == [True, True, True]
        assert decisions[1].reason is DecisionReason.SHORT_SEGMENT_PRESERVATION
        assert decisions[1].suggested_cut is None
    
    def test_long_removal_stays_removed(self, engine, segment_factory):
        decisions = engine.evaluate_segments(self.sandwich(segment_factory, 3.5))
        
        assert [d.should_keep for d in decisions] == [True, False, True]
        assert decisions[1].reason is DecisionReason.SILENCE_REMOVAL
    
    def test_edge_segments_are_not_optimized(self, engine, segment_factory):
        silence = SilenceAnalysis(is_silence=True, confidence=1.0, duration=0.5)
        segments = [
            segment_factory(ContentType.NOISE, 0.9, start=0.0, end=0.5, silence=silence),
            segment_factory(ContentType.SPEECH, 0.9, start=0.5, end=2.0),
        ]
        
        decisions = engine.evaluate_segments(segments)
        
        assert decisions[0].reason is DecisionReason.SILENCE_REMOVAL
    
    def test_statistics_follow_final_decisions(self, engine, segment_factory):
        engine.evaluate_segments(self.sandwich(segment_factory, 2.5))
        
        stats = engine.statistics
        assert stats.total_decisions == 3
        assert stats.kept == 3
        assert stats.removed == 0
        assert stats.keep_percentage == 100.0
        assert stats.reason_counts[DecisionReason.SPEECH_PRESERVATION] == 2
        assert stats.reason_counts[DecisionReason.SHORT_SEGMENT_PRESERVATION] == 1
        assert stats.most_common_reason is DecisionReason.SPEECH_PRESERVATION
        # Confident noise would have been dropped by the classifier
        assert stats.classifier_disagreements == 1
    
    def test_statistics_snapshot_is_detached(self, engine, segment_factory):
        engine.evaluate_segment(segment_factory())
        
        snapshot = engine.statistics
        snapshot.kept = 99
        
        assert engine.statistics.kept == 1
    
    def test_history_is_bounded(self, engine, segment_factory):
        for i in range(150):
            engine.evaluate_segment(segment_factory(start=float(i), end=i + 1.0))
        
        assert len(engine.history) == DecisionEngine.HISTORY_SIZE
        recent = engine.recent_decisions(3)
        assert [start for start, _ in recent] == [147.0, 148.0, 149.0]
        assert engine.statistics.total_decisions == 150
    
    def test_reset_statistics(self, engine, segment_factory):
        engine.evaluate_segment(segment_factory())
        
        engine.reset_statistics()
        
        assert engine.statistics.total_decisions == 0
        assert engine.statistics.most_common_reason is None
        assert len(engine.history) == 0
    
    def test_average_quality(self, engine, segment_factory):
        engine.evaluate_segment(segment_factory(ContentType.SPEECH, 0.8))
        engine.evaluate_segment(segment_factory(ContentType.NOISE, 0.9))
        
        expected = (1.0 + (0.5 + 0.3 + 0.4 * 0.03 + 0.2 * 0.2)) / 2
        assert engine.statistics.average_quality == pytest.approx(expected)
    
    def test_stored_quality_is_used_without_rescoring(self, engine, segment_factory):
        segments = [
            segment_factory(ContentType.MUSIC, 0.8, start=0.0, end=2.0, quality_score=0.35),
            segment_factory(ContentType.MUSIC, 0.8, start=2.0, end=4.0, quality_score=0.65),
        ]
        
        rescored = engine.evaluate_segments(segments)
        stored = engine.evaluate_segments(segments, rescore=False)
        
        assert all(d.should_keep for d in rescored)
        assert [d.quality_score for d in stored] == [0.35, 0.65]
        assert stored[0].reason is DecisionReason.BELOW_QUALITY_THRESHOLD
        assert stored[1].reason is DecisionReason.MUSIC_PRESERVATION
