"""Quality scoring and keep/remove decisions for analyzed segments."""

import copy
import logging
import threading
from typing import List, Sequence, Tuple

import numpy as np

from ..audio.buffer import RingBuffer
from ..audio.rms import rms_to_db
from ..config import AnalysisConfig
from ..models.content import ContentType
from ..models.decision import DecisionReason, DecisionStatistics, SegmentDecision
from ..models.segment import AnalyzedSegment
from .rules import first_matching_rule

logger = logging.getLogger(__name__)

SHORT_SEGMENT_DURATION = 1.0

# Weight of each content type in the classification factor
CLASSIFICATION_WEIGHTS = {
    ContentType.SPEECH: 1.0,
    ContentType.MUSIC: 0.7,
    ContentType.NOISE: 0.3,
}


class DecisionEngine:
    """Scores segments and applies the ordered decision rules.

    Decisions depend only on the segment and the configuration. The engine
    keeps a bounded history and running totals for diagnostics.
    """
    
    HISTORY_SIZE = 100
    
    def __init__(self, config: AnalysisConfig):
        """Initialize decision engine.
        
        Args:
            config: Validated analysis settings
        """
        self.config = config
        self.history: RingBuffer[Tuple[float, SegmentDecision]] = RingBuffer(self.HISTORY_SIZE)
        self.stats_lock = threading.Lock()
        self._stats = DecisionStatistics()
        logger.info(f"DecisionEngine initialized: quality threshold={config.quality_threshold}, "
                   f"rhythm={config.rhythm_mode.value}")
    
    # Scoring
    
    def quality_score(self, segment: AnalyzedSegment) -> float:
        """Composite suitability score in [0, 1]."""
        score = (0.5
                 + 0.3 * self.audio_level_factor(rms_to_db(segment.segment.rms_level))
                 + 0.4 * self.classification_factor(segment)
                 + 0.2 * self.silence_factor(segment))
        
        if self.config.rhythm_mode.enabled:
            score += 0.1 * self.rhythm_factor(segment)
        
        if segment.video_quality is not None:
            score = 0.9 * score + 0.1 * segment.video_quality
        
        return float(np.clip(score, 0.0, 1.0))
    
    def audio_level_factor(self, level_db: float) -> float:
        level = self.config.level
        
        if level.optimal_min_db <= level_db <= level.optimal_max_db:
            return 1.0
        if level.floor_db <= level_db < level.optimal_min_db:
            span = level.optimal_min_db - level.floor_db
            return 0.5 + 0.5 * (level_db - level.floor_db) / span
        if level.optimal_max_db < level_db <= level.clipping_db:
            span = level.clipping_db - level.optimal_max_db
            return 1.0 - 0.3 * (level_db - level.optimal_max_db) / span
        if level_db > level.clipping_db:
            return 0.2
        return 0.0
    
    def classification_factor(self, segment: AnalyzedSegment) -> float:
        content = segment.content
        weight = CLASSIFICATION_WEIGHTS[content.content_type]
        if content.content_type is ContentType.NOISE:
            return (1.0 - content.confidence) * weight
        return content.confidence * weight
    
    def silence_factor(self, segment: AnalyzedSegment) -> float:
        silence = segment.segment.silence
        if silence.is_silence:
            return -0.5 * silence.confidence
        return 0.2
    
    def rhythm_factor(self, segment: AnalyzedSegment) -> float:
        if segment.rhythm.is_rhythmic:
            return 0.3 * segment.rhythm.rhythm_strength
        return 0.0
    
    # Decisions
    
    def apply_rules(self, segment: AnalyzedSegment, quality: float) -> SegmentDecision:
        """Decide a segment with an already-computed quality score."""
        rule = first_matching_rule(segment, quality, self.config)
        should_keep, reason = rule.decide(segment, quality, self.config)
        
        suggested_cut = None if should_keep else (segment.start_time, segment.end_time)
        return SegmentDecision(
            should_keep=should_keep,
            quality_score=quality,
            reason=reason,
            suggested_cut=suggested_cut,
        )
    
    def evaluate_segment(self, segment: AnalyzedSegment) -> SegmentDecision:
        """Score and decide a single segment."""
        decision = self.apply_rules(segment, self.quality_score(segment))
        self._record(segment, decision)
        return decision
    
    def evaluate_segments(self, segments: Sequence[AnalyzedSegment],
                          rescore: bool = True) -> List[SegmentDecision]:
        """Score and decide an ordered sequence, then smooth out short interior cuts.
        
        Args:
            segments: Segments sorted by start time
            rescore: Recompute each quality score; when False, decide on the
                segment's stored quality_score (e.g. the duration-weighted
                score of a merged segment)
            
        Returns:
            One decision per segment, in the same order
        """
        if rescore:
            qualities = [self.quality_score(s) for s in segments]
        else:
            qualities = [s.quality_score for s in segments]
        decisions = [self.apply_rules(s, q) for s, q in zip(segments, qualities)]
        decisions = self.optimize_decisions(segments, decisions)
        
        for segment, decision in zip(segments, decisions):
            self._record(segment, decision)
        
        logger.debug(f"Evaluated {len(decisions)} segments: "
                    f"{sum(d.should_keep for d in decisions)} kept")
        return decisions
    
    def optimize_decisions(self, segments: Sequence[AnalyzedSegment],
                           decisions: List[SegmentDecision]) -> List[SegmentDecision]:
        """Keep short removals sandwiched between two keeps."""
        optimized = list(decisions)
        
        for i in range(1, len(decisions) - 1):
            current = decisions[i]
            if current.should_keep:
                continue
            if not (decisions[i - 1].should_keep and decisions[i + 1].should_keep):
                continue
            if segments[i].duration >= SHORT_SEGMENT_DURATION:
                continue
            
            logger.debug(f"Preserving short segment {segments[i].start_time:.3f}-{segments[i].end_time:.3f}s "
                        f"(was {current.reason.value})")
            optimized[i] = SegmentDecision(
                should_keep=True,
                quality_score=current.quality_score,
                reason=DecisionReason.SHORT_SEGMENT_PRESERVATION,
            )
        
        return optimized
    
    # Statistics
    
    def _record(self, segment: AnalyzedSegment, decision: SegmentDecision) -> None:
        self.history.append((segment.start_time, decision))
        
        with self.stats_lock:
            stats = self._stats
            stats.total_decisions += 1
            if decision.should_keep:
                stats.kept += 1
            else:
                stats.removed += 1
            stats.average_quality += (decision.quality_score - stats.average_quality) / stats.total_decisions
            stats.reason_counts[decision.reason] += 1
            if decision.should_keep != segment.content.should_preserve:
                stats.classifier_disagreements += 1
    
    @property
    def statistics(self) -> DecisionStatistics:
        """Snapshot of the running totals."""
        with self.stats_lock:
            return copy.deepcopy(self._stats)
    
    def recent_decisions(self, count: int = 10) -> List[Tuple[float, SegmentDecision]]:
        """Most recent (segment start, decision) pairs, oldest first."""
        return self.history.recent(count)
    
    def reset_statistics(self) -> None:
        with self.stats_lock:
            self._stats = DecisionStatistics()
        self.history.clear()
        logger.debug("Decision statistics reset")
