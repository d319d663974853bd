"""Ordered keep/remove rules. The first rule that applies decides."""

from dataclasses import dataclass
from typing import Callable, Optional, Tuple

from ..config import AnalysisConfig
from ..models.content import ContentType
from ..models.decision import DecisionReason
from ..models.segment import AnalyzedSegment

# (segment, quality, config) -> applies?
Predicate = Callable[[AnalyzedSegment, float, AnalysisConfig], bool]
# (segment, quality, config) -> (should_keep, reason)
Outcome = Callable[[AnalyzedSegment, float, AnalysisConfig], Tuple[bool, DecisionReason]]


@dataclass(frozen=True)
class DecisionRule:
    name: str
    applies: Predicate
    decide: Outcome


def _speech_outcome(segment: AnalyzedSegment, quality: float, config: AnalysisConfig) -> Tuple[bool, DecisionReason]:
    if quality > 0.2 or segment.content.confidence > 0.7:
        return True, DecisionReason.SPEECH_PRESERVATION
    return False, DecisionReason.POOR_QUALITY_SPEECH


def _threshold_outcome(segment: AnalyzedSegment, quality: float, config: AnalysisConfig) -> Tuple[bool, DecisionReason]:
    if quality >= config.quality_threshold:
        return True, DecisionReason.QUALITY_THRESHOLD
    return False, DecisionReason.BELOW_QUALITY_THRESHOLD


DECISION_RULES = (
    DecisionRule(
        name="speech",
        applies=lambda s, q, c: s.content_type is ContentType.SPEECH,
        decide=_speech_outcome,
    ),
    DecisionRule(
        name="noise",
        applies=lambda s, q, c: s.content_type is ContentType.NOISE and q < 0.3,
        decide=lambda s, q, c: (False, DecisionReason.NOISE_REMOVAL),
    ),
    DecisionRule(
        name="music",
        applies=lambda s, q, c: s.content_type is ContentType.MUSIC and q > 0.6,
        decide=lambda s, q, c: (True, DecisionReason.MUSIC_PRESERVATION),
    ),
    DecisionRule(
        name="silence",
        applies=lambda s, q, c: s.segment.silence.is_silence
        and s.segment.silence.duration >= c.minimum_silence_duration,
        decide=lambda s, q, c: (False, DecisionReason.SILENCE_REMOVAL),
    ),
    DecisionRule(
        name="quality",
        applies=lambda s, q, c: True,
        decide=_threshold_outcome,
    ),
)


def first_matching_rule(segment: AnalyzedSegment, quality: float,
                        config: AnalysisConfig) -> Optional[DecisionRule]:
    for rule in DECISION_RULES:
        if rule.applies(segment, quality, config):
            return rule
    return None
