"""Decision data models."""

from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional, Tuple


class DecisionReason(Enum):
    SPEECH_PRESERVATION = "speechPreservation"
    POOR_QUALITY_SPEECH = "poorQualitySpeech"
    NOISE_REMOVAL = "noiseRemoval"
    MUSIC_PRESERVATION = "musicPreservation"
    SILENCE_REMOVAL = "silenceRemoval"
    QUALITY_THRESHOLD = "qualityThreshold"
    BELOW_QUALITY_THRESHOLD = "belowQualityThreshold"
    SHORT_SEGMENT_PRESERVATION = "shortSegmentPreservation"


@dataclass(frozen=True)
class SegmentDecision:
    """Keep/remove judgment for one segment."""
    should_keep: bool
    quality_score: float
    reason: DecisionReason
    suggested_cut: Optional[Tuple[float, float]] = None


@dataclass
class DecisionStatistics:
    """Running decision totals. Diagnostic only."""
    total_decisions: int = 0
    kept: int = 0
    removed: int = 0
    average_quality: float = 0.0
    reason_counts: Dict[DecisionReason, int] = field(default_factory=Counter)
    classifier_disagreements: int = 0

    @property
    def keep_percentage(self) -> float:
        if self.total_decisions == 0:
            return 0.0
        return self.kept / self.total_decisions * 100.0

    @property
    def remove_percentage(self) -> float:
        if self.total_decisions == 0:
            return 0.0
        return self.removed / self.total_decisions * 100.0

    @property
    def most_common_reason(self) -> Optional[DecisionReason]:
        if not self.reason_counts:
            return None
        return max(self.reason_counts.items(), key=lambda item: item[1])[0]
