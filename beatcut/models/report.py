"""Pipeline state and report models."""

from dataclasses import dataclass
from enum import Enum
from typing import List

from .audio import BeatDetectorStats, BeatMarker, BeatPoint, RMSAnalyzerStats, SilenceSegment
from .decision import DecisionStatistics
from .segment import AnalyzedSegment


class PipelineState(Enum):
    IDLE = "idle"
    ANALYZING = "analyzing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass
class PipelineStatistics:
    sessions_completed: int = 0
    sessions_cancelled: int = 0
    sessions_failed: int = 0
    buffers_processed: int = 0
    buffers_dropped: int = 0
    segment_count: int = 0
    total_processing_time: float = 0.0


@dataclass
class AnalysisReport:
    """Everything one analysis session produced."""
    session_id: str
    segments: List[AnalyzedSegment]
    silence_segments: List[SilenceSegment]
    beats: List[BeatPoint]
    beat_grid: List[BeatMarker]
    tempo: float
    decision_statistics: DecisionStatistics
    rms_stats: RMSAnalyzerStats
    beat_stats: BeatDetectorStats
    buffer_count: int = 0
    dropped_buffers: int = 0
    processing_time: float = 0.0

    @property
    def kept_segments(self) -> List[AnalyzedSegment]:
        return [s for s in self.segments if s.decision is not None and s.decision.should_keep]

    @property
    def removed_segments(self) -> List[AnalyzedSegment]:
        return [s for s in self.segments if s.decision is not None and not s.decision.should_keep]
