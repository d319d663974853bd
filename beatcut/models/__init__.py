"""Data models for beatcut."""

from .audio import (
    AudioBuffer,
    SilenceSegment,
    RMSAnalysisResult,
    BandType,
    BeatPoint,
    BeatMarker,
    BeatDetectionResult,
    AnalyzerStats,
    RMSAnalyzerStats,
    BeatDetectorStats,
)
from .content import ContentType, ContentAnalysis
from .decision import DecisionReason, SegmentDecision, DecisionStatistics
from .segment import (
    SilenceAnalysis,
    BeatAlignment,
    RhythmAnalysis,
    AudioSegment,
    AnalyzedSegment,
)
from .events import SessionEventType, BufferAnalyzedEvent, BufferFailedEvent, SessionEvent
from .report import PipelineState, PipelineStatistics, AnalysisReport

__all__ = [
    "AudioBuffer",
    "SilenceSegment",
    "RMSAnalysisResult",
    "BandType",
    "BeatPoint",
    "BeatMarker",
    "BeatDetectionResult",
    "AnalyzerStats",
    "RMSAnalyzerStats",
    "BeatDetectorStats",
    "ContentType",
    "ContentAnalysis",
    "DecisionReason",
    "SegmentDecision",
    "DecisionStatistics",
    "SilenceAnalysis",
    "BeatAlignment",
    "RhythmAnalysis",
    "AudioSegment",
    "AnalyzedSegment",
    "SessionEventType",
    "BufferAnalyzedEvent",
    "BufferFailedEvent",
    "SessionEvent",
    "PipelineState",
    "PipelineStatistics",
    "AnalysisReport",
]
