"""Segment data models produced by the analysis pipeline."""

from dataclasses import dataclass, field
from typing import Optional, Tuple

from .audio import BeatPoint
from .content import ContentAnalysis, ContentType
from .decision import SegmentDecision

# Rhythmic material must sit inside this tempo band (BPM, exclusive)
RHYTHMIC_TEMPO_RANGE = (60.0, 200.0)
RHYTHMIC_STRENGTH_THRESHOLD = 0.5


@dataclass(frozen=True)
class SilenceAnalysis:
    is_silence: bool = False
    confidence: float = 0.0
    average_level_db: float = -200.0
    duration: float = 0.0


@dataclass(frozen=True)
class BeatAlignment:
    """Nearest detected beat relative to a segment start."""
    nearest_beat: BeatPoint
    offset: float
    is_aligned: bool


@dataclass(frozen=True)
class RhythmAnalysis:
    beats: Tuple[BeatPoint, ...] = ()
    tempo: float = 0.0
    rhythm_strength: float = 0.0

    @property
    def is_rhythmic(self) -> bool:
        low, high = RHYTHMIC_TEMPO_RANGE
        return self.rhythm_strength > RHYTHMIC_STRENGTH_THRESHOLD and low < self.tempo < high


@dataclass(frozen=True)
class AudioSegment:
    """Time range of audio with its measured level and classification."""
    start_time: float
    end_time: float
    rms_level: float
    classification: ContentType
    quality_score: float = 0.0
    silence: SilenceAnalysis = field(default_factory=SilenceAnalysis)
    beat_alignment: Optional[BeatAlignment] = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass(frozen=True)
class AnalyzedSegment:
    """An audio segment together with everything the analyzers said about it."""
    segment: AudioSegment
    content: ContentAnalysis
    rhythm: RhythmAnalysis = field(default_factory=RhythmAnalysis)
    video_quality: Optional[float] = None
    decision: Optional[SegmentDecision] = None

    @property
    def start_time(self) -> float:
        return self.segment.start_time

    @property
    def end_time(self) -> float:
        return self.segment.end_time

    @property
    def duration(self) -> float:
        return self.segment.duration

    @property
    def quality_score(self) -> float:
        return self.segment.quality_score

    @property
    def content_type(self) -> ContentType:
        return self.content.content_type
