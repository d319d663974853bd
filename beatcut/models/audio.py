"""Audio-related data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

import numpy as np


@dataclass(frozen=True, eq=False)
class AudioBuffer:
    """A timestamped view over decoded mono float samples.

    The samples array is referenced, not copied. Buffers are produced by an
    external decode stage and only live for the duration of one analysis call.
    """
    samples: np.ndarray
    sample_rate: float
    timestamp: float  # Presentation time of the first sample (seconds)

    @property
    def frame_count(self) -> int:
        return int(self.samples.shape[0]) if self.samples.ndim > 0 else 0

    @property
    def duration(self) -> float:
        if self.sample_rate <= 0:
            return 0.0
        return self.frame_count / self.sample_rate

    @property
    def end_time(self) -> float:
        return self.timestamp + self.duration


@dataclass
class SilenceSegment:
    """A run of silent windows long enough to count as silence."""
    start_time: float
    end_time: float
    average_level_db: float
    confidence: float

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time


@dataclass
class RMSAnalysisResult:
    """Per-window loudness for one buffer."""
    rms_values: np.ndarray
    timestamps: np.ndarray
    silence_segments: List[SilenceSegment]
    silent_window_count: int
    threshold_db: float

    @property
    def average_rms(self) -> float:
        return float(np.mean(self.rms_values)) if self.rms_values.size else 0.0

    @property
    def peak_rms(self) -> float:
        return float(np.max(self.rms_values)) if self.rms_values.size else 0.0


class BandType(Enum):
    """Frequency band a beat was detected in."""
    BASS = "bass"
    SNARE = "snare"
    HIHAT = "hihat"


@dataclass
class BeatPoint:
    """A raw beat fired by the detector."""
    timestamp: float
    strength: float
    band: BandType
    confidence: float
    is_downbeat: bool = False


@dataclass
class BeatMarker:
    """One slot of the refined beat grid."""
    timestamp: float
    strength: float
    band: Optional[BandType]
    confidence: float
    is_downbeat: bool = False
    interpolated: bool = False
    source_timestamp: Optional[float] = None  # Raw beat attached to this slot


@dataclass
class BeatDetectionResult:
    """Output of one beat detector call."""
    beats: List[BeatPoint]
    tempo: float  # 0.0 until an estimate exists
    rhythm_strength: float
    insufficient_history: bool = False
    frames_processed: int = 0


@dataclass
class AnalyzerStats:
    """Performance counters for one analyzer."""
    name: str
    analysis_count: int = 0
    failure_count: int = 0
    total_processing_time: float = 0.0

    @property
    def average_processing_time(self) -> float:
        if self.analysis_count == 0:
            return 0.0
        return self.total_processing_time / self.analysis_count


@dataclass
class RMSAnalyzerStats(AnalyzerStats):
    adaptive_threshold_db: float = 0.0
    silence_segments_emitted: int = 0


@dataclass
class BeatDetectorStats(AnalyzerStats):
    estimated_tempo: float = 0.0
    beats_detected: int = 0
    frames_processed: int = 0
