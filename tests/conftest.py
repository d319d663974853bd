"""Pytest configuration and fixtures for beatcut tests."""

import pytest
import tempfile
import time
import logging
from typing import Callable, Iterable, List, Optional

import numpy as np

from beatcut.classification import AbstractContentClassifier
from beatcut.config import AnalysisConfig
from beatcut.models import (
    AnalyzedSegment,
    AudioBuffer,
    AudioSegment,
    ContentAnalysis,
    ContentType,
    RhythmAnalysis,
    SilenceAnalysis,
)


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100


class ScriptedClassifier(AbstractContentClassifier):
    """Classifier test double driven by a function of the buffer."""

    name = "scripted"

    def __init__(self,
                 script: Optional[Callable[[AudioBuffer], ContentAnalysis]] = None,
                 delay: float = 0.0,
                 fail_at: Iterable[float] = ()):
        self.script = script or (lambda buffer: ContentAnalysis.from_probabilities(0.8, 0.1, 0.1))
        self.delay = delay
        self.fail_at = list(fail_at)
        self.calls: List[float] = []

    def classify(self, buffer: AudioBuffer) -> ContentAnalysis:
        if self.delay:
            time.sleep(self.delay)
        self.calls.append(buffer.timestamp)
        if any(abs(buffer.timestamp - t) < 1e-9 for t in self.fail_at):
            raise ValueError(f"scripted failure at {buffer.timestamp}")
        return self.script(buffer)

    def initialize(self) -> bool:
        return True

    def cleanup(self) -> None:
        pass


def make_buffers(samples: np.ndarray, buffer_size: int, sample_rate: int = SAMPLE_RATE,
                 start_time: float = 0.0) -> List[AudioBuffer]:
    return [
        AudioBuffer(samples=samples[i:i + buffer_size], sample_rate=sample_rate,
                    timestamp=start_time + i / sample_rate)
        for i in range(0, len(samples), buffer_size)
    ]


def click_track(bpm: float, duration: float, sample_rate: int = SAMPLE_RATE,
                offset: float = 0.0) -> np.ndarray:
    """Single-sample clicks at a steady tempo over silence."""
    samples = np.zeros(int(duration * sample_rate), dtype=np.float32)
    interval = 60.0 / bpm
    positions = np.round(np.arange(offset, duration, interval) * sample_rate).astype(int)
    samples[positions[positions < samples.size]] = 1.0
    return samples


def tone(duration: float, amplitude: float = 0.05, freq: float = 440.0,
         sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    t = np.arange(int(duration * sample_rate)) / sample_rate
    return (amplitude * np.sin(2 * np.pi * freq * t)).astype(np.float32)


def near_silence(duration: float, sample_rate: int = SAMPLE_RATE, seed: int = 7) -> np.ndarray:
    rng = np.random.default_rng(seed)
    return (rng.standard_normal(int(duration * sample_rate)) * 1e-5).astype(np.float32)


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def default_config():
    return AnalysisConfig()


@pytest.fixture
def scripted_classifier():
    return ScriptedClassifier()


@pytest.fixture
def silence_buffers():
    """10 buffers of near-zero audio covering 0.0-2.0s."""
    return make_buffers(near_silence(2.0), buffer_size=int(0.2 * SAMPLE_RATE))


@pytest.fixture
def click_buffers():
    """8 seconds of a 120 BPM click track in 0.1s buffers."""
    return make_buffers(click_track(120, 8.0), buffer_size=4410)


@pytest.fixture
def segment_factory():
    """Build AnalyzedSegments without running the analyzers."""
    def _make(content_type: ContentType = ContentType.SPEECH,
              confidence: float = 0.8,
              start: float = 0.0,
              end: float = 1.0,
              rms_level: float = 0.05,
              quality_score: float = 0.0,
              silence: Optional[SilenceAnalysis] = None,
              rhythm: Optional[RhythmAnalysis] = None,
              video_quality: Optional[float] = None) -> AnalyzedSegment:
        rest = (1.0 - confidence) / 2
        probabilities = {ContentType.SPEECH: rest, ContentType.MUSIC: rest, ContentType.NOISE: rest}
        probabilities[content_type] = confidence
        content = ContentAnalysis(
            content_type=content_type,
            confidence=confidence,
            speech_probability=probabilities[ContentType.SPEECH],
            music_probability=probabilities[ContentType.MUSIC],
            noise_probability=probabilities[ContentType.NOISE],
        )
        return AnalyzedSegment(
            segment=AudioSegment(
                start_time=start,
                end_time=end,
                rms_level=rms_level,
                classification=content_type,
                quality_score=quality_score,
                silence=silence or SilenceAnalysis(),
            ),
            content=content,
            rhythm=rhythm or RhythmAnalysis(),
            video_quality=video_quality,
        )
    return _make
