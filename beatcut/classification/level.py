"""Signal-level content classifier."""

import logging
import threading
from typing import Tuple

import numpy as np

from ..audio.buffer import RingBuffer
from ..audio.rms import rms_to_db
from ..config import SpeechSensitivity
from ..errors import AnalysisFailed
from ..models.audio import AudioBuffer
from ..models.content import ContentAnalysis
from .base import AbstractContentClassifier

logger = logging.getLogger(__name__)

# (upper dB bound, (speech, music, noise)), checked in order
LEVEL_PROFILES = (
    (-60.0, (0.1, 0.1, 0.9)),
    (-40.0, (0.2, 0.1, 0.8)),
    (-20.0, (0.8, 0.3, 0.2)),
    (-6.0, (0.7, 0.6, 0.1)),
)
LOUD_PROFILE = (0.1, 0.1, 0.9)


class LevelBasedClassifier(AbstractContentClassifier):
    """Guesses content type from buffer loudness alone.

    A stand-in for a trained model: conversational levels read as speech,
    very quiet or clipping-loud audio reads as noise. Probabilities are
    smoothed against the last few classifications.
    """

    name = "level"
    HISTORY_SIZE = 5
    SMOOTHING_FACTOR = 0.3

    def __init__(self, sensitivity: SpeechSensitivity = SpeechSensitivity.MEDIUM):
        self.sensitivity = sensitivity
        self.history: RingBuffer[Tuple[float, float, float]] = RingBuffer(self.HISTORY_SIZE)
        self.lock = threading.Lock()
        self.classification_count = 0

    def initialize(self) -> bool:
        self.history.clear()
        self.classification_count = 0
        logger.info(f"LevelBasedClassifier ready (speech sensitivity: {self.sensitivity.value})")
        return True

    def cleanup(self) -> None:
        self.history.clear()

    def classify(self, buffer: AudioBuffer) -> ContentAnalysis:
        samples = np.asarray(buffer.samples, dtype=np.float64)
        if samples.ndim != 1 or samples.size == 0:
            raise AnalysisFailed(f"Cannot classify buffer at {buffer.timestamp:.3f}s", buffer.timestamp)

        level_db = rms_to_db(float(np.sqrt(np.mean(samples ** 2))))
        probabilities = self._adjust_for_sensitivity(self._profile_for(level_db))

        with self.lock:
            smoothed = self._smooth(probabilities)
            self.history.append(probabilities)
            self.classification_count += 1

        return ContentAnalysis.from_probabilities(*smoothed)

    def _profile_for(self, level_db: float) -> Tuple[float, float, float]:
        if level_db < -60.0:
            return LEVEL_PROFILES[0][1]
        for upper, profile in LEVEL_PROFILES[1:]:
            if level_db <= upper:
                return profile
        return LOUD_PROFILE

    def _adjust_for_sensitivity(self, probabilities: Tuple[float, float, float]) -> Tuple[float, float, float]:
        speech, music, noise = probabilities
        threshold = self.sensitivity.confidence_threshold

        if self.sensitivity is SpeechSensitivity.HIGH and speech < threshold:
            moved = speech * 0.5
            speech, noise = speech - moved, noise + moved
        elif self.sensitivity is SpeechSensitivity.LOW:
            speech = min(1.0, speech * 1.2)
            noise = max(0.0, noise - 0.1)

        total = speech + music + noise
        if total <= 0:
            return 0.0, 0.0, 1.0
        return speech / total, music / total, noise / total

    def _smooth(self, probabilities: Tuple[float, float, float]) -> Tuple[float, float, float]:
        recent = self.history.values()
        if not recent:
            return probabilities
        average = np.mean(np.asarray(recent), axis=0)
        current = np.asarray(probabilities)
        smoothed = current * (1 - self.SMOOTHING_FACTOR) + average * self.SMOOTHING_FACTOR
        return tuple(float(v) for v in smoothed)
