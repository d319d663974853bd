"""Content classification data models."""

from dataclasses import dataclass
from enum import Enum


class ContentType(Enum):
    SPEECH = "speech"
    MUSIC = "music"
    NOISE = "noise"


@dataclass(frozen=True)
class ContentAnalysis:
    """Speech/music/noise probabilities for one buffer, as supplied by a classifier."""
    content_type: ContentType
    confidence: float
    speech_probability: float
    music_probability: float
    noise_probability: float

    @classmethod
    def from_probabilities(cls, speech: float, music: float, noise: float) -> "ContentAnalysis":
        """Build an analysis whose dominant type is the most probable one.

        Ties go to speech first, then music.
        """
        if speech >= music and speech >= noise:
            content_type, confidence = ContentType.SPEECH, speech
        elif music >= noise:
            content_type, confidence = ContentType.MUSIC, music
        else:
            content_type, confidence = ContentType.NOISE, noise

        return cls(
            content_type=content_type,
            confidence=confidence,
            speech_probability=speech,
            music_probability=music,
            noise_probability=noise,
        )

    @property
    def should_preserve(self) -> bool:
        """The classifier's own keep preference. Advisory only."""
        if self.content_type is ContentType.SPEECH:
            return True
        if self.content_type is ContentType.MUSIC:
            return self.confidence > 0.6
        return self.confidence < 0.3
