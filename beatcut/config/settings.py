"""Typed analysis settings and presets."""

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Tuple

from ..errors import ConfigurationError


class SilenceSensitivity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def threshold_adjustment(self) -> float:
        """dB offset applied to the base silence threshold."""
        return {"low": 5.0, "medium": 0.0, "high": -5.0}[self.value]


class SpeechSensitivity(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def confidence_threshold(self) -> float:
        return {"low": 0.3, "medium": 0.5, "high": 0.7}[self.value]


class RhythmMode(Enum):
    DISABLED = "disabled"
    MODERATE = "moderate"
    AGGRESSIVE = "aggressive"

    @property
    def alignment_strength(self) -> float:
        return {"disabled": 0.0, "moderate": 0.5, "aggressive": 1.0}[self.value]

    @property
    def enabled(self) -> bool:
        return self is not RhythmMode.DISABLED


@dataclass(frozen=True)
class BeatDetectionSettings:
    """Tunable constants of the band-energy beat detector.

    The threshold for a band is max(threshold_floor, variance_slope * variance
    + threshold_intercept) times its rolling mean.
    """
    threshold_floor: float = 1.1
    variance_slope: float = -15.0
    threshold_intercept: float = 1.55
    history_seconds: float = 1.0
    warmup_frames: int = 10
    debounce_seconds: float = 0.1
    downbeat_ratio: float = 1.5

    def validate(self) -> None:
        if self.threshold_floor <= 0:
            raise ConfigurationError("beat.threshold_floor", self.threshold_floor, "must be positive")
        if self.history_seconds <= 0:
            raise ConfigurationError("beat.history_seconds", self.history_seconds, "must be positive")
        if self.warmup_frames < 1:
            raise ConfigurationError("beat.warmup_frames", self.warmup_frames, "must be at least 1")
        if self.debounce_seconds < 0:
            raise ConfigurationError("beat.debounce_seconds", self.debounce_seconds, "must not be negative")
        if self.downbeat_ratio <= 0:
            raise ConfigurationError("beat.downbeat_ratio", self.downbeat_ratio, "must be positive")


@dataclass(frozen=True)
class LevelScoringSettings:
    """dB breakpoints of the audio level factor."""
    floor_db: float = -60.0
    optimal_min_db: float = -40.0
    optimal_max_db: float = -12.0
    clipping_db: float = -6.0

    def validate(self) -> None:
        if not self.floor_db < self.optimal_min_db < self.optimal_max_db < self.clipping_db:
            raise ConfigurationError(
                "level",
                (self.floor_db, self.optimal_min_db, self.optimal_max_db, self.clipping_db),
                "breakpoints must be strictly increasing",
            )


@dataclass(frozen=True)
class AnalysisConfig:
    """Settings for one analysis pipeline. Validated at construction."""
    silence_threshold_db: float = -50.0
    minimum_silence_duration: float = 0.5
    silence_sensitivity: SilenceSensitivity = SilenceSensitivity.MEDIUM
    adaptive_threshold_floor_db: float = -65.0
    speech_sensitivity: SpeechSensitivity = SpeechSensitivity.MEDIUM
    rhythm_mode: RhythmMode = RhythmMode.MODERATE
    beat_alignment_tolerance: float = 0.01
    tempo_range: Tuple[float, float] = (60.0, 200.0)
    quality_threshold: float = 0.4
    minimum_segment_duration: float = 0.5
    buffer_size: int = 1024
    beat: BeatDetectionSettings = field(default_factory=BeatDetectionSettings)
    level: LevelScoringSettings = field(default_factory=LevelScoringSettings)

    def __post_init__(self):
        self.validate()

    @property
    def effective_silence_threshold(self) -> float:
        return self.silence_threshold_db + self.silence_sensitivity.threshold_adjustment

    def validate(self) -> None:
        """Raise ConfigurationError for the first out-of-range field."""
        if not -60.0 <= self.silence_threshold_db <= -30.0:
            raise ConfigurationError("silence_threshold_db", self.silence_threshold_db, "must be within [-60, -30] dB")
        if not 0.1 <= self.minimum_silence_duration <= 5.0:
            raise ConfigurationError("minimum_silence_duration", self.minimum_silence_duration, "must be within [0.1, 5] seconds")
        if not 0.0 <= self.quality_threshold <= 1.0:
            raise ConfigurationError("quality_threshold", self.quality_threshold, "must be within [0, 1]")
        if not 0 < self.buffer_size <= 8192:
            raise ConfigurationError("buffer_size", self.buffer_size, "must be within (0, 8192]")
        if self.beat_alignment_tolerance < 0:
            raise ConfigurationError("beat_alignment_tolerance", self.beat_alignment_tolerance, "must not be negative")
        if self.adaptive_threshold_floor_db > self.effective_silence_threshold:
            raise ConfigurationError(
                "adaptive_threshold_floor_db",
                self.adaptive_threshold_floor_db,
                f"must not exceed the effective silence threshold ({self.effective_silence_threshold} dB)",
            )
        low, high = self.tempo_range
        if not 0 < low < high:
            raise ConfigurationError("tempo_range", self.tempo_range, "must satisfy 0 < low < high")
        if self.minimum_segment_duration < 0:
            raise ConfigurationError("minimum_segment_duration", self.minimum_segment_duration, "must not be negative")
        self.beat.validate()
        self.level.validate()

    def with_changes(self, **changes: Any) -> "AnalysisConfig":
        """Return a copy with the given fields replaced (and re-validated)."""
        return dataclasses.replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisConfig":
        """Build a config from plain YAML/JSON values.

        An optional 'preset' key selects the starting point; other keys override it.
        """
        values = dict(data or {})
        preset_name = values.pop("preset", None)
        base = PRESETS[_preset_key(preset_name)]() if preset_name else cls()

        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ConfigurationError("analysis", sorted(unknown), "unknown configuration keys")

        enum_fields = {
            "silence_sensitivity": SilenceSensitivity,
            "speech_sensitivity": SpeechSensitivity,
            "rhythm_mode": RhythmMode,
        }
        changes: Dict[str, Any] = {}
        for key, value in values.items():
            if key in enum_fields:
                changes[key] = _coerce_enum(enum_fields[key], key, value)
            elif key == "tempo_range":
                changes[key] = tuple(float(v) for v in value)
            elif key == "beat":
                changes[key] = _coerce_nested(BeatDetectionSettings, key, value)
            elif key == "level":
                changes[key] = _coerce_nested(LevelScoringSettings, key, value)
            else:
                changes[key] = value

        return dataclasses.replace(base, **changes)

    # Presets

    @classmethod
    def podcast(cls) -> "AnalysisConfig":
        return cls(
            silence_threshold_db=-45.0,
            minimum_silence_duration=0.8,
            speech_sensitivity=SpeechSensitivity.HIGH,
            rhythm_mode=RhythmMode.DISABLED,
            quality_threshold=0.3,
        )

    @classmethod
    def music_video(cls) -> "AnalysisConfig":
        return cls(
            silence_threshold_db=-55.0,
            minimum_silence_duration=0.3,
            speech_sensitivity=SpeechSensitivity.LOW,
            rhythm_mode=RhythmMode.AGGRESSIVE,
            beat_alignment_tolerance=0.005,
            quality_threshold=0.5,
        )

    @classmethod
    def presentation(cls) -> "AnalysisConfig":
        return cls(
            silence_threshold_db=-40.0,
            minimum_silence_duration=1.0,
            speech_sensitivity=SpeechSensitivity.HIGH,
            rhythm_mode=RhythmMode.DISABLED,
            quality_threshold=0.4,
        )

    @classmethod
    def creative(cls) -> "AnalysisConfig":
        return cls(
            silence_threshold_db=-50.0,
            minimum_silence_duration=0.5,
            speech_sensitivity=SpeechSensitivity.MEDIUM,
            rhythm_mode=RhythmMode.MODERATE,
            beat_alignment_tolerance=0.01,
            quality_threshold=0.4,
        )


PRESETS = {
    "default": AnalysisConfig,
    "podcast": AnalysisConfig.podcast,
    "music_video": AnalysisConfig.music_video,
    "presentation": AnalysisConfig.presentation,
    "creative": AnalysisConfig.creative,
}


def _preset_key(name: str) -> str:
    key = str(name).strip().lower().replace("-", "_")
    if key not in PRESETS:
        raise ConfigurationError("preset", name, f"expected one of {sorted(PRESETS)}")
    return key


def _coerce_enum(enum_cls, key: str, value: Any):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = [member.value for member in enum_cls]
        raise ConfigurationError(key, value, f"expected one of {choices}")


def _coerce_nested(settings_cls, key: str, value: Any):
    if isinstance(value, settings_cls):
        return value
    if not isinstance(value, dict):
        raise ConfigurationError(key, value, "expected a mapping")
    try:
        return settings_cls(**value)
    except TypeError as e:
        raise ConfigurationError(key, value, str(e))
