"""Spectral band-energy beat detection, tempo estimation and beat grids."""

import logging
import threading
import time
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.signal import get_window

from ..config import AnalysisConfig
from ..errors import AnalysisFailed
from ..models.audio import AudioBuffer, BandType, BeatDetectionResult, BeatDetectorStats, BeatMarker, BeatPoint
from .buffer import RingBuffer

logger = logging.getLogger(__name__)

FREQUENCY_BANDS: Dict[BandType, Tuple[float, float]] = {
    BandType.BASS: (60.0, 130.0),
    BandType.SNARE: (301.0, 750.0),
    BandType.HIHAT: (5000.0, 8000.0),
}

MIN_BEAT_INTERVAL = 0.2
MAX_BEAT_INTERVAL = 2.0
GRID_MATCH_FRACTION = 0.3
INTERPOLATED_CONFIDENCE = 0.5


class BeatDetector:
    """Detects beats from per-band spectral energy against a rolling baseline.

    Frames are 2048 samples with a 1024 hop and are assembled across buffer
    boundaries, so a beat straddling two buffers is still seen in one frame.
    """
    
    FFT_SIZE = 2048
    HOP_SIZE = 1024
    RECENT_BEATS = 32
    RHYTHM_TOLERANCE = 0.15
    
    def __init__(self, config: AnalysisConfig):
        """Initialize beat detector.
        
        Args:
            config: Validated analysis settings
        """
        self.config = config
        self.settings = config.beat
        self.window = get_window("hann", self.FFT_SIZE)
        self.bands = list(FREQUENCY_BANDS)
        self.lock = threading.Lock()
        self.stats = BeatDetectorStats(name="beats")
        
        self.sample_rate: Optional[float] = None
        self.energy_history: Optional[RingBuffer[np.ndarray]] = None
        self.recent_beats: RingBuffer[BeatPoint] = RingBuffer(self.RECENT_BEATS)
        self.tempo = 0.0
        self.rhythm_strength = 0.0
        
        self._band_masks: List[np.ndarray] = []
        self._carry = np.zeros(0)
        self._carry_start = 0.0
        self._stream_end: Optional[float] = None
        self._last_beat_time: Optional[float] = None
        
        logger.info(f"BeatDetector initialized: fft={self.FFT_SIZE}, hop={self.HOP_SIZE}, "
                   f"tempo range={config.tempo_range}")
    
    def process(self, buffer: AudioBuffer) -> BeatDetectionResult:
        """Run every complete frame available after appending this buffer.
        
        Args:
            buffer: Mono float samples with timestamp
            
        Returns:
            BeatDetectionResult with the beats fired during this call and the
            current tempo estimate. insufficient_history is set while the
            energy history is still warming up.
            
        Raises:
            AnalysisFailed: If the buffer is empty or malformed
        """
        with self.lock:
            start = time.perf_counter()
            samples = np.asarray(buffer.samples)
            if samples.ndim != 1 or samples.size == 0 or buffer.sample_rate <= 0:
                self.stats.failure_count += 1
                raise AnalysisFailed(f"Cannot detect beats in buffer at {buffer.timestamp:.3f}s", buffer.timestamp)
            
            if self.sample_rate != buffer.sample_rate:
                self._configure(buffer.sample_rate)
            
            data, data_start = self._assemble(buffer, samples.astype(np.float64, copy=False))
            
            beats: List[BeatPoint] = []
            offset = 0
            frames = 0
            while offset + self.FFT_SIZE <= data.size:
                frame = data[offset:offset + self.FFT_SIZE]
                beat = self._process_frame(frame, data_start + offset / self.sample_rate)
                if beat is not None:
                    beats.append(beat)
                    self.recent_beats.append(beat)
                offset += self.HOP_SIZE
                frames += 1
            
            self._carry = data[offset:].copy()
            self._carry_start = data_start + offset / self.sample_rate
            
            if beats:
                self._update_tempo()
            
            elapsed = time.perf_counter() - start
            self.stats.analysis_count += 1
            self.stats.total_processing_time += elapsed
            self.stats.frames_processed += frames
            self.stats.beats_detected += len(beats)
            self.stats.estimated_tempo = self.tempo
            
            insufficient = len(self.energy_history) < self.settings.warmup_frames
            if beats:
                logger.debug(f"{len(beats)} beat(s) in buffer at {buffer.timestamp:.3f}s, tempo {self.tempo:.1f} BPM")
            
            return BeatDetectionResult(
                beats=beats,
                tempo=self.tempo,
                rhythm_strength=self.rhythm_strength,
                insufficient_history=insufficient,
                frames_processed=frames,
            )
    
    def get_stats(self) -> BeatDetectorStats:
        with self.lock:
            return BeatDetectorStats(**vars(self.stats))
    
    def _configure(self, sample_rate: float) -> None:
        if self.sample_rate is not None:
            logger.warning(f"Sample rate changed from {self.sample_rate} to {sample_rate}, resetting beat history")
        
        self.sample_rate = sample_rate
        history_frames = max(1, int(round(self.settings.history_seconds * sample_rate / self.HOP_SIZE)))
        self.energy_history = RingBuffer(history_frames)
        
        freqs = np.fft.rfftfreq(self.FFT_SIZE, d=1.0 / sample_rate)
        self._band_masks = [(freqs >= low) & (freqs <= high) for low, high in FREQUENCY_BANDS.values()]
        
        self._carry = np.zeros(0)
        self._stream_end = None
        self._last_beat_time = None
        logger.debug(f"Beat history sized to {history_frames} frames at {sample_rate} Hz")
    
    def _assemble(self, buffer: AudioBuffer, samples: np.ndarray) -> Tuple[np.ndarray, float]:
        """Prepend carried samples when this buffer continues the previous one."""
        expected = self._stream_end
        self._stream_end = buffer.end_time

        if expected is not None and abs(buffer.timestamp - expected) > self.HOP_SIZE / self.sample_rate / 2:
            logger.debug(f"Discontinuity at {buffer.timestamp:.3f}s (expected {expected:.3f}s), dropping carry")
            self._carry = np.zeros(0)
            self._last_beat_time = None

        if self._carry.size:
            return np.concatenate([self._carry, samples]), self._carry_start
        return samples, buffer.timestamp
    
    def _band_energies(self, frame: np.ndarray) -> np.ndarray:
        spectrum = np.abs(np.fft.rfft(frame * self.window))
        return np.array([spectrum[mask].mean() if mask.any() else 0.0 for mask in self._band_masks])
    
    def _process_frame(self, frame: np.ndarray, frame_time: float) -> Optional[BeatPoint]:
        energies = self._band_energies(frame)
        history = self.energy_history.values()
        self.energy_history.append(energies)
        
        if len(history) < self.settings.warmup_frames:
            return None
        
        history = np.asarray(history)
        mean = history.mean(axis=0)
        variance = history.var(axis=0)
        # Variance is in raw magnitude units; the default slope assumes a near-silent bed
        factor = np.maximum(self.settings.threshold_floor,
                            self.settings.variance_slope * variance + self.settings.threshold_intercept)
        thresholds = factor * mean
        
        exceeded = energies > thresholds
        if not exceeded.any():
            return None
        
        beat_time = frame_time + int(np.argmax(np.abs(frame))) / self.sample_rate
        if self._last_beat_time is not None and beat_time - self._last_beat_time < self.settings.debounce_seconds:
            return None
        
        ratios = np.where(thresholds > 0, energies / np.where(thresholds > 0, thresholds, 1.0), np.inf)
        ratios = np.where(exceeded, ratios, -np.inf)
        band_index = int(np.argmax(ratios))
        ratio = ratios[band_index]
        confidence = 1.0 if not np.isfinite(ratio) else float(np.clip(ratio - 1.0, 0.0, 1.0))
        
        bass = self.bands.index(BandType.BASS)
        is_downbeat = bool(energies[bass] > self.settings.downbeat_ratio * mean[bass])
        
        self._last_beat_time = beat_time
        return BeatPoint(
            timestamp=beat_time,
            strength=float(energies[band_index]),
            band=self.bands[band_index],
            confidence=confidence,
            is_downbeat=is_downbeat,
        )
    
    def _update_tempo(self) -> None:
        times = np.array([beat.timestamp for beat in self.recent_beats.values()])
        intervals = np.diff(times)
        intervals = intervals[(intervals >= MIN_BEAT_INTERVAL) & (intervals <= MAX_BEAT_INTERVAL)]
        if intervals.size == 0:
            return
        
        median = float(np.median(intervals))
        bpm = 60.0 / median
        low, high = self.config.tempo_range
        if not low <= bpm <= high:
            logger.debug(f"Tempo estimate {bpm:.1f} BPM outside {self.config.tempo_range}, ignored")
            return
        
        self.tempo = bpm
        self.rhythm_strength = float(np.mean(np.abs(intervals - median) <= self.RHYTHM_TOLERANCE * median))


def refine_beat_grid(beats: Sequence[BeatPoint], interval: float,
                     end_time: Optional[float] = None) -> List[BeatMarker]:
    """Lay a uniform grid at `interval` from the first beat and snap raw beats onto it.
    
    Args:
        beats: Raw detected beats, in any order
        interval: Grid spacing in seconds (60 / BPM)
        end_time: Last time the grid should cover; defaults to the last beat
        
    Returns:
        One BeatMarker per grid slot. Slots with no raw beat within 30% of the
        interval are interpolated with confidence 0.5.
    """
    if not beats or interval <= 0:
        return []
    
    ordered = sorted(beats, key=lambda beat: beat.timestamp)
    times = np.array([beat.timestamp for beat in ordered])
    first = times[0]
    last = end_time if end_time is not None else times[-1]
    slot_count = int(np.floor((last - first) / interval + 1e-9)) + 1
    tolerance = GRID_MATCH_FRACTION * interval
    
    markers = []
    for slot in range(max(1, slot_count)):
        slot_time = first + slot * interval
        nearest = int(np.argmin(np.abs(times - slot_time)))
        beat = ordered[nearest]
        
        if abs(beat.timestamp - slot_time) <= tolerance:
            markers.append(BeatMarker(
                timestamp=slot_time,
                strength=beat.strength,
                band=beat.band,
                confidence=beat.confidence,
                is_downbeat=beat.is_downbeat,
                source_timestamp=beat.timestamp,
            ))
        else:
            markers.append(BeatMarker(
                timestamp=slot_time,
                strength=0.0,
                band=None,
                confidence=INTERPOLATED_CONFIDENCE,
                interpolated=True,
            ))
    
    return markers
