"""Windowed RMS analysis with adaptive silence detection."""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import List, Optional

import numpy as np
from scipy.signal import get_window

from ..config import AnalysisConfig
from ..errors import AnalysisFailed
from ..models.audio import AudioBuffer, RMSAnalysisResult, RMSAnalyzerStats, SilenceSegment
from .buffer import RingBuffer

logger = logging.getLogger(__name__)

MIN_RMS = 1e-10


def rms_to_db(rms: float) -> float:
    return 20.0 * float(np.log10(max(rms, MIN_RMS)))


@dataclass
class _SilenceRun:
    start_time: float
    end_time: float
    levels: List[float] = field(default_factory=list)


class RMSAnalyzer:
    """Computes per-window RMS and tracks silence runs across a buffer stream.

    Runs of silent windows continue across contiguous buffers; a gap or an
    out-of-order buffer closes the open run. Call finish() at end of stream
    to flush the trailing run.
    """
    
    WINDOW_SIZE = 2048
    HOP_SIZE = 1024
    HISTORY_CAPACITY = 100
    THRESHOLD_WINDOW = 50
    MEDIAN_MARGIN_DB = 10.0
    CONFIDENCE_RANGE_DB = 20.0
    
    def __init__(self, config: AnalysisConfig):
        """Initialize RMS analyzer.
        
        Args:
            config: Validated analysis settings
        """
        self.config = config
        self.window = get_window("hann", self.WINDOW_SIZE)
        self.history: RingBuffer[float] = RingBuffer(self.HISTORY_CAPACITY)
        self.base_threshold = config.effective_silence_threshold
        self.adaptive_threshold = self.base_threshold
        self.lock = threading.Lock()
        self.stats = RMSAnalyzerStats(name="rms", adaptive_threshold_db=self.adaptive_threshold)
        
        self._run: Optional[_SilenceRun] = None
        self._last_end_time: Optional[float] = None
        
        logger.info(f"RMSAnalyzer initialized: window={self.WINDOW_SIZE}, hop={self.HOP_SIZE}, "
                   f"threshold={self.base_threshold:.1f}dB, "
                   f"min silence={config.minimum_silence_duration}s")
    
    def analyze(self, buffer: AudioBuffer) -> RMSAnalysisResult:
        """Analyze one buffer.
        
        Args:
            buffer: Mono float samples with timestamp
            
        Returns:
            RMSAnalysisResult for the buffer, including any silence runs that closed
            
        Raises:
            AnalysisFailed: If the buffer is empty or malformed
        """
        with self.lock:
            start = time.perf_counter()
            try:
                samples = self._validate(buffer)
            except AnalysisFailed:
                self.stats.failure_count += 1
                raise
            
            rms_values = self._window_rms(samples)
            window_starts = buffer.timestamp + np.arange(rms_values.size) * self.HOP_SIZE / buffer.sample_rate
            window_ends = np.append(window_starts[1:], buffer.end_time)
            
            threshold = self.adaptive_threshold
            levels_db = 20.0 * np.log10(np.maximum(rms_values, MIN_RMS))
            silent = levels_db < threshold
            
            segments = self._track_silence(buffer, rms_values, silent, window_starts, window_ends, threshold)
            self._update_adaptive_threshold(rms_values)
            
            elapsed = time.perf_counter() - start
            self.stats.analysis_count += 1
            self.stats.total_processing_time += elapsed
            self.stats.adaptive_threshold_db = self.adaptive_threshold
            self.stats.silence_segments_emitted += len(segments)
            
            logger.debug(f"RMS analysis at {buffer.timestamp:.3f}s: {rms_values.size} windows, "
                        f"{int(silent.sum())} silent, threshold {threshold:.1f}dB")
            
            return RMSAnalysisResult(
                rms_values=rms_values,
                timestamps=window_starts,
                silence_segments=segments,
                silent_window_count=int(silent.sum()),
                threshold_db=threshold,
            )
    
    def finish(self) -> List[SilenceSegment]:
        """Close the open silence run at end of stream."""
        with self.lock:
            segment = self._close_run()
            if segment is None:
                return []
            self.stats.silence_segments_emitted += 1
            return [segment]
    
    def reset(self) -> None:
        with self.lock:
            self.history.clear()
            self.adaptive_threshold = self.base_threshold
            self._run = None
            self._last_end_time = None
            self.stats = RMSAnalyzerStats(name="rms", adaptive_threshold_db=self.adaptive_threshold)
    
    def get_stats(self) -> RMSAnalyzerStats:
        with self.lock:
            return RMSAnalyzerStats(**vars(self.stats))
    
    def _validate(self, buffer: AudioBuffer) -> np.ndarray:
        samples = np.asarray(buffer.samples)
        if samples.ndim != 1:
            raise AnalysisFailed(f"Expected mono samples, got shape {samples.shape}", buffer.timestamp)
        if samples.size == 0:
            raise AnalysisFailed("Empty audio buffer", buffer.timestamp)
        if buffer.sample_rate <= 0:
            raise AnalysisFailed(f"Invalid sample rate {buffer.sample_rate}", buffer.timestamp)
        if not np.all(np.isfinite(samples)):
            raise AnalysisFailed("Audio buffer contains non-finite samples", buffer.timestamp)
        return samples.astype(np.float64, copy=False)
    
    def _window_rms(self, samples: np.ndarray) -> np.ndarray:
        """RMS of each Hann-weighted window; the tail window is zero-padded."""
        n = samples.size
        num_windows = max(1, (n - self.WINDOW_SIZE) // self.HOP_SIZE + 1)
        
        padded_length = (num_windows - 1) * self.HOP_SIZE + self.WINDOW_SIZE
        if padded_length > n:
            samples = np.pad(samples, (0, padded_length - n))
        
        frames = np.lib.stride_tricks.sliding_window_view(samples, self.WINDOW_SIZE)[::self.HOP_SIZE][:num_windows]
        weighted = frames * self.window
        
        starts = np.arange(num_windows) * self.HOP_SIZE
        actual_sizes = np.minimum(self.WINDOW_SIZE, n - starts)
        return np.sqrt(np.sum(weighted ** 2, axis=1) / actual_sizes)
    
    def _track_silence(self, buffer: AudioBuffer, rms_values: np.ndarray, silent: np.ndarray,
                       window_starts: np.ndarray, window_ends: np.ndarray,
                       threshold: float) -> List[SilenceSegment]:
        segments: List[SilenceSegment] = []
        
        if self._run is not None and not self._is_contiguous(buffer):
            logger.debug(f"Discontinuity at {buffer.timestamp:.3f}s, closing silence run")
            segment = self._close_run(threshold)
            if segment is not None:
                segments.append(segment)
        
        for rms, is_silent, t0, t1 in zip(rms_values, silent, window_starts, window_ends):
            if is_silent:
                if self._run is None:
                    self._run = _SilenceRun(start_time=float(t0), end_time=float(t1))
                self._run.end_time = float(t1)
                self._run.levels.append(float(rms))
            elif self._run is not None:
                segment = self._close_run(threshold)
                if segment is not None:
                    segments.append(segment)
        
        self._last_end_time = buffer.end_time
        return segments
    
    def _is_contiguous(self, buffer: AudioBuffer) -> bool:
        if self._last_end_time is None:
            return True
        tolerance = self.HOP_SIZE / buffer.sample_rate / 2
        return abs(buffer.timestamp - self._last_end_time) <= tolerance
    
    def _close_run(self, threshold: Optional[float] = None) -> Optional[SilenceSegment]:
        run, self._run = self._run, None
        if run is None:
            return None
        
        duration = run.end_time - run.start_time
        if duration < self.config.minimum_silence_duration:
            return None
        
        if threshold is None:
            threshold = self.adaptive_threshold
        level_db = rms_to_db(float(np.mean(run.levels)))
        confidence = float(np.clip((threshold - level_db) / self.CONFIDENCE_RANGE_DB, 0.0, 1.0))
        
        logger.debug(f"Silence segment {run.start_time:.3f}-{run.end_time:.3f}s "
                    f"at {level_db:.1f}dB (confidence {confidence:.2f})")
        return SilenceSegment(
            start_time=run.start_time,
            end_time=run.end_time,
            average_level_db=level_db,
            confidence=confidence,
        )
    
    def _update_adaptive_threshold(self, rms_values: np.ndarray) -> None:
        self.history.extend(float(v) for v in rms_values)
        recent = np.asarray(self.history.recent(self.THRESHOLD_WINDOW))
        median_db = rms_to_db(float(np.median(recent)))
        
        threshold = min(self.base_threshold, median_db - self.MEDIAN_MARGIN_DB)
        self.adaptive_threshold = max(threshold, self.config.adaptive_threshold_floor_db)
