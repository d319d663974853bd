"""Producer-side helpers that turn decoded audio into AudioBuffer streams."""

import logging
import wave
from typing import Iterator, Tuple

import numpy as np

from ..models.audio import AudioBuffer

logger = logging.getLogger(__name__)

_SAMPLE_DTYPES = {1: np.uint8, 2: np.int16, 4: np.int32}


def iter_buffers(samples: np.ndarray, sample_rate: float, buffer_size: int,
                 start_time: float = 0.0) -> Iterator[AudioBuffer]:
    """Slice a mono sample array into consecutive timestamped buffers.
    
    Args:
        samples: Mono float samples
        sample_rate: Sample rate in Hz
        buffer_size: Samples per buffer; the last buffer may be shorter
        start_time: Timestamp of the first sample
        
    Yields:
        AudioBuffer views over `samples` (no copies)
    """
    if buffer_size <= 0:
        raise ValueError(f"buffer_size must be positive, got {buffer_size}")
    
    for offset in range(0, len(samples), buffer_size):
        yield AudioBuffer(
            samples=samples[offset:offset + buffer_size],
            sample_rate=sample_rate,
            timestamp=start_time + offset / sample_rate,
        )


def read_wav(filepath: str) -> Tuple[np.ndarray, int]:
    """Read an uncompressed PCM WAV file as mono float32 in [-1, 1].
    
    Multi-channel files are downmixed by averaging channels.
    
    Returns:
        Tuple of (samples, sample_rate)
    """
    try:
        with wave.open(filepath, 'rb') as wf:
            channels = wf.getnchannels()
            sample_width = wf.getsampwidth()
            sample_rate = wf.getframerate()
            raw = wf.readframes(wf.getnframes())
    except wave.Error as e:
        raise ValueError(f"Cannot read WAV file {filepath}: {e}") from e
    
    if sample_width not in _SAMPLE_DTYPES:
        raise ValueError(f"Unsupported WAV sample width: {sample_width * 8} bits")
    
    data = np.frombuffer(raw, dtype=_SAMPLE_DTYPES[sample_width]).astype(np.float32)
    if sample_width == 1:
        data = (data - 128.0) / 128.0
    else:
        data /= float(2 ** (8 * sample_width - 1))
    
    if channels > 1:
        data = data.reshape(-1, channels).mean(axis=1)
    
    logger.info(f"Read {filepath}: {len(data) / sample_rate:.2f}s, {sample_rate} Hz, {channels} channel(s)")
    return data, sample_rate
