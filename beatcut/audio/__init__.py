"""Audio analysis module."""

from .buffer import RingBuffer
from .rms import RMSAnalyzer, rms_to_db
from .beats import BeatDetector, refine_beat_grid
from .source import iter_buffers, read_wav

__all__ = [
    'RingBuffer',
    'RMSAnalyzer',
    'rms_to_db',
    'BeatDetector',
    'refine_beat_grid',
    'iter_buffers',
    'read_wav',
]
