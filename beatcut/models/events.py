"""Typed event records published by the analysis pipeline."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from .content import ContentType


class SessionEventType(Enum):
    STARTED = "started"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


@dataclass(frozen=True)
class BufferAnalyzedEvent:
    session_id: str
    index: int
    timestamp: float
    duration: float
    content_type: ContentType
    rms_level_db: float
    beat_count: int
    processing_time: float


@dataclass(frozen=True)
class BufferFailedEvent:
    session_id: str
    index: int
    timestamp: float
    reason: str


@dataclass(frozen=True)
class SessionEvent:
    session_id: str
    event_type: SessionEventType
    buffer_count: int = 0
    segment_count: int = 0
    dropped_buffers: int = 0
    processing_time: float = 0.0
    error: Optional[str] = None
