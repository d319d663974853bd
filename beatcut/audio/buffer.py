"""Fixed-capacity ring buffer for analyzer histories."""

import logging
import threading
from collections import deque
from typing import Generic, Iterable, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RingBuffer(Generic[T]):
    """Thread-safe bounded history that overwrites its oldest entry when full."""
    
    def __init__(self, capacity: int):
        """Initialize ring buffer.
        
        Args:
            capacity: Maximum number of entries kept
        """
        if capacity <= 0:
            raise ValueError(f"RingBuffer capacity must be positive, got {capacity}")
        
        self.capacity = capacity
        self.buffer = deque(maxlen=capacity)
        self.lock = threading.Lock()
        self.total_appended = 0
    
    def append(self, item: T) -> None:
        with self.lock:
            self.buffer.append(item)
            self.total_appended += 1
    
    def extend(self, items: Iterable[T]) -> None:
        with self.lock:
            for item in items:
                self.buffer.append(item)
                self.total_appended += 1
    
    def recent(self, count: int) -> List[T]:
        """Get up to `count` most recent entries, oldest first."""
        with self.lock:
            if count <= 0:
                return []
            items = list(self.buffer)
            return items[-count:]
    
    def values(self) -> List[T]:
        """Get all entries, oldest first."""
        with self.lock:
            return list(self.buffer)
    
    def last(self) -> T:
        with self.lock:
            if not self.buffer:
                raise IndexError("RingBuffer is empty")
            return self.buffer[-1]
    
    @property
    def is_full(self) -> bool:
        with self.lock:
            return len(self.buffer) == self.capacity
    
    def __len__(self) -> int:
        with self.lock:
            return len(self.buffer)
    
    def get_buffer_stats(self) -> dict:
        """Get buffer statistics."""
        with self.lock:
            return {
                "size": len(self.buffer),
                "capacity": self.capacity,
                "total_appended": self.total_appended,
                "overwritten": max(0, self.total_appended - self.capacity),
            }
    
    def clear(self) -> None:
        """Clear the buffer."""
        with self.lock:
            self.buffer.clear()
            self.total_appended = 0
            logger.debug("Ring buffer cleared")
