"""Pipeline event aggregator.

Subscribes to the buffer and session topics and keeps per-session counts of
analyzed and dropped buffers, broken down by content type. Used by the
command line to summarize a run and by tests to observe the event stream.
"""

import logging
import threading
from collections import Counter
from typing import Any, Dict, List, Union
from pubsub import pub

from ..models.events import BufferAnalyzedEvent, BufferFailedEvent, SessionEvent, SessionEventType
from .publisher import BUFFER_TOPIC, SESSION_TOPIC

logger = logging.getLogger(__name__)


class AnalysisEventAggregator:
    """Collects pipeline events published on pub/sub topics."""
    
    def __init__(self, buffer_topic: str = BUFFER_TOPIC, session_topic: str = SESSION_TOPIC):
        """Initialize event aggregator.
        
        Args:
            buffer_topic: Topic carrying BufferAnalyzedEvent/BufferFailedEvent
            session_topic: Topic carrying SessionEvent
        """
        self.buffer_topic = buffer_topic
        self.session_topic = session_topic
        
        self.buffer_events: List[Union[BufferAnalyzedEvent, BufferFailedEvent]] = []
        self.session_events: List[SessionEvent] = []
        self.lock = threading.RLock()
        
        pub.subscribe(self._on_buffer_event, buffer_topic)
        pub.subscribe(self._on_session_event, session_topic)
        
        logger.info(f"AnalysisEventAggregator subscribed to {buffer_topic} and {session_topic}")
    
    def _on_buffer_event(self, event: Union[BufferAnalyzedEvent, BufferFailedEvent]) -> None:
        with self.lock:
            self.buffer_events.append(event)
        if isinstance(event, BufferFailedEvent):
            logger.debug(f"Buffer {event.index} failed: {event.reason}")
    
    def _on_session_event(self, event: SessionEvent) -> None:
        with self.lock:
            self.session_events.append(event)
        if event.event_type is not SessionEventType.STARTED:
            logger.info(f"Session {event.session_id} {event.event_type.value}")
    
    def get_summary(self) -> Dict[str, Any]:
        """Get summary of aggregated events."""
        with self.lock:
            analyzed = [e for e in self.buffer_events if isinstance(e, BufferAnalyzedEvent)]
            failed = [e for e in self.buffer_events if isinstance(e, BufferFailedEvent)]
            content_counts = Counter(e.content_type.value for e in analyzed)
            total_time = sum(e.processing_time for e in analyzed)
            
            return {
                "buffers_analyzed": len(analyzed),
                "buffers_failed": len(failed),
                "content_counts": dict(content_counts),
                "average_buffer_time": total_time / len(analyzed) if analyzed else 0.0,
                "sessions": [(e.session_id, e.event_type.value) for e in self.session_events
                             if e.event_type is not SessionEventType.STARTED],
                "failure_reasons": [e.reason for e in failed],
            }
    
    def clear(self) -> None:
        with self.lock:
            self.buffer_events.clear()
            self.session_events.clear()
    
    def shutdown(self) -> None:
        """Unsubscribe from both topics."""
        pub.unsubscribe(self._on_buffer_event, self.buffer_topic)
        pub.unsubscribe(self._on_session_event, self.session_topic)
        logger.info(f"AnalysisEventAggregator unsubscribed ({len(self.buffer_events)} buffer events seen)")
