"""Analysis event publisher for pub/sub diagnostics."""

import logging
from typing import Union
from pubsub import pub

from ..models.events import BufferAnalyzedEvent, BufferFailedEvent, SessionEvent

logger = logging.getLogger(__name__)

BUFFER_TOPIC = "buffer_events"
SESSION_TOPIC = "session_events"


class AnalysisPublisher:
    """Publishes typed pipeline events using pubsub.pub."""
    
    def __init__(self, buffer_topic: str = BUFFER_TOPIC, session_topic: str = SESSION_TOPIC):
        """Initialize analysis publisher.
        
        Args:
            buffer_topic: Topic for per-buffer analyzed/failed events
            session_topic: Topic for session lifecycle events
        """
        self.buffer_topic = buffer_topic
        self.session_topic = session_topic
        logger.info(f"AnalysisPublisher initialized with topics: {buffer_topic}, {session_topic}")
    
    def publish_buffer_event(self, event: Union[BufferAnalyzedEvent, BufferFailedEvent]) -> None:
        pub.sendMessage(self.buffer_topic, event=event)
        logger.debug(f"Published {type(event).__name__} for buffer {event.index}")
    
    def publish_session_event(self, event: SessionEvent) -> None:
        pub.sendMessage(self.session_topic, event=event)
        logger.debug(f"Published session {event.event_type.value}: {event.session_id}")
