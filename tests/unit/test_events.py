"""Unit tests for event publishing and aggregation."""

import pytest

from beatcut.models import BufferAnalyzedEvent, BufferFailedEvent, ContentType, SessionEvent, SessionEventType
from beatcut.pipeline import AnalysisEventAggregator, AnalysisPublisher


@pytest.fixture
def topics():
    return "test_buffer_events", "test_session_events"


@pytest.mark.unit
class TestEventAggregator:
    """Test cases for AnalysisPublisher and AnalysisEventAggregator."""
    
    def analyzed(self, index, content_type=ContentType.SPEECH):
        return BufferAnalyzedEvent(session_id="s1", index=index, timestamp=index * 0.1, duration=0.1,
                                   content_type=content_type, rms_level_db=-30.0, beat_count=0,
                                   processing_time=0.002)
    
    def test_summary(self, topics):
        publisher = AnalysisPublisher(*topics)
        aggregator = AnalysisEventAggregator(*topics)
        try:
            publisher.publish_session_event(SessionEvent(session_id="s1", event_type=SessionEventType.STARTED))
            publisher.publish_buffer_event(self.analyzed(0))
            publisher.publish_buffer_event(self.analyzed(1, ContentType.MUSIC))
            publisher.publish_buffer_event(self.analyzed(2))
            publisher.publish_buffer_event(BufferFailedEvent(session_id="s1", index=3, timestamp=0.3,
                                                             reason="empty buffer"))
            publisher.publish_session_event(SessionEvent(session_id="s1", event_type=SessionEventType.COMPLETED,
                                                         buffer_count=4, dropped_buffers=1))
            
            summary = aggregator.get_summary()
        finally:
            aggregator.shutdown()
        
        assert summary["buffers_analyzed"] == 3
        assert summary["buffers_failed"] == 1
        assert summary["content_counts"] == {"speech": 2, "music": 1}
        assert summary["average_buffer_time"] == pytest.approx(0.002)
        assert summary["sessions"] == [("s1", "completed")]
        assert summary["failure_reasons"] == ["empty buffer"]
    
    def test_shutdown_stops_collection(self, topics):
        publisher = AnalysisPublisher(*topics)
        aggregator = AnalysisEventAggregator(*topics)
        aggregator.shutdown()
        
        publisher.publish_buffer_event(self.analyzed(0))
        
        assert aggregator.buffer_events == []
    
    def test_clear(self, topics):
        publisher = AnalysisPublisher(*topics)
        aggregator = AnalysisEventAggregator(*topics)
        try:
            publisher.publish_buffer_event(self.analyzed(0))
            aggregator.clear()
            assert aggregator.get_summary()["buffers_analyzed"] == 0
        finally:
            aggregator.shutdown()
