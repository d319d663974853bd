"""Analysis service that wires configuration, classifier and pipeline together."""

import logging
from typing import Optional

import numpy as np

from ..audio.source import iter_buffers, read_wav
from ..classification import AbstractContentClassifier, LevelBasedClassifier
from ..config import BeatcutConfig
from ..models.report import AnalysisReport
from ..pipeline import AnalysisEventAggregator, AnalysisPipeline, AnalysisPublisher, BUFFER_TOPIC, SESSION_TOPIC
from ..storage import ReportWriter

logger = logging.getLogger(__name__)


class AnalysisService:
    """Builds an analysis pipeline from configuration and runs it over audio."""
    
    def __init__(self, config: BeatcutConfig, classifier: Optional[AbstractContentClassifier] = None):
        """Initialize analysis service.
        
        Args:
            config: Application configuration
            classifier: Content classifier; defaults to LevelBasedClassifier
        """
        self.config = config
        self.analysis_config = config.get_analysis_config()
        self.classifier = classifier or LevelBasedClassifier(self.analysis_config.speech_sensitivity)
        
        buffer_topic = config.get('events.buffer_topic', BUFFER_TOPIC)
        session_topic = config.get('events.session_topic', SESSION_TOPIC)
        self.publisher = AnalysisPublisher(buffer_topic, session_topic)
        self.aggregator = AnalysisEventAggregator(buffer_topic, session_topic)
        
        self.pipeline = AnalysisPipeline(
            self.analysis_config,
            self.classifier,
            publisher=self.publisher,
            max_in_flight=config.get('pipeline.max_in_flight', 16),
        )
        self.report_writer = ReportWriter()
    
    def analyze_samples(self, samples: np.ndarray, sample_rate: float,
                        buffer_size: Optional[int] = None) -> AnalysisReport:
        """Analyze an in-memory mono signal.
        
        Args:
            samples: Mono float samples
            sample_rate: Sample rate in Hz
            buffer_size: Samples per buffer; defaults to the configured buffer size
            
        Returns:
            AnalysisReport for the signal
        """
        size = buffer_size or self.analysis_config.buffer_size
        if not self.classifier.initialize():
            raise RuntimeError(f"Classifier '{self.classifier.name}' failed to initialize")
        
        try:
            return self.pipeline.analyze_sync(iter_buffers(samples, sample_rate, size))
        finally:
            self.classifier.cleanup()
    
    def analyze_file(self, filepath: str, buffer_size: Optional[int] = None) -> AnalysisReport:
        """Analyze a PCM WAV file."""
        samples, sample_rate = read_wav(filepath)
        report = self.analyze_samples(samples, sample_rate, buffer_size)
        logger.info(f"Analyzed {filepath}: {len(report.segments)} segments, "
                   f"{len(report.kept_segments)} kept")
        return report
    
    def save_report(self, report: AnalysisReport, path: Optional[str] = None) -> Optional[str]:
        """Save the report to `path` or the configured output.report_path."""
        target = path or self.config.get('output.report_path')
        if not target:
            return None
        return self.report_writer.save(report, target)
    
    def shutdown(self) -> None:
        summary = self.aggregator.get_summary()
        logger.info(f"Event summary: {summary['buffers_analyzed']} analyzed, "
                   f"{summary['buffers_failed']} failed, content {summary['content_counts']}")
        self.aggregator.shutdown()
