"""Abstract base class for content classifiers."""

from abc import ABC, abstractmethod
import logging

from ..models.audio import AudioBuffer
from ..models.content import ContentAnalysis

logger = logging.getLogger(__name__)


class AbstractContentClassifier(ABC):
    """Supplies speech/music/noise probabilities for each buffer.

    The pipeline calls classify() from a single worker thread, in buffer
    dispatch order.
    """

    name = "classifier"

    @abstractmethod
    def classify(self, buffer: AudioBuffer) -> ContentAnalysis:
        """Classify one audio buffer.
        
        Args:
            buffer: Mono float samples with timestamp
            
        Returns:
            ContentAnalysis with dominant type and per-type probabilities
            
        Raises:
            AnalysisFailed: If the buffer cannot be classified
        """
        pass
    
    @abstractmethod
    def initialize(self) -> bool:
        """Initialize classifier resources.
        
        Returns:
            True if initialization successful, False otherwise
        """
        pass
    
    @abstractmethod
    def cleanup(self) -> None:
        """Clean up classifier resources."""
        pass
