"""Analysis pipeline module."""

from .orchestrator import AnalysisPipeline
from .publisher import AnalysisPublisher, BUFFER_TOPIC, SESSION_TOPIC
from .aggregator import AnalysisEventAggregator
from .postprocess import (
    annotate_silence,
    merge_segments,
    filter_segments,
    smooth_segments,
    snap_cut_to_grid,
)

__all__ = [
    'AnalysisPipeline',
    'AnalysisPublisher',
    'AnalysisEventAggregator',
    'BUFFER_TOPIC',
    'SESSION_TOPIC',
    'annotate_silence',
    'merge_segments',
    'filter_segments',
    'smooth_segments',
    'snap_cut_to_grid',
]
