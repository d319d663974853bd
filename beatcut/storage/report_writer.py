"""JSON export of analysis reports."""

import json
import logging
from dataclasses import asdict
from enum import Enum
from pathlib import Path
from typing import Any, Dict

import numpy as np

from ..models.report import AnalysisReport
from ..models.segment import AnalyzedSegment

logger = logging.getLogger(__name__)


def _json_default(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, np.generic):
        return value.item()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def segment_to_dict(segment: AnalyzedSegment) -> Dict[str, Any]:
    decision = segment.decision
    return {
        "start_time": segment.start_time,
        "end_time": segment.end_time,
        "content_type": segment.content_type.value,
        "confidence": segment.content.confidence,
        "quality_score": segment.quality_score,
        "rms_level": segment.segment.rms_level,
        "is_silence": segment.segment.silence.is_silence,
        "tempo": segment.rhythm.tempo,
        "beat_count": len(segment.rhythm.beats),
        "decision": None if decision is None else {
            "should_keep": decision.should_keep,
            "quality_score": decision.quality_score,
            "reason": decision.reason.value,
            "suggested_cut": list(decision.suggested_cut) if decision.suggested_cut else None,
        },
    }


def report_to_dict(report: AnalysisReport) -> Dict[str, Any]:
    """Convert a report to plain JSON-compatible values."""
    stats = report.decision_statistics
    most_common = stats.most_common_reason
    return {
        "session_id": report.session_id,
        "buffer_count": report.buffer_count,
        "dropped_buffers": report.dropped_buffers,
        "processing_time": report.processing_time,
        "tempo": report.tempo,
        "segments": [segment_to_dict(s) for s in report.segments],
        "silence_segments": [asdict(s) for s in report.silence_segments],
        "beats": [asdict(b) for b in report.beats],
        "beat_grid": [asdict(m) for m in report.beat_grid],
        "decision_statistics": {
            "total_decisions": stats.total_decisions,
            "kept": stats.kept,
            "removed": stats.removed,
            "average_quality": stats.average_quality,
            "keep_percentage": stats.keep_percentage,
            "reason_counts": {reason.value: count for reason, count in stats.reason_counts.items()},
            "most_common_reason": most_common.value if most_common else None,
            "classifier_disagreements": stats.classifier_disagreements,
        },
        "analyzers": {
            "rms": asdict(report.rms_stats),
            "beats": asdict(report.beat_stats),
        },
    }


class ReportWriter:
    """Writes analysis reports as JSON files."""
    
    def __init__(self, output_dir: str = "."):
        """Initialize report writer.
        
        Args:
            output_dir: Directory used for relative report paths
        """
        self.output_dir = Path(output_dir)
    
    def save(self, report: AnalysisReport, filename: str) -> str:
        """Save a report to JSON.
        
        Args:
            report: Report to save
            filename: Target file; relative paths resolve against output_dir
            
        Returns:
            Path to the saved report
        """
        path = Path(filename)
        if not path.is_absolute():
            path = self.output_dir / path
        path.parent.mkdir(parents=True, exist_ok=True)
        
        try:
            with open(path, 'w', encoding='utf-8') as f:
                json.dump(report_to_dict(report), f, indent=2, default=_json_default)
        except (OSError, TypeError) as e:
            logger.error(f"Error saving report to {path}: {e}")
            raise
        
        logger.info(f"Report saved: {path}")
        return str(path)
    
    def load(self, filename: str) -> Dict[str, Any]:
        path = Path(filename)
        if not path.is_absolute():
            path = self.output_dir / path
        with open(path, 'r', encoding='utf-8') as f:
            return json.load(f)
