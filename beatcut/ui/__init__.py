"""Console presentation module."""

from .report_view import render_report, build_segment_table, build_summary_table

__all__ = [
    'render_report',
    'build_segment_table',
    'build_summary_table',
]
