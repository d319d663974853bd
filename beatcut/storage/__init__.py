"""Report storage module."""

from .report_writer import ReportWriter, report_to_dict

__all__ = [
    'ReportWriter',
    'report_to_dict',
]
