"""Console rendering of analysis reports."""

from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..models.report import AnalysisReport


def build_segment_table(report: AnalysisReport) -> Table:
    table = Table(title="✂️ Segment Decisions", show_header=True, header_style="bold magenta")
    table.add_column("Start", justify="right", style="cyan")
    table.add_column("End", justify="right", style="cyan")
    table.add_column("Content", style="white")
    table.add_column("Quality", justify="right")
    table.add_column("Decision")
    table.add_column("Reason", style="dim")
    
    for segment in report.segments:
        decision = segment.decision
        if decision is None:
            verdict, reason = "-", "-"
        elif decision.should_keep:
            verdict, reason = "[green]keep[/green]", decision.reason.value
        else:
            verdict, reason = "[red]remove[/red]", decision.reason.value
        
        table.add_row(
            f"{segment.start_time:.2f}s",
            f"{segment.end_time:.2f}s",
            f"{segment.content_type.value} ({segment.content.confidence:.0%})",
            f"{segment.quality_score:.2f}",
            verdict,
            reason,
        )
    return table


def build_summary_table(report: AnalysisReport) -> Table:
    stats = report.decision_statistics
    table = Table(show_header=False, box=None)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="white")
    
    table.add_row("Buffers", f"{report.buffer_count} ({report.dropped_buffers} dropped)")
    table.add_row("Segments", str(len(report.segments)))
    table.add_row("Silence runs", str(len(report.silence_segments)))
    table.add_row("Tempo", f"{report.tempo:.1f} BPM" if report.tempo else "n/a")
    table.add_row("Beats", f"{len(report.beats)} detected, {len(report.beat_grid)} grid slots")
    table.add_row("Kept", f"{stats.kept} ({stats.keep_percentage:.0f}%)")
    table.add_row("Removed", f"{stats.removed} ({stats.remove_percentage:.0f}%)")
    table.add_row("Processing", f"{report.processing_time:.2f}s")
    return table


def render_report(report: AnalysisReport, console: Optional[Console] = None) -> None:
    """Print the segment table and a summary panel."""
    console = console or Console()
    console.print(build_segment_table(report))
    console.print(Panel(build_summary_table(report), title=f"Session {report.session_id}", border_style="blue"))
