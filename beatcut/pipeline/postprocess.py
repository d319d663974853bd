"""Deterministic passes over the time-sorted segment list."""

import logging
from dataclasses import replace
from typing import List, Optional, Sequence

import numpy as np

from ..models.audio import BeatMarker, SilenceSegment
from ..models.content import ContentAnalysis
from ..models.decision import SegmentDecision
from ..models.segment import AnalyzedSegment, RhythmAnalysis, SilenceAnalysis

logger = logging.getLogger(__name__)

MERGE_MAX_GAP = 0.5
MERGE_MAX_QUALITY_DELTA = 0.2
SMOOTHING_MAX_DURATION = 2.0


def annotate_silence(segments: Sequence[AnalyzedSegment],
                     silence_segments: Sequence[SilenceSegment]) -> List[AnalyzedSegment]:
    """Mark each segment silent when silence runs cover at least half of it.

    Runs span buffers, so the run duration (not the overlap) is what the
    decision rules compare against the minimum silence duration.
    """
    annotated = []
    for segment in segments:
        overlaps = []
        for run in silence_segments:
            overlap = min(segment.end_time, run.end_time) - max(segment.start_time, run.start_time)
            if overlap > 0:
                overlaps.append((overlap, run))

        covered = sum(overlap for overlap, _ in overlaps)
        if overlaps and covered >= 0.5 * segment.duration:
            weights = np.array([overlap for overlap, _ in overlaps])
            silence = SilenceAnalysis(
                is_silence=True,
                confidence=float(np.average([run.confidence for _, run in overlaps], weights=weights)),
                average_level_db=float(np.average([run.average_level_db for _, run in overlaps], weights=weights)),
                duration=max(run.duration for _, run in overlaps),
            )
        else:
            silence = SilenceAnalysis(
                is_silence=False,
                confidence=0.0,
                average_level_db=segment.segment.silence.average_level_db,
                duration=covered,
            )
        annotated.append(replace(segment, segment=replace(segment.segment, silence=silence)))
    return annotated


def can_merge(current: AnalyzedSegment, following: AnalyzedSegment) -> bool:
    gap = following.start_time - current.end_time
    return (gap < MERGE_MAX_GAP
            and current.content_type is following.content_type
            and abs(current.quality_score - following.quality_score) < MERGE_MAX_QUALITY_DELTA)


def merge_pair(first: AnalyzedSegment, second: AnalyzedSegment) -> AnalyzedSegment:
    """Combine two adjacent segments. Content and classification come from the first."""
    weights = _duration_weights(first, second)
    a, b = first.segment, second.segment

    silence = _merge_silence(first, second, weights)
    beat_alignment = a.beat_alignment if a.beat_alignment is not None else b.beat_alignment

    merged_segment = replace(
        a,
        start_time=min(a.start_time, b.start_time),
        end_time=max(a.end_time, b.end_time),
        rms_level=float(np.average([a.rms_level, b.rms_level], weights=weights)),
        quality_score=float(np.average([a.quality_score, b.quality_score], weights=weights)),
        silence=silence,
        beat_alignment=beat_alignment,
    )

    rhythm = RhythmAnalysis(
        beats=first.rhythm.beats + second.rhythm.beats,
        tempo=second.rhythm.tempo or first.rhythm.tempo,
        rhythm_strength=float(np.average([first.rhythm.rhythm_strength, second.rhythm.rhythm_strength],
                                         weights=weights)),
    )

    video_quality = _merge_optional(first.video_quality, second.video_quality, weights)
    return replace(first, segment=merged_segment, rhythm=rhythm, video_quality=video_quality, decision=None)


def merge_segments(segments: Sequence[AnalyzedSegment]) -> List[AnalyzedSegment]:
    """Merge compatible neighbours until no pair is left to merge."""
    merged = list(segments)
    while True:
        result = _merge_pass(merged)
        if len(result) == len(merged):
            return result
        merged = result


def _merge_pass(segments: Sequence[AnalyzedSegment]) -> List[AnalyzedSegment]:
    if not segments:
        return []

    result = []
    current = segments[0]
    for following in segments[1:]:
        if can_merge(current, following):
            current = merge_pair(current, following)
        else:
            result.append(current)
            current = following
    result.append(current)
    return result


def filter_segments(segments: Sequence[AnalyzedSegment], quality_threshold: float,
                    minimum_duration: float) -> List[AnalyzedSegment]:
    kept = [s for s in segments
            if s.quality_score >= quality_threshold and s.duration >= minimum_duration]
    if len(kept) != len(segments):
        logger.debug(f"Filtered out {len(segments) - len(kept)} of {len(segments)} segments")
    return kept


def smooth_segments(segments: Sequence[AnalyzedSegment]) -> List[AnalyzedSegment]:
    """Relabel short isolated segments whose neighbours agree with each other."""
    smoothed = list(segments)

    for i in range(1, len(segments) - 1):
        previous, current, following = segments[i - 1], segments[i], segments[i + 1]
        if previous.content_type is not following.content_type:
            continue
        if current.content_type is previous.content_type:
            continue
        if current.duration >= SMOOTHING_MAX_DURATION:
            continue

        content = ContentAnalysis(
            content_type=previous.content_type,
            confidence=(previous.content.confidence + following.content.confidence) / 2,
            speech_probability=(previous.content.speech_probability + following.content.speech_probability) / 2,
            music_probability=(previous.content.music_probability + following.content.music_probability) / 2,
            noise_probability=(previous.content.noise_probability + following.content.noise_probability) / 2,
        )
        logger.debug(f"Smoothed {current.start_time:.3f}s from {current.content_type.value} "
                    f"to {content.content_type.value}")
        smoothed[i] = replace(
            current,
            content=content,
            segment=replace(current.segment, classification=content.content_type),
        )

    return smoothed


def snap_cut_to_grid(decision: SegmentDecision, grid: Sequence[BeatMarker],
                     max_offset: float) -> SegmentDecision:
    """Move suggested cut boundaries onto nearby beat-grid slots."""
    if decision.suggested_cut is None or not grid or max_offset <= 0:
        return decision

    times = np.array([marker.timestamp for marker in grid])
    start, end = decision.suggested_cut
    snapped_start = _snap(start, times, max_offset)
    snapped_end = _snap(end, times, max_offset)
    if snapped_end <= snapped_start:
        return decision
    return replace(decision, suggested_cut=(snapped_start, snapped_end))


def _snap(value: float, times: np.ndarray, max_offset: float) -> float:
    nearest = float(times[int(np.argmin(np.abs(times - value)))])
    return nearest if abs(nearest - value) <= max_offset else value


def _duration_weights(first: AnalyzedSegment, second: AnalyzedSegment) -> List[float]:
    weights = [max(first.duration, 0.0), max(second.duration, 0.0)]
    if sum(weights) <= 0:
        return [1.0, 1.0]
    return weights


def _merge_silence(first: AnalyzedSegment, second: AnalyzedSegment, weights: List[float]) -> SilenceAnalysis:
    a, b = first.segment.silence, second.segment.silence
    silent_weight = sum(w for w, s in zip(weights, (a, b)) if s.is_silence)
    is_silence = silent_weight >= 0.5 * sum(weights)

    if silent_weight > 0:
        confidence = sum(w * s.confidence for w, s in zip(weights, (a, b)) if s.is_silence) / silent_weight
    else:
        confidence = 0.0

    return SilenceAnalysis(
        is_silence=is_silence,
        confidence=confidence if is_silence else 0.0,
        average_level_db=float(np.average([a.average_level_db, b.average_level_db], weights=weights)),
        duration=max(a.duration, b.duration),
    )


def _merge_optional(a: Optional[float], b: Optional[float], weights: List[float]) -> Optional[float]:
    if a is None or b is None:
        return a if a is not None else b
    return float(np.average([a, b], weights=weights))
