"""Analysis pipeline: concurrent per-buffer analysis and ordered post-processing."""

import asyncio
import logging
import random
import string
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import AsyncIterable, Callable, Dict, Iterable, List, Optional, Union

from ..audio.beats import BeatDetector, refine_beat_grid
from ..audio.rms import RMSAnalyzer, rms_to_db
from ..classification.base import AbstractContentClassifier
from ..config import AnalysisConfig
from ..decision.engine import DecisionEngine
from ..errors import AnalysisFailed, BeatcutError, ProcessingCancelled, ProcessingFailed, ProcessingInProgress
from ..models.audio import AudioBuffer, BeatDetectionResult, BeatDetectorStats, BeatPoint, RMSAnalysisResult, SilenceSegment
from ..models.content import ContentAnalysis
from ..models.events import BufferAnalyzedEvent, BufferFailedEvent, SessionEvent, SessionEventType
from ..models.report import AnalysisReport, PipelineState, PipelineStatistics
from ..models.segment import AnalyzedSegment, AudioSegment, BeatAlignment, RhythmAnalysis, SilenceAnalysis
from .postprocess import annotate_silence, filter_segments, merge_segments, smooth_segments, snap_cut_to_grid
from .publisher import AnalysisPublisher

logger = logging.getLogger(__name__)

BufferStream = Union[Iterable[AudioBuffer], AsyncIterable[AudioBuffer]]
VideoQualityProvider = Callable[[float, float], Optional[float]]

_TERMINAL_EVENTS = {
    PipelineState.COMPLETED: SessionEventType.COMPLETED,
    PipelineState.CANCELLED: SessionEventType.CANCELLED,
    PipelineState.FAILED: SessionEventType.FAILED,
}


@dataclass
class _BufferOutcome:
    """What one buffer contributed. segment is None when the buffer was dropped."""
    index: int
    segment: Optional[AnalyzedSegment]
    silence_segments: List[SilenceSegment] = field(default_factory=list)
    beats: List[BeatPoint] = field(default_factory=list)
    end_time: float = 0.0


@dataclass
class _Session:
    session_id: str
    started_at: float
    buffer_count: int = 0
    dropped_buffers: int = 0
    segment_count: int = 0
    error: Optional[str] = None


class AnalysisPipeline:
    """Runs the RMS analyzer, beat detector and classifier over a buffer stream.

    Each buffer is analyzed by the three components concurrently. Every
    component runs on its own single-worker executor, so its history is only
    ever touched by one thread, in dispatch order. Results are re-sorted by
    time before the merge, filter and smoothing passes.

    Only one session may run at a time. cancel() stops dispatching new
    buffers; the session then raises ProcessingCancelled and returns nothing.
    """
    
    def __init__(self,
                 config: AnalysisConfig,
                 classifier: AbstractContentClassifier,
                 publisher: Optional[AnalysisPublisher] = None,
                 max_in_flight: int = 16):
        """Initialize analysis pipeline.
        
        Args:
            config: Analysis settings
            classifier: Content classifier supplying speech/music/noise probabilities
            publisher: Event publisher; a default one is created when omitted
            max_in_flight: Maximum number of buffers being analyzed at once
        """
        config.validate()
        if max_in_flight < 1:
            raise ValueError(f"max_in_flight must be at least 1, got {max_in_flight}")
        
        self.config = config
        self.classifier = classifier
        self.publisher = publisher or AnalysisPublisher()
        self.max_in_flight = max_in_flight
        self.decision_engine = DecisionEngine(config)
        
        self.state = PipelineState.IDLE
        self.last_outcome: Optional[PipelineState] = None
        self.state_lock = threading.Lock()
        self.cancel_event = threading.Event()
        
        self.stats = PipelineStatistics()
        self.stats_lock = threading.Lock()
        
        self.rms_analyzer: Optional[RMSAnalyzer] = None
        self.beat_detector: Optional[BeatDetector] = None
        
        logger.info(f"AnalysisPipeline initialized: classifier={classifier.name}, "
                   f"rhythm={config.rhythm_mode.value}, max in flight={max_in_flight}")
    
    @property
    def is_analyzing(self) -> bool:
        return self.state is PipelineState.ANALYZING
    
    def cancel(self) -> None:
        """Request cooperative cancellation of the running session."""
        if self.is_analyzing:
            logger.info("Cancellation requested")
            self.cancel_event.set()
    
    def analyze_sync(self, buffers: BufferStream,
                     video_quality: Optional[VideoQualityProvider] = None) -> AnalysisReport:
        """Run analyze() to completion on a fresh event loop."""
        return asyncio.run(self.analyze(buffers, video_quality))
    
    async def analyze(self, buffers: BufferStream,
                      video_quality: Optional[VideoQualityProvider] = None) -> AnalysisReport:
        """Analyze a buffer stream and decide every resulting segment.
        
        Args:
            buffers: Iterable or async iterable of AudioBuffer in stream order
            video_quality: Optional callable (start, end) -> score in [0, 1]
            
        Returns:
            AnalysisReport with time-ordered segments and attached decisions
            
        Raises:
            ProcessingInProgress: If a session is already running
            ConfigurationError: If the configuration is invalid
            ProcessingCancelled: If cancel() was called during the session
            ProcessingFailed: If the session failed unexpectedly
        """
        with self.state_lock:
            if self.state is PipelineState.ANALYZING:
                raise ProcessingInProgress("An analysis session is already running")
            self.state = PipelineState.ANALYZING
            self.cancel_event.clear()
        
        session = _Session(session_id=_new_session_id(), started_at=time.perf_counter())
        outcome = PipelineState.FAILED
        try:
            self.config.validate()
            self.publisher.publish_session_event(
                SessionEvent(session_id=session.session_id, event_type=SessionEventType.STARTED))
            logger.info(f"Analysis session {session.session_id} started")
            
            report = await self._run_session(session, buffers, video_quality)
            outcome = PipelineState.COMPLETED
            return report
        except ProcessingCancelled as e:
            outcome = PipelineState.CANCELLED
            session.error = str(e)
            raise
        except BeatcutError as e:
            session.error = str(e)
            raise
        except Exception as e:
            session.error = str(e)
            logger.error(f"Analysis session {session.session_id} failed: {e}", exc_info=True)
            raise ProcessingFailed(f"Analysis session failed: {e}") from e
        finally:
            self._end_session(session, outcome)
    
    def get_pipeline_stats(self) -> PipelineStatistics:
        with self.stats_lock:
            return replace(self.stats)
    
    # Session
    
    async def _run_session(self, session: _Session, buffers: BufferStream,
                           video_quality: Optional[VideoQualityProvider]) -> AnalysisReport:
        loop = asyncio.get_running_loop()
        rms_analyzer = RMSAnalyzer(self.config)
        beat_detector = BeatDetector(self.config) if self.config.rhythm_mode.enabled else None
        self.rms_analyzer, self.beat_detector = rms_analyzer, beat_detector
        
        names = ["rms", "classifier"] + (["beats"] if beat_detector is not None else [])
        executors = {
            name: ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"beatcut-{name}")
            for name in names
        }
        semaphore = asyncio.Semaphore(self.max_in_flight)
        tasks: List[asyncio.Future] = []
        expected_rate: Optional[float] = None
        
        try:
            async for buffer in _iterate(buffers):
                if self.cancel_event.is_set():
                    break
                await semaphore.acquire()
                if self.cancel_event.is_set():
                    semaphore.release()
                    break
                
                if expected_rate is None:
                    expected_rate = buffer.sample_rate
                
                task = asyncio.ensure_future(self._analyze_buffer(
                    session, len(tasks), buffer, expected_rate, executors,
                    rms_analyzer, beat_detector, video_quality))
                task.add_done_callback(lambda _: semaphore.release())
                tasks.append(task)
                session.buffer_count += 1
            
            outcomes: List[_BufferOutcome] = list(await asyncio.gather(*tasks))
            trailing_silence = await loop.run_in_executor(executors["rms"], rms_analyzer.finish)
        finally:
            if tasks:
                await asyncio.gather(*tasks, return_exceptions=True)
            for executor in executors.values():
                executor.shutdown(wait=True)
        
        if self.cancel_event.is_set():
            logger.info(f"Session {session.session_id} cancelled after {session.buffer_count} buffers, "
                       f"discarding output")
            raise ProcessingCancelled(f"Analysis cancelled after {session.buffer_count} buffers")
        
        return self._build_report(session, outcomes, trailing_silence, beat_detector)
    
    async def _analyze_buffer(self, session: _Session, index: int, buffer: AudioBuffer,
                              expected_rate: float, executors: Dict[str, ThreadPoolExecutor],
                              rms_analyzer: RMSAnalyzer, beat_detector: Optional[BeatDetector],
                              video_quality: Optional[VideoQualityProvider]) -> _BufferOutcome:
        loop = asyncio.get_running_loop()
        started = time.perf_counter()
        outcome = _BufferOutcome(index=index, segment=None, end_time=buffer.end_time)
        
        try:
            if buffer.sample_rate != expected_rate:
                raise AnalysisFailed(f"Sample rate {buffer.sample_rate} does not match stream rate {expected_rate}",
                                     buffer.timestamp)
            
            jobs = [
                loop.run_in_executor(executors["rms"], rms_analyzer.analyze, buffer),
                loop.run_in_executor(executors["classifier"], self.classifier.classify, buffer),
            ]
            if beat_detector is not None:
                jobs.append(loop.run_in_executor(executors["beats"], beat_detector.process, buffer))
            results = await asyncio.gather(*jobs, return_exceptions=True)
            
            rms_result, content = results[0], results[1]
            beat_result = results[2] if beat_detector is not None else None
            
            # Silence runs and beats are stream-level; keep them even if the segment is dropped
            if isinstance(rms_result, RMSAnalysisResult):
                outcome.silence_segments = rms_result.silence_segments
            if isinstance(beat_result, BeatDetectionResult):
                outcome.beats = beat_result.beats
            
            for result in results:
                if isinstance(result, Exception):
                    raise result
            
            quality = video_quality(buffer.timestamp, buffer.end_time) if video_quality else None
            outcome.segment = self._assemble_segment(buffer, rms_result, content, beat_result, quality)
        except AnalysisFailed as e:
            logger.warning(f"Dropping buffer {index} at {buffer.timestamp:.3f}s: {e}")
            self._drop_buffer(session, index, buffer, str(e))
            return outcome
        except Exception as e:
            logger.error(f"Unexpected error analyzing buffer {index} at {buffer.timestamp:.3f}s: {e}", exc_info=True)
            self._drop_buffer(session, index, buffer, f"{type(e).__name__}: {e}")
            return outcome
        
        segment = outcome.segment
        event = BufferAnalyzedEvent(
            session_id=session.session_id,
            index=index,
            timestamp=buffer.timestamp,
            duration=buffer.duration,
            content_type=segment.content_type,
            rms_level_db=rms_to_db(segment.segment.rms_level),
            beat_count=len(outcome.beats),
            processing_time=time.perf_counter() - started,
        )
        self._publish_buffer_event(event)
        logger.debug(f"Buffer {index} at {buffer.timestamp:.3f}s: {segment.content_type.value}, "
                    f"{rms_to_db(segment.segment.rms_level):.1f}dB, {len(outcome.beats)} beats")
        return outcome
    
    def _assemble_segment(self, buffer: AudioBuffer, rms_result: RMSAnalysisResult,
                          content: ContentAnalysis, beat_result: Optional[BeatDetectionResult],
                          video_quality: Optional[float]) -> AnalyzedSegment:
        # Silence flags come from the stream-level runs after sorting
        silence = SilenceAnalysis(average_level_db=rms_to_db(rms_result.average_rms))
        
        rhythm = RhythmAnalysis()
        beat_alignment = None
        if beat_result is not None:
            rhythm = RhythmAnalysis(
                beats=tuple(beat_result.beats),
                tempo=beat_result.tempo,
                rhythm_strength=beat_result.rhythm_strength,
            )
            if beat_result.beats:
                nearest = min(beat_result.beats, key=lambda beat: abs(beat.timestamp - buffer.timestamp))
                offset = nearest.timestamp - buffer.timestamp
                beat_alignment = BeatAlignment(
                    nearest_beat=nearest,
                    offset=offset,
                    is_aligned=abs(offset) <= self.config.beat_alignment_tolerance,
                )
        
        return AnalyzedSegment(
            segment=AudioSegment(
                start_time=buffer.timestamp,
                end_time=buffer.end_time,
                rms_level=rms_result.average_rms,
                classification=content.content_type,
                silence=silence,
                beat_alignment=beat_alignment,
            ),
            content=content,
            rhythm=rhythm,
            video_quality=video_quality,
        )
    
    def _drop_buffer(self, session: _Session, index: int, buffer: AudioBuffer, reason: str) -> None:
        session.dropped_buffers += 1
        self._publish_buffer_event(BufferFailedEvent(
            session_id=session.session_id,
            index=index,
            timestamp=buffer.timestamp,
            reason=reason,
        ))
    
    def _publish_buffer_event(self, event: Union[BufferAnalyzedEvent, BufferFailedEvent]) -> None:
        # A failing subscriber loses the notification, not the buffer
        try:
            self.publisher.publish_buffer_event(event)
        except Exception as e:
            logger.error(f"Subscriber failed on {type(event).__name__} for buffer {event.index}: {e}", exc_info=True)
    
    def _build_report(self, session: _Session, outcomes: List[_BufferOutcome],
                      trailing_silence: List[SilenceSegment],
                      beat_detector: Optional[BeatDetector]) -> AnalysisReport:
        segments = sorted((o.segment for o in outcomes if o.segment is not None),
                          key=lambda s: (s.start_time, s.end_time))
        silence_segments = sorted([s for o in outcomes for s in o.silence_segments] + trailing_silence,
                                  key=lambda s: s.start_time)
        beats = sorted((b for o in outcomes for b in o.beats), key=lambda b: b.timestamp)
        session_end = max((o.end_time for o in outcomes), default=0.0)
        
        segments = annotate_silence(segments, silence_segments)
        segments = [replace(s, segment=replace(s.segment, quality_score=self.decision_engine.quality_score(s)))
                    for s in segments]
        segments = merge_segments(segments)
        segments = filter_segments(segments, self.config.quality_threshold, self.config.minimum_segment_duration)
        segments = smooth_segments(segments)
        
        tempo = beat_detector.tempo if beat_detector is not None else 0.0
        beat_grid = refine_beat_grid(beats, 60.0 / tempo, end_time=session_end) if tempo > 0 else []
        max_snap = self.config.rhythm_mode.alignment_strength * (60.0 / tempo) / 2 if tempo > 0 else 0.0
        
        decisions = self.decision_engine.evaluate_segments(segments, rescore=False)
        segments = [replace(s, decision=snap_cut_to_grid(d, beat_grid, max_snap))
                    for s, d in zip(segments, decisions)]
        session.segment_count = len(segments)
        
        if beat_detector is not None:
            beat_stats = beat_detector.get_stats()
        else:
            beat_stats = BeatDetectorStats(name="beats")
        
        return AnalysisReport(
            session_id=session.session_id,
            segments=segments,
            silence_segments=silence_segments,
            beats=beats,
            beat_grid=beat_grid,
            tempo=tempo,
            decision_statistics=self.decision_engine.statistics,
            rms_stats=self.rms_analyzer.get_stats(),
            beat_stats=beat_stats,
            buffer_count=session.buffer_count,
            dropped_buffers=session.dropped_buffers,
            processing_time=time.perf_counter() - session.started_at,
        )
    
    def _end_session(self, session: _Session, outcome: PipelineState) -> None:
        elapsed = time.perf_counter() - session.started_at
        
        with self.stats_lock:
            if outcome is PipelineState.COMPLETED:
                self.stats.sessions_completed += 1
                self.stats.buffers_processed += session.buffer_count - session.dropped_buffers
                self.stats.buffers_dropped += session.dropped_buffers
                self.stats.segment_count += session.segment_count
            elif outcome is PipelineState.CANCELLED:
                self.stats.sessions_cancelled += 1
            else:
                self.stats.sessions_failed += 1
            self.stats.total_processing_time += elapsed
        
        with self.state_lock:
            self.state = outcome
            self.last_outcome = outcome
        
        try:
            self.publisher.publish_session_event(SessionEvent(
                session_id=session.session_id,
                event_type=_TERMINAL_EVENTS[outcome],
                buffer_count=session.buffer_count,
                segment_count=session.segment_count,
                dropped_buffers=session.dropped_buffers,
                processing_time=elapsed,
                error=session.error,
            ))
        finally:
            with self.state_lock:
                self.state = PipelineState.IDLE
                self.cancel_event.clear()
        
        logger.info(f"Analysis session {session.session_id} {outcome.value}: "
                   f"{session.buffer_count} buffers, {session.dropped_buffers} dropped, "
                   f"{session.segment_count} segments in {elapsed:.2f}s")


async def _iterate(buffers: BufferStream):
    """Yield buffers from a sync or async iterable."""
    if hasattr(buffers, "__aiter__"):
        async for buffer in buffers:
            yield buffer
    else:
        for buffer in buffers:
            yield buffer
            # Let in-flight analysis tasks make progress between buffers
            await asyncio.sleep(0)


def _new_session_id() -> str:
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    random_suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=4))
    return f"{timestamp}_{random_suffix}"
