from __future__ import annotations

import asyncio
import logging
from bisect import insort
from contextlib import suppress
from datetime import datetime
from typing import Awaitable, Callable, Optional, Protocol

from config_utils import read_float_env, read_int_env, read_language_env, read_str_env
from errors import CaptureUnavailable, InvalidInput, PipelineError, SessionBusy, TranslationFailed
from metrics_reporter import SessionMetricsReporter, StatsCollector
from narration_controller import NarrationController
from pipeline_types import AudioSegment, SessionEvent, SessionState, StatsSnapshot, TranscriptCandidate
from transcription_gate import TranscriptionGate
from translation_service import TranslationResolver

EventCallback = Callable[[SessionEvent], None]
StateCallback = Callable[[SessionState, SessionState], None]
ErrorCallback = Callable[[Exception], None]


class Windower(Protocol):
    def attach(
        self,
        on_segment: Callable[[AudioSegment], None],
        on_fault: Optional[Callable[[Exception], None]] = None,
    ) -> None: ...

    def set_language(self, language: str) -> None: ...

    def reset_sequence(self) -> None: ...

    def start(self) -> None: ...

    def stop(self) -> None: ...

    def restart(self) -> None: ...


class RosterSource(Protocol):
    def fetch_player_names(self, match_id: str) -> Awaitable[list[str]]: ...


class CommentarySession:
    """Capture lifecycle and utterance pipeline for one viewer session.

    IDLE -> LISTENING -> STOPPED, and STOPPED -> LISTENING again. Segments are
    transcribed one at a time in sequence order; translations run concurrently
    but land in the session log by sequence number. Anything finishing after
    the run ended (stop or clear) is dropped.
    """

    def __init__(
        self,
        windower: Windower,
        gate: TranscriptionGate,
        resolver: TranslationResolver,
        narrator: Optional[NarrationController] = None,
        stats: Optional[StatsCollector] = None,
        reporter: Optional[SessionMetricsReporter] = None,
        roster: Optional[RosterSource] = None,
        source_language: Optional[str] = None,
        target_language: Optional[str] = None,
        match_id: Optional[str] = None,
        max_restarts: Optional[int] = None,
        restart_backoff_s: Optional[float] = None,
        on_event: Optional[EventCallback] = None,
        on_state_change: Optional[StateCallback] = None,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._windower = windower
        self._gate = gate
        self._resolver = resolver
        self._narrator = narrator
        self._stats = stats or StatsCollector()
        self._reporter = reporter
        self._roster = roster
        self._source_language = source_language or read_language_env("SOURCE_LANGUAGE", "es")
        self._target_language = target_language or read_language_env("TARGET_LANGUAGE", "en")
        self._match_id = match_id or read_str_env("MATCH_ID")
        self._max_restarts = (
            max_restarts if max_restarts is not None else read_int_env("CAPTURE_MAX_RESTARTS", 3, allow_zero=True)
        )
        self._restart_backoff_s = (
            restart_backoff_s
            if restart_backoff_s is not None
            else read_float_env("CAPTURE_RESTART_BACKOFF_SECONDS", 0.5, allow_zero=True)
        )
        self._on_event = on_event
        self._on_state_change = on_state_change
        self._on_error = on_error

        self._state = SessionState.IDLE
        self._epoch = 0
        self._log: list[SessionEvent] = []
        self._segment_queue: Optional[asyncio.Queue[AudioSegment]] = None
        self._worker: Optional[asyncio.Task[None]] = None
        self._recovery: Optional[asyncio.Task[None]] = None
        self._pending: set[asyncio.Task[None]] = set()
        self._roster_loaded = False
        self._start_lock = asyncio.Lock()
        self.last_error: Optional[Exception] = None

        self._windower.attach(self._accept_segment, self._on_capture_fault)

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def session_log(self) -> tuple[SessionEvent, ...]:
        return tuple(self._log)

    @property
    def stats(self) -> StatsSnapshot:
        return self._stats.snapshot()

    @property
    def source_language(self) -> str:
        return self._source_language

    @property
    def target_language(self) -> str:
        return self._target_language

    async def start(self) -> None:
        # Overlapping calls queue here; only the first one opens a run.
        async with self._start_lock:
            if self._state == SessionState.LISTENING:
                return
            await self._load_roster()
            self._open_run()

    def _open_run(self) -> None:
        self._windower.set_language(self._source_language)
        try:
            self._windower.start()
        except CaptureUnavailable as exc:
            self.last_error = exc
            logging.error("session_start_failed error=%s", exc)
            raise

        self._epoch += 1
        self.last_error = None
        self._segment_queue = asyncio.Queue()
        if self._reporter is not None:
            self._reporter.start_session()
        self._worker = asyncio.create_task(
            self._transcription_worker_loop(self._segment_queue),
            name="transcription-worker",
        )
        self._transition(SessionState.LISTENING)
        logging.info(
            "session_listening source=%s target=%s",
            self._source_language,
            self._target_language,
        )

    async def stop(self) -> None:
        if self._state != SessionState.LISTENING:
            return
        await self._halt()

    def swap_languages(self) -> None:
        if self._state == SessionState.LISTENING:
            raise SessionBusy("Stop listening before swapping languages.")
        self._source_language, self._target_language = self._target_language, self._source_language
        self._windower.set_language(self._source_language)
        self.clear()
        logging.info("session_languages_swapped source=%s target=%s", self._source_language, self._target_language)

    def clear(self) -> None:
        self._epoch += 1
        self._log.clear()
        self._stats.reset()
        if self._segment_queue is not None:
            self._drain_queue(self._segment_queue)
        if self._state != SessionState.LISTENING:
            self._windower.reset_sequence()
        logging.info("session_cleared")

    def set_speech_enabled(self, enabled: bool) -> None:
        if self._narrator is not None:
            self._narrator.set_enabled(enabled)

    async def drain(self) -> None:
        """Wait until queued segments and in-flight translations have settled."""
        if self._segment_queue is not None and self._worker is not None and not self._worker.done():
            await self._segment_queue.join()
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _load_roster(self) -> None:
        if self._roster_loaded or self._roster is None or not self._match_id:
            return
        try:
            names = await self._roster.fetch_player_names(self._match_id)
        except Exception as exc:  # noqa: BLE001 - optional collaborator boundary
            logging.warning("roster_unavailable match_id=%s error=%s", self._match_id, exc)
            return
        self._gate.set_extra_keywords(names)
        self._roster_loaded = True

    def _accept_segment(self, segment: AudioSegment) -> None:
        if self._state != SessionState.LISTENING or self._segment_queue is None:
            return
        self._stats.record_captured()
        self._segment_queue.put_nowait(segment)

    async def _transcription_worker_loop(self, queue: asyncio.Queue[AudioSegment]) -> None:
        while True:
            segment = await queue.get()
            try:
                await self._process_segment(segment)
            except Exception as exc:  # noqa: BLE001 - runtime boundary
                logging.exception("segment_processing_error sequence=%d error=%s", segment.sequence, exc)
                if self._reporter is not None:
                    self._reporter.record_error("pipeline", str(exc), segment.sequence)
            finally:
                queue.task_done()

    async def _process_segment(self, segment: AudioSegment) -> None:
        epoch = self._epoch
        try:
            candidate, decision = await self._gate.process(segment)
        except PipelineError as exc:
            logging.warning("transcription_failed sequence=%d error=%s", segment.sequence, exc)
            if self._reporter is not None:
                self._reporter.record_error("transcription", str(exc), segment.sequence)
            return
        if epoch != self._epoch:
            return
        self._stats.record_decision(decision)
        if not decision.relevant:
            return
        task = asyncio.create_task(
            self._translate_candidate(candidate, epoch, self._target_language),
            name=f"translate-{segment.sequence}",
        )
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _translate_candidate(self, candidate: TranscriptCandidate, epoch: int, target_language: str) -> None:
        sequence = candidate.segment.sequence
        try:
            result = await self._resolver.resolve(candidate.text, candidate.language, target_language)
        except (TranslationFailed, InvalidInput) as exc:
            logging.error("translation_dropped sequence=%d error=%s", sequence, exc)
            if self._reporter is not None:
                self._reporter.record_error("translation", str(exc), sequence)
            return
        if epoch != self._epoch or self._state != SessionState.LISTENING:
            logging.info("translation_discarded sequence=%d state=%s", sequence, self._state.value)
            return

        event = SessionEvent(candidate=candidate, translation=result, recorded_at=datetime.now())
        insort(self._log, event, key=lambda item: item.sequence)
        self._stats.record_translated()
        if result.had_fallback:
            logging.warning("translation_fallback sequence=%d reason=%s", sequence, result.fallback_reason)
        logging.info(
            "segment_translated sequence=%d method=%s source=%r translated=%r",
            sequence,
            result.method,
            result.source_text,
            result.translated_text,
        )
        if self._reporter is not None:
            self._reporter.record_event(event)
        if self._on_event is not None:
            try:
                self._on_event(event)
            except Exception as exc:  # noqa: BLE001 - listener boundary
                logging.exception("event_callback_failed sequence=%d error=%s", sequence, exc)
        if self._narrator is not None:
            self._narrator.narrate(result.translated_text, result.target_language)

    def _on_capture_fault(self, exc: Exception) -> None:
        if self._state != SessionState.LISTENING:
            return
        if self._recovery is not None and not self._recovery.done():
            return
        self._recovery = asyncio.create_task(self._recover_capture(exc), name="capture-recovery")

    async def _recover_capture(self, exc: Exception) -> None:
        last_error: Exception = exc
        for attempt in range(1, self._max_restarts + 1):
            await asyncio.sleep(self._restart_backoff_s * (2 ** (attempt - 1)))
            if self._state != SessionState.LISTENING:
                return
            try:
                self._windower.restart()
            except CaptureUnavailable as restart_exc:
                last_error = restart_exc
                logging.warning("capture_restart_failed attempt=%d error=%s", attempt, restart_exc)
                continue
            logging.info("capture_restarted attempt=%d", attempt)
            return

        logging.error("capture_restart_exhausted attempts=%d error=%s", self._max_restarts, last_error)
        self.last_error = last_error
        await self._halt()
        if self._on_error is not None:
            self._on_error(last_error)

    async def _halt(self) -> None:
        self._epoch += 1
        self._windower.stop()
        self._transition(SessionState.STOPPED)
        current = asyncio.current_task()
        for task in (self._worker, self._recovery):
            if task is not None and task is not current and not task.done():
                task.cancel()
                with suppress(asyncio.CancelledError):
                    await task
        self._worker = None
        self._recovery = None
        if self._segment_queue is not None:
            self._drain_queue(self._segment_queue)
        if self._narrator is not None:
            self._narrator.cancel()
        if self._reporter is not None:
            summary = self._reporter.finalize_session(self._stats.snapshot())
            if summary:
                logging.info("metrics_session_summary %s", summary)
        logging.info("session_stopped stats=%s", self._stats.snapshot())

    @staticmethod
    def _drain_queue(queue: asyncio.Queue[AudioSegment]) -> None:
        while True:
            try:
                queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            queue.task_done()

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
