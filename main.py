from __future__ import annotations

import asyncio
import logging
import os
import signal
import sys
from contextlib import suppress
from typing import Optional

from dotenv import load_dotenv

from audio_windower import CommentaryAudioWindower
from errors import CaptureUnavailable
from metrics_reporter import SessionMetricsReporter, StatsCollector
from narration_controller import NarrationController
from pipeline_types import SessionEvent
from roster_service import RosterLookupService
from session_controller import CommentarySession
from speech_service import OpenAISpeechService, SoundDevicePlayer
from transcription_gate import TranscriptionGate
from transcription_service import WhisperTranscriptionService
from translation_service import TranslationResolver


def _print_event(event: SessionEvent) -> None:
    stamp = event.candidate.segment.captured_at.strftime("%H:%M:%S")
    print(
        f"[{stamp} #{event.sequence}] {event.candidate.text}\n"
        f"    -> {event.translation.translated_text} ({event.translation.method})",
        flush=True,
    )


def build_session(loop: asyncio.AbstractEventLoop, on_error=None) -> CommentarySession:
    transcriber = WhisperTranscriptionService()
    speech: Optional[OpenAISpeechService] = None
    if os.getenv("OPENAI_API_KEY"):
        speech = OpenAISpeechService()
    roster: Optional[RosterLookupService] = None
    if os.getenv("FOOTBALL_DATA_API_KEY"):
        roster = RosterLookupService()
    return CommentarySession(
        windower=CommentaryAudioWindower(loop=loop),
        gate=TranscriptionGate(transcriber),
        resolver=TranslationResolver(),
        narrator=NarrationController(speech, SoundDevicePlayer()),
        stats=StatsCollector(),
        reporter=SessionMetricsReporter(),
        roster=roster,
        on_event=_print_event,
        on_error=on_error,
    )


async def _run() -> int:
    loop = asyncio.get_running_loop()
    stop_requested = asyncio.Event()

    def _on_error(exc: Exception) -> None:
        logging.error("session_error %s", exc)
        stop_requested.set()

    try:
        session = build_session(loop, on_error=_on_error)
    except RuntimeError as exc:
        logging.error("startup_error %s", exc)
        return 2

    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError):
            loop.add_signal_handler(sig, stop_requested.set)

    try:
        await session.start()
    except CaptureUnavailable as exc:
        logging.error("capture_unavailable %s", exc)
        return 1

    logging.info(
        "Listening to commentary (%s -> %s). Press Ctrl+C to stop.",
        session.source_language,
        session.target_language,
    )
    await stop_requested.wait()
    await session.stop()
    stats = session.stats
    logging.info(
        "session_done captured=%d filtered=%d translated=%d",
        stats.captured,
        stats.filtered,
        stats.translated,
    )
    return 1 if session.last_error else 0


def main() -> None:
    load_dotenv()
    log_level_name = (os.getenv("LOG_LEVEL", "INFO") or "INFO").upper()
    log_level = getattr(logging, log_level_name, logging.INFO)
    logging.basicConfig(level=log_level, format="%(asctime)s %(levelname)s %(message)s")
    try:
        sys.exit(asyncio.run(_run()))
    except KeyboardInterrupt:
        sys.exit(130)


if __name__ == "__main__":
    main()
