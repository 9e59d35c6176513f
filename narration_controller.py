from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import Awaitable, Optional, Protocol

import numpy as np

from config_utils import read_bool_env, read_float_env
from errors import NarrationFailed
from speech_service import SynthesizedSpeech, decode_speech


class SpeechSynthesizer(Protocol):
    def synthesize(self, text: str, language: str) -> Awaitable[SynthesizedSpeech]: ...


class AudioPlayer(Protocol):
    def play(self, samples: np.ndarray, sample_rate: int) -> None: ...

    def stop(self) -> None: ...


class NarrationController:
    """Speaks translations without ever holding up the pipeline.

    Only one narration is in flight per session: a new request cancels the
    previous one (and silences its playback) instead of queueing behind it.
    """

    def __init__(
        self,
        synthesizer: Optional[SpeechSynthesizer],
        player: Optional[AudioPlayer],
        enabled: Optional[bool] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        self._synthesizer = synthesizer
        self._player = player
        self._enabled = read_bool_env("SPEECH_ENABLED", True) if enabled is None else enabled
        self._timeout_s = timeout_s or read_float_env("SPEECH_TIMEOUT_SECONDS", 6.0)
        self._current: Optional[asyncio.Task[None]] = None
        self.failures = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def available(self) -> bool:
        return self._synthesizer is not None and self._player is not None

    @property
    def in_flight(self) -> bool:
        return self._current is not None and not self._current.done()

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled
        if not enabled:
            self.cancel()

    def narrate(self, text: str, language: str) -> Optional[asyncio.Task[None]]:
        if not self._enabled or not self.available or not (text or "").strip():
            return None
        self.cancel()
        self._current = asyncio.create_task(self._run(text.strip(), language), name="narration")
        return self._current

    def cancel(self) -> None:
        task, self._current = self._current, None
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        task, self._current = self._current, None
        if task is None:
            return
        task.cancel()
        with suppress(asyncio.CancelledError):
            await task

    async def _run(self, text: str, language: str) -> None:
        assert self._synthesizer is not None and self._player is not None
        playing = False
        try:
            try:
                speech = await asyncio.wait_for(self._synthesizer.synthesize(text, language), timeout=self._timeout_s)
                samples = decode_speech(speech)
                self._player.play(samples, speech.sample_rate)
                playing = True
            except asyncio.CancelledError:
                raise
            except asyncio.TimeoutError as exc:
                raise NarrationFailed(f"speech synthesis timed out after {self._timeout_s:.1f}s") from exc
            except Exception as exc:  # noqa: BLE001 - optional stage boundary
                raise NarrationFailed(str(exc)) from exc
            await asyncio.sleep(samples.shape[0] / speech.sample_rate)
            playing = False
        except NarrationFailed as exc:
            self.failures += 1
            logging.warning("narration_failed language=%s error=%s", language, exc)
        finally:
            if playing:
                # Superseded or cancelled mid-clip.
                self._stop_player()

    def _stop_player(self) -> None:
        try:
            self._player.stop()  # type: ignore[union-attr]
        except Exception as exc:  # noqa: BLE001 - optional stage boundary
            logging.warning("narration_stop_failed error=%s", exc)
