from __future__ import annotations

import asyncio
import io
import logging
import threading
import wave
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

import numpy as np

from config_utils import read_float_env, read_int_env, read_str_env
from errors import CaptureUnavailable
from pipeline_types import AudioSegment

SegmentCallback = Callable[[AudioSegment], None]
FaultCallback = Callable[[Exception], None]


class CommentaryAudioWindower:
    """Cuts microphone input into back-to-back fixed windows.

    Windows never overlap and never leave a gap. The audio callback runs on
    the PortAudio thread; finished segments and stream faults are handed to
    the event loop with ``call_soon_threadsafe``.
    """

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        window_seconds: Optional[float] = None,
        sample_rate: Optional[int] = None,
        channels: int = 1,
        preferred_device: Optional[str] = None,
        language: str = "es",
    ) -> None:
        self._loop = loop
        self._window_seconds = window_seconds or read_float_env("CHUNK_SECONDS", 3.0)
        self._sample_rate = sample_rate or read_int_env("AUDIO_SAMPLE_RATE", 16000)
        self._channels = channels
        self._preferred_device = preferred_device or read_str_env("AUDIO_INPUT_DEVICE")
        self._language = language
        self._samples_per_window = max(1, int(self._sample_rate * self._window_seconds))

        self._on_segment: Optional[SegmentCallback] = None
        self._on_fault: Optional[FaultCallback] = None
        self._stream: Any = None
        self._buffer = np.empty((0,), dtype=np.float32)
        self._buffer_lock = threading.Lock()
        self._window_started_at: Optional[datetime] = None
        self._next_sequence = 1
        self._running = False

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def window_seconds(self) -> float:
        return self._window_seconds

    @property
    def next_sequence(self) -> int:
        return self._next_sequence

    def attach(self, on_segment: SegmentCallback, on_fault: Optional[FaultCallback] = None) -> None:
        self._on_segment = on_segment
        self._on_fault = on_fault

    def set_language(self, language: str) -> None:
        self._language = language

    def reset_sequence(self) -> None:
        with self._buffer_lock:
            self._next_sequence = 1

    def start(self) -> None:
        if self._running:
            return
        self._discard_partial_window()
        try:
            self._stream = self._open_stream()
            self._stream.start()
        except Exception as exc:  # noqa: BLE001 - device acquisition boundary
            self._close_stream()
            raise CaptureUnavailable(f"Audio input could not be opened: {exc}") from exc
        self._running = True
        logging.info(
            "capture_started window_s=%.2f sample_rate=%d next_sequence=%d",
            self._window_seconds,
            self._sample_rate,
            self._next_sequence,
        )

    def stop(self) -> None:
        if not self._running and self._stream is None:
            return
        self._running = False
        self._close_stream()
        self._discard_partial_window()
        logging.info("capture_stopped next_sequence=%d", self._next_sequence)

    def restart(self) -> None:
        """Reopen the input after a fault; numbering continues where it stopped."""
        self.stop()
        self.start()

    def _open_stream(self) -> Any:
        # Deferred so that importing the pipeline does not require PortAudio.
        import sounddevice as sd

        return sd.InputStream(
            samplerate=self._sample_rate,
            channels=self._channels,
            dtype="float32",
            callback=self._audio_callback,
            finished_callback=self._stream_finished,
            device=self._resolve_input_device(sd),
            blocksize=0,
        )

    def _close_stream(self) -> None:
        stream, self._stream = self._stream, None
        if stream is None:
            return
        try:
            stream.stop()
            stream.close()
        except Exception as exc:  # noqa: BLE001 - device release boundary
            logging.warning("capture_close_failed error=%s", exc)

    def _discard_partial_window(self) -> None:
        with self._buffer_lock:
            self._buffer = np.empty((0,), dtype=np.float32)
            self._window_started_at = None

    def _audio_callback(self, indata, frames, time_info, status) -> None:
        del frames, time_info
        if status:
            logging.debug("capture_status status=%s", status)
        if not self._running:
            return
        segments = self._collect_windows(np.copy(indata[:, 0]), datetime.now())
        for segment in segments:
            self._loop.call_soon_threadsafe(self._publish_segment, segment)

    def _collect_windows(self, mono: np.ndarray, received_at: datetime) -> list[AudioSegment]:
        ready: list[AudioSegment] = []
        with self._buffer_lock:
            if not self._running:
                return ready
            if self._window_started_at is None:
                buffered_s = self._buffer.shape[0] / self._sample_rate
                self._window_started_at = received_at - timedelta(seconds=buffered_s)
            self._buffer = np.concatenate((self._buffer, mono))
            while self._buffer.shape[0] >= self._samples_per_window:
                raw_window = self._buffer[: self._samples_per_window].copy()
                self._buffer = self._buffer[self._samples_per_window :]
                ready.append(
                    AudioSegment(
                        wav_bytes=self._to_wav_bytes(raw_window),
                        captured_at=self._window_started_at,
                        sequence=self._next_sequence,
                        language=self._language,
                        duration_s=self._window_seconds,
                    )
                )
                self._next_sequence += 1
                self._window_started_at = self._window_started_at + timedelta(seconds=self._window_seconds)
        return ready

    def _publish_segment(self, segment: AudioSegment) -> None:
        if not self._running or self._on_segment is None:
            return
        self._on_segment(segment)

    def _stream_finished(self) -> None:
        if not self._running:
            return
        # PortAudio ended the stream on its own; the session decides whether to restart.
        self._running = False
        self._loop.call_soon_threadsafe(self._publish_fault, CaptureUnavailable("Audio input stream ended unexpectedly"))

    def _publish_fault(self, exc: Exception) -> None:
        logging.warning("capture_fault error=%s", exc)
        if self._on_fault is not None:
            self._on_fault(exc)

    def _resolve_input_device(self, sd: Any) -> Optional[str]:
        if not self._preferred_device:
            return None
        lowered_target = self._preferred_device.lower()
        for device in sd.query_devices():
            name = str(device.get("name", ""))
            if int(device.get("max_input_channels", 0)) > 0 and lowered_target in name.lower():
                return name
        raise RuntimeError(f"AUDIO_INPUT_DEVICE '{self._preferred_device}' was not found among input devices.")

    def _to_wav_bytes(self, samples: np.ndarray) -> bytes:
        clamped = np.clip(samples, -1.0, 1.0)
        int16_samples = (clamped * 32767).astype(np.int16)
        buf = io.BytesIO()
        with wave.open(buf, "wb") as wf:
            wf.setnchannels(1)
            wf.setsampwidth(2)
            wf.setframerate(self._sample_rate)
            wf.writeframes(int16_samples.tobytes())
        return buf.getvalue()
