from __future__ import annotations

import asyncio
import io
import math
import os
from dataclasses import dataclass
from time import perf_counter
from typing import Any, Optional

from openai import APIStatusError, AsyncOpenAI

from config_utils import read_int_env, read_str_env


@dataclass
class TranscriptionResult:
    text: str
    confidence: float
    language: str
    latency_s: float


class WhisperTranscriptionService:
    _LOGPROB_MODELS = {
        "gpt-4o-transcribe",
        "gpt-4o-mini-transcribe",
        "gpt-4o-mini-transcribe-2025-12-15",
    }

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini-transcribe",
        max_retries: Optional[int] = None,
    ) -> None:
        key = api_key or os.getenv("OPENAI_API_KEY")
        if not key:
            raise RuntimeError("OPENAI_API_KEY is required for transcription.")
        self._client = AsyncOpenAI(api_key=key)
        primary_model = read_str_env("TRANSCRIPTION_MODEL", model) or model
        fallback_model = read_str_env("TRANSCRIPTION_FALLBACK_MODEL", "whisper-1")
        self._models = [primary_model]
        if fallback_model and fallback_model not in self._models:
            self._models.append(fallback_model)
        self._active_model_index = 0
        self._max_retries = max_retries or read_int_env("TRANSCRIPTION_MAX_RETRIES", 2)
        self._base_prompt = read_str_env("TRANSCRIPTION_BASE_PROMPT", "") or ""

    async def transcribe(self, wav_bytes: bytes, language: str) -> TranscriptionResult:
        last_error: Optional[Exception] = None
        for model_index in range(self._active_model_index, len(self._models)):
            model_name = self._models[model_index]
            attempt = 0
            while attempt < self._max_retries:
                attempt += 1
                started = perf_counter()
                try:
                    audio_file = io.BytesIO(wav_bytes)
                    audio_file.name = "segment.wav"
                    response = await self._client.audio.transcriptions.create(
                        **self._build_request_kwargs(
                            model_name=model_name,
                            audio_file=audio_file,
                            language=language,
                        )
                    )
                    text = self._read_value(response, "text").strip()
                    if model_index != self._active_model_index:
                        self._active_model_index = model_index
                    return TranscriptionResult(
                        text=text,
                        confidence=self._read_confidence(response),
                        language=language,
                        latency_s=perf_counter() - started,
                    )
                except APIStatusError as exc:
                    last_error = exc
                    if exc.status_code in (401, 403):
                        raise RuntimeError(
                            "Authentication failed (401/403). Verify OPENAI_API_KEY in .env."
                        ) from exc
                    if exc.status_code in (400, 404):
                        break
                    await asyncio.sleep(0.4 * attempt)
                except Exception as exc:  # noqa: BLE001 - service boundary
                    last_error = exc
                    await asyncio.sleep(0.4 * attempt)

        raise RuntimeError(f"Transcription failed with all configured models: {last_error}") from last_error

    def _build_request_kwargs(self, *, model_name: str, audio_file: io.BytesIO, language: str) -> dict[str, object]:
        kwargs: dict[str, object] = {
            "model": model_name,
            "file": audio_file,
            "language": language or None,
        }
        if self._base_prompt:
            kwargs["prompt"] = self._base_prompt
        if model_name in self._LOGPROB_MODELS:
            # gpt-4o transcribe models only expose confidence through token logprobs.
            kwargs["response_format"] = "json"
            kwargs["include"] = ["logprobs"]
            return kwargs
        kwargs["response_format"] = "verbose_json"
        kwargs["temperature"] = 0
        return kwargs

    @classmethod
    def _read_confidence(cls, response: Any) -> float:
        """Map model log-probabilities to a [0, 1] confidence score.

        Token logprobs (gpt-4o transcribe) and segment ``avg_logprob`` values
        (whisper verbose_json) are averaged and exponentiated. A response that
        carries neither scores 0.0.
        """
        logprobs = [cls._read_number(item, "logprob") for item in cls._read_list(response, "logprobs")]
        logprobs = [value for value in logprobs if value is not None]
        if not logprobs:
            segments = cls._read_list(response, "segments")
            logprobs = [value for value in (cls._read_number(seg, "avg_logprob") for seg in segments) if value is not None]
        if not logprobs:
            return 0.0
        confidence = math.exp(sum(logprobs) / len(logprobs))
        return max(0.0, min(1.0, confidence))

    @staticmethod
    def _read_list(response: Any, key: str) -> list[Any]:
        value = response.get(key) if isinstance(response, dict) else getattr(response, key, None)
        return list(value) if value else []

    @staticmethod
    def _read_number(item: Any, key: str) -> Optional[float]:
        value = item.get(key) if isinstance(item, dict) else getattr(item, key, None)
        if value is None:
            return None
        try:
            return float(value)
        except (TypeError, ValueError):
            return None

    @staticmethod
    def _read_value(response, key: str) -> str:
        if hasattr(response, key):
            value = getattr(response, key)
            return "" if value is None else str(value)
        if isinstance(response, dict):
            value = response.get(key)
            return "" if value is None else str(value)
        return ""
