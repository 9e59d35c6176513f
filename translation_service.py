from __future__ import annotations

import asyncio
import logging
import os
import re
from dataclasses import dataclass
from typing import Awaitable, Callable, Final, Optional

from openai import APIStatusError, AsyncOpenAI

from config_utils import read_float_env, read_int_env, read_str_env
from errors import InvalidInput, TranslationFailed
from pipeline_types import (
    METHOD_DICTIONARY,
    METHOD_DICTIONARY_FALLBACK,
    METHOD_MODEL,
    TranslationResult,
    count_words,
)
from soccer_lexicon import language_name, normalize_language, translate_with_dictionary


@dataclass(frozen=True)
class TranslationRequest:
    text: str
    source_language: str
    target_language: str


class StepUnavailable(Exception):
    """Raised by a chain step that cannot serve the request; the next step runs."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


TranslationStep = Callable[[TranslationRequest, str], Awaitable[TranslationResult]]


class TranslationResolver:
    FAST_PATH_MAX_WORDS: Final[int] = 5

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        client: Optional[AsyncOpenAI] = None,
        timeout_s: Optional[float] = None,
    ) -> None:
        key = api_key or os.getenv("OPENAI_API_KEY")
        if client is None and key:
            client = AsyncOpenAI(api_key=key)
        # No client means no credential: every request goes straight to the dictionary.
        self._client = client
        primary_model = read_str_env("TRANSLATION_MODEL", model) or model
        fallback_model = read_str_env("TRANSLATION_FALLBACK_MODEL", "gpt-4.1-mini")
        self._models = [primary_model]
        if fallback_model and fallback_model not in self._models:
            self._models.append(fallback_model)
        self._active_model_index = 0
        self._max_completion_tokens = read_int_env("TRANSLATION_MAX_TOKENS", 500)
        self._timeout_s = timeout_s or read_float_env("TRANSLATION_TIMEOUT_SECONDS", 6.0)
        self._chain: tuple[TranslationStep, ...] = (self._model_step, self._dictionary_fallback_step)

    @property
    def has_credential(self) -> bool:
        return self._client is not None

    async def resolve(self, text: str, source_language: str, target_language: str) -> TranslationResult:
        request = TranslationRequest(
            text=self._sanitize(text),
            source_language=normalize_language(source_language),
            target_language=normalize_language(target_language),
        )
        if not request.text:
            raise InvalidInput("No text provided for translation.")

        if self._client is not None and count_words(request.text) <= self.FAST_PATH_MAX_WORDS:
            return self._dictionary_result(request, METHOD_DICTIONARY, "")

        reason = ""
        for step in self._chain:
            try:
                return await step(request, reason)
            except StepUnavailable as exc:
                reason = exc.reason
                logging.warning(
                    "translation_step_unavailable step=%s reason=%s",
                    getattr(step, "__name__", "step"),
                    reason,
                )
        raise TranslationFailed(f"translation chain exhausted: {reason}")

    async def _model_step(self, request: TranslationRequest, previous_reason: str) -> TranslationResult:
        del previous_reason
        if self._client is None:
            raise StepUnavailable("no_credential")
        try:
            translated = await asyncio.wait_for(self._translate_once(request), timeout=self._timeout_s)
        except APIStatusError as exc:
            raise StepUnavailable(f"status_{exc.status_code}") from exc
        except asyncio.TimeoutError as exc:
            raise StepUnavailable(f"timeout_{self._timeout_s:.1f}s") from exc
        except Exception as exc:  # noqa: BLE001 - graceful fallback
            raise StepUnavailable(f"error: {exc}") from exc
        if not translated:
            raise StepUnavailable("empty_translation")
        return TranslationResult(
            source_text=request.text,
            translated_text=translated,
            method=METHOD_MODEL,
            target_language=request.target_language,
            source_language=request.source_language,
        )

    async def _dictionary_fallback_step(self, request: TranslationRequest, previous_reason: str) -> TranslationResult:
        return self._dictionary_result(request, METHOD_DICTIONARY_FALLBACK, previous_reason)

    def _dictionary_result(self, request: TranslationRequest, method: str, fallback_reason: str) -> TranslationResult:
        try:
            translated = translate_with_dictionary(request.text, request.source_language, request.target_language)
        except ValueError as exc:
            raise TranslationFailed(f"dictionary translation cannot run: {exc}") from exc
        return TranslationResult(
            source_text=request.text,
            translated_text=translated,
            method=method,
            target_language=request.target_language,
            source_language=request.source_language,
            fallback_reason=fallback_reason,
        )

    async def _translate_once(self, request: TranslationRequest) -> str:
        source_name = language_name(request.source_language)
        target_name = language_name(request.target_language)
        system_prompt = (
            "You are a real-time soccer commentary translator.\n"
            f"Translate the commentary from {source_name} into {target_name} losslessly.\n"
            "Rules:\n"
            "1) Preserve the tone, excitement and energy of the commentator.\n"
            "2) Keep player names, team names, scores and minutes exactly as given.\n"
            "3) Use the established soccer term in the target language (goal, penalty, offside, corner, etc.).\n"
            "4) Do not summarize, explain or add anything.\n"
            "5) Return only the translated text."
        )
        return await self._chat(request.text, system_prompt)

    async def _chat(self, user_prompt: str, system_prompt: Optional[str] = None) -> str:
        assert self._client is not None
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_prompt})
        last_exc: Optional[Exception] = None
        while self._active_model_index < len(self._models):
            model_name = self._models[self._active_model_index]
            try:
                response = await self._client.chat.completions.create(
                    model=model_name,
                    temperature=0.3,
                    messages=messages,
                    max_tokens=self._max_completion_tokens,
                )
                content = response.choices[0].message.content or ""
                return self._sanitize(content)
            except APIStatusError as exc:
                last_exc = exc
                # Promote to fallback model once and keep it for subsequent requests.
                if exc.status_code in (400, 404) and self._active_model_index + 1 < len(self._models):
                    self._active_model_index += 1
                    continue
                raise
        raise RuntimeError(f"Translation API failed with all configured models: {last_exc}") from last_exc

    @staticmethod
    def _sanitize(text: str) -> str:
        collapsed = re.sub(r"\s+", " ", text or "").strip()
        return collapsed
