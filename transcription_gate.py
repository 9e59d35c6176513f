"""Relevance gate between transcription and translation.

A transcript is forwarded only when it mentions a soccer term for its language
and the recogniser was confident enough. Keyword absence always wins over low
confidence when both fail.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Iterable, Optional, Protocol

from config_utils import read_float_env, read_threshold_map_env
from errors import InvalidInput, TranscriptionFailed
from pipeline_types import (
    REASON_LOW_CONFIDENCE,
    REASON_NO_KEYWORDS,
    REASON_OK,
    AudioSegment,
    FilterDecision,
    TranscriptCandidate,
)
from soccer_lexicon import collapse_elongation, keywords_for, normalize_language
from transcription_service import TranscriptionResult

SHORT_UTTERANCE_WORDS = 3
DEFAULT_SHORT_THRESHOLD = 0.5
DEFAULT_THRESHOLD = 0.5
# Languages whose keyword tables are dense enough to afford a stricter bar.
DEFAULT_LANGUAGE_THRESHOLDS: dict[str, float] = {"en": 0.75, "es": 0.75, "it": 0.75}


class Transcriber(Protocol):
    def transcribe(self, wav_bytes: bytes, language: str) -> Awaitable[TranscriptionResult]: ...


class TranscriptionGate:
    def __init__(
        self,
        transcriber: Optional[Transcriber] = None,
        timeout_s: Optional[float] = None,
        short_threshold: Optional[float] = None,
        default_threshold: Optional[float] = None,
        language_thresholds: Optional[dict[str, float]] = None,
    ) -> None:
        self._transcriber = transcriber
        self._timeout_s = timeout_s or read_float_env("TRANSCRIPTION_TIMEOUT_SECONDS", 8.0)
        if short_threshold is None:
            short_threshold = read_float_env("GATE_SHORT_THRESHOLD", DEFAULT_SHORT_THRESHOLD, allow_zero=True)
        if default_threshold is None:
            default_threshold = read_float_env("GATE_DEFAULT_THRESHOLD", DEFAULT_THRESHOLD, allow_zero=True)
        self._short_threshold = short_threshold
        self._default_threshold = default_threshold
        if language_thresholds is None:
            language_thresholds = read_threshold_map_env("GATE_LANGUAGE_THRESHOLDS", DEFAULT_LANGUAGE_THRESHOLDS)
        self._language_thresholds = {normalize_language(code): value for code, value in language_thresholds.items()}
        self._extra_keywords: frozenset[str] = frozenset()

    @property
    def extra_keywords(self) -> frozenset[str]:
        return self._extra_keywords

    def set_extra_keywords(self, keywords: Iterable[str]) -> None:
        """Terms (e.g. player names) that count as relevant in every language."""
        self._extra_keywords = frozenset(term.strip().lower() for term in keywords if term and term.strip())

    def threshold_for(self, language: str, word_count: int) -> float:
        if word_count < SHORT_UTTERANCE_WORDS:
            return self._short_threshold
        return self._language_thresholds.get(normalize_language(language), self._default_threshold)

    def keywords_for(self, language: str) -> frozenset[str]:
        return keywords_for(language) | self._extra_keywords

    async def process(self, segment: AudioSegment) -> tuple[TranscriptCandidate, FilterDecision]:
        if not segment.wav_bytes:
            raise InvalidInput(f"segment {segment.sequence} has no audio")
        if self._transcriber is None:
            raise TranscriptionFailed("no transcription service configured")
        try:
            result = await asyncio.wait_for(
                self._transcriber.transcribe(segment.wav_bytes, segment.language),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise TranscriptionFailed(
                f"transcription of segment {segment.sequence} timed out after {self._timeout_s:.1f}s"
            ) from exc
        except Exception as exc:  # noqa: BLE001 - collaborator boundary
            raise TranscriptionFailed(f"transcription of segment {segment.sequence} failed: {exc}") from exc

        candidate = TranscriptCandidate(
            segment=segment,
            text=(result.text or "").strip(),
            confidence=max(0.0, min(1.0, float(result.confidence))),
            language=segment.language,
        )
        return candidate, self.evaluate(candidate)

    def evaluate(self, candidate: TranscriptCandidate) -> FilterDecision:
        keywords = self.keywords_for(candidate.language)
        if not keywords:
            logging.warning("gate_no_keyword_table language=%s", candidate.language)
        normalized_text = collapse_elongation(candidate.text.lower())
        matched = frozenset(kw for kw in keywords if collapse_elongation(kw) in normalized_text)
        threshold = self.threshold_for(candidate.language, candidate.word_count)

        if not matched:
            reason = REASON_NO_KEYWORDS
        elif candidate.confidence < threshold:
            reason = REASON_LOW_CONFIDENCE
        else:
            reason = REASON_OK
        decision = FilterDecision(
            relevant=reason == REASON_OK,
            reason=reason,
            confidence=candidate.confidence,
            matched_keywords=matched,
            threshold=threshold,
        )
        logging.info(
            "gate_decision sequence=%d language=%s transcript=%r confidence=%.2f threshold=%.2f reason=%s matched=%s",
            candidate.segment.sequence,
            candidate.language,
            candidate.text,
            candidate.confidence,
            threshold,
            reason,
            ",".join(sorted(matched)),
        )
        return decision
