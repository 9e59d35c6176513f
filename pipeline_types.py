from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

REASON_NO_KEYWORDS = "no-keywords"
REASON_LOW_CONFIDENCE = "low-confidence"
REASON_OK = "ok"

METHOD_DICTIONARY = "dictionary"
METHOD_MODEL = "model"
METHOD_DICTIONARY_FALLBACK = "dictionary-fallback"


def count_words(text: str) -> int:
    return len((text or "").split())


class SessionState(str, Enum):
    IDLE = "idle"
    LISTENING = "listening"
    STOPPED = "stopped"


@dataclass(frozen=True)
class AudioSegment:
    wav_bytes: bytes
    captured_at: datetime
    sequence: int
    language: str
    duration_s: float


@dataclass(frozen=True)
class TranscriptCandidate:
    segment: AudioSegment
    text: str
    confidence: float
    language: str

    @property
    def word_count(self) -> int:
        return count_words(self.text)


@dataclass(frozen=True)
class FilterDecision:
    relevant: bool
    reason: str
    confidence: float
    matched_keywords: frozenset[str]
    threshold: float


@dataclass(frozen=True)
class TranslationResult:
    source_text: str
    translated_text: str
    method: str
    target_language: str
    source_language: str = ""
    fallback_reason: str = ""

    @property
    def had_fallback(self) -> bool:
        return self.method == METHOD_DICTIONARY_FALLBACK


@dataclass(frozen=True)
class SessionEvent:
    candidate: TranscriptCandidate
    translation: TranslationResult
    recorded_at: datetime

    @property
    def sequence(self) -> int:
        return self.candidate.segment.sequence


@dataclass(frozen=True)
class StatsSnapshot:
    captured: int
    filtered: int
    translated: int
