from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from config_utils import read_bool_env, read_str_env
from pipeline_types import FilterDecision, SessionEvent, StatsSnapshot


def _percentile(values: list[float], ratio: float) -> float:
    if not values:
        return 0.0
    ordered = sorted(values)
    if len(ordered) == 1:
        return ordered[0]
    index = (len(ordered) - 1) * ratio
    lower = int(index)
    upper = min(lower + 1, len(ordered) - 1)
    if lower == upper:
        return ordered[lower]
    weight = index - lower
    return ordered[lower] * (1.0 - weight) + ordered[upper] * weight


class StatsCollector:
    """Per-session counters. Each counter only ever grows until ``reset``."""

    def __init__(self) -> None:
        self._captured = 0
        self._filtered = 0
        self._translated = 0

    def record_captured(self) -> None:
        self._captured += 1

    def record_decision(self, decision: FilterDecision) -> None:
        if not decision.relevant:
            self._filtered += 1

    def record_translated(self) -> None:
        self._translated += 1

    def reset(self) -> None:
        self._captured = 0
        self._filtered = 0
        self._translated = 0

    def snapshot(self) -> StatsSnapshot:
        return StatsSnapshot(captured=self._captured, filtered=self._filtered, translated=self._translated)


class SessionMetricsReporter:
    def __init__(
        self,
        enabled: Optional[bool] = None,
        output_path: Optional[str] = None,
        summary_path: Optional[str] = None,
        append_mode: Optional[bool] = None,
    ) -> None:
        self._enabled = read_bool_env("METRICS_ENABLED", False) if enabled is None else enabled
        self._output_path = Path(output_path or read_str_env("METRICS_OUTPUT_PATH", "./reports/session_metrics.jsonl"))
        self._summary_path = Path(summary_path or read_str_env("METRICS_SUMMARY_PATH", "./reports/session_summary.json"))
        self._append_mode = read_bool_env("METRICS_APPEND_MODE", False) if append_mode is None else append_mode
        self._truncated = False
        self._session_started_at: Optional[datetime] = None
        self._latencies: list[float] = []
        self._segments_logged = 0
        self._fallback_segments = 0
        self._error_events = 0

    @property
    def enabled(self) -> bool:
        return self._enabled

    def start_session(self) -> None:
        if not self._enabled:
            return
        self._session_started_at = datetime.now()
        self._latencies.clear()
        self._segments_logged = 0
        self._fallback_segments = 0
        self._error_events = 0
        self._ensure_parent_dirs()
        # Later runs of the same process keep appending to the file opened by the first.
        if not self._append_mode and not self._truncated:
            self._output_path.write_text("", encoding="utf-8")
        self._truncated = True

    def record_event(self, event: SessionEvent) -> None:
        if not self._enabled:
            return
        latency = max(0.0, (event.recorded_at - event.candidate.segment.captured_at).total_seconds())
        self._latencies.append(latency)
        self._segments_logged += 1
        if event.translation.had_fallback:
            self._fallback_segments += 1
        self._append_jsonl(
            {
                "event_type": "segment",
                "sequence": event.sequence,
                "captured_at": event.candidate.segment.captured_at.isoformat(timespec="milliseconds"),
                "recorded_at": event.recorded_at.isoformat(timespec="milliseconds"),
                "source_language": event.translation.source_language,
                "target_language": event.translation.target_language,
                "confidence": event.candidate.confidence,
                "method": event.translation.method,
                "fallback_reason": event.translation.fallback_reason,
                "latency_total_s": latency,
            }
        )

    def record_error(self, stage: str, error: str, sequence: Optional[int] = None) -> None:
        if not self._enabled:
            return
        self._error_events += 1
        self._append_jsonl(
            {
                "event_type": "error",
                "recorded_at": datetime.now().isoformat(timespec="milliseconds"),
                "stage": stage,
                "sequence": sequence,
                "error": error,
            }
        )

    def finalize_session(self, stats: Optional[StatsSnapshot] = None) -> dict[str, Any]:
        if not self._enabled:
            return {}
        now = datetime.now()
        started = self._session_started_at or now
        avg_latency = sum(self._latencies) / len(self._latencies) if self._latencies else 0.0
        summary: dict[str, Any] = {
            "session_started_at": started.isoformat(timespec="milliseconds"),
            "session_ended_at": now.isoformat(timespec="milliseconds"),
            "session_duration_s": max(0.0, (now - started).total_seconds()),
            "segments_logged": self._segments_logged,
            "fallback_segments": self._fallback_segments,
            "error_events": self._error_events,
            "latency_avg_s": avg_latency,
            "latency_p50_s": _percentile(self._latencies, 0.50),
            "latency_p95_s": _percentile(self._latencies, 0.95),
            "latency_max_s": max(self._latencies) if self._latencies else 0.0,
        }
        if stats is not None:
            summary.update(captured=stats.captured, filtered=stats.filtered, translated=stats.translated)
        self._write_summary(summary)
        return summary

    def _ensure_parent_dirs(self) -> None:
        self._output_path.parent.mkdir(parents=True, exist_ok=True)
        self._summary_path.parent.mkdir(parents=True, exist_ok=True)

    def _append_jsonl(self, payload: dict[str, Any]) -> None:
        self._ensure_parent_dirs()
        line = json.dumps(payload, ensure_ascii=False)
        with self._output_path.open("a", encoding="utf-8") as handle:
            handle.write(line)
            handle.write("\n")

    def _write_summary(self, summary: dict[str, Any]) -> None:
        self._ensure_parent_dirs()
        with self._summary_path.open("w", encoding="utf-8") as handle:
            json.dump(summary, handle, ensure_ascii=False, indent=2)
