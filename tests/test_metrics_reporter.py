from __future__ import annotations

import json
import tempfile
import unittest
from datetime import datetime, timedelta
from pathlib import Path

from metrics_reporter import SessionMetricsReporter, StatsCollector
from pipeline_types import (
    AudioSegment,
    FilterDecision,
    SessionEvent,
    StatsSnapshot,
    TranscriptCandidate,
    TranslationResult,
)


def _event(sequence: int, latency_s: float, method: str = "model") -> SessionEvent:
    captured_at = datetime(2026, 6, 14, 20, 0, 0)
    segment = AudioSegment(
        wav_bytes=b"RIFF", captured_at=captured_at, sequence=sequence, language="es", duration_s=3.0
    )
    candidate = TranscriptCandidate(segment=segment, text="gol de Messi", confidence=0.9, language="es")
    translation = TranslationResult(
        source_text="gol de Messi",
        translated_text="Goal de messi",
        method=method,
        target_language="en",
        source_language="es",
        fallback_reason="status_503" if method == "dictionary-fallback" else "",
    )
    return SessionEvent(candidate=candidate, translation=translation, recorded_at=captured_at + timedelta(seconds=latency_s))


def _decision(relevant: bool) -> FilterDecision:
    return FilterDecision(
        relevant=relevant,
        reason="ok" if relevant else "no-keywords",
        confidence=0.9,
        matched_keywords=frozenset(),
        threshold=0.75,
    )


class StatsCollectorTests(unittest.TestCase):
    def test_counts_and_reset(self) -> None:
        stats = StatsCollector()
        for _ in range(3):
            stats.record_captured()
        stats.record_decision(_decision(False))
        stats.record_decision(_decision(True))
        stats.record_translated()

        self.assertEqual(stats.snapshot(), StatsSnapshot(captured=3, filtered=1, translated=1))
        stats.reset()
        self.assertEqual(stats.snapshot(), StatsSnapshot(captured=0, filtered=0, translated=0))


class SessionMetricsReporterTests(unittest.TestCase):
    def test_writes_jsonl_and_summary(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "session_metrics.jsonl"
            summary = Path(tmpdir) / "session_summary.json"
            reporter = SessionMetricsReporter(True, str(output), str(summary))
            reporter.start_session()
            reporter.record_event(_event(1, 1.2))
            reporter.record_event(_event(2, 2.8, method="dictionary-fallback"))
            reporter.record_error("translation", "timeout", sequence=3)
            result = reporter.finalize_session(StatsSnapshot(captured=4, filtered=1, translated=2))

            self.assertTrue(output.exists())
            self.assertTrue(summary.exists())
            self.assertEqual(result["segments_logged"], 2)
            self.assertEqual(result["fallback_segments"], 1)
            self.assertEqual(result["error_events"], 1)
            self.assertEqual(result["captured"], 4)
            self.assertAlmostEqual(result["latency_avg_s"], 2.0)
            self.assertAlmostEqual(result["latency_max_s"], 2.8)
            self.assertGreater(result["latency_p95_s"], 2.0)

            lines = output.read_text(encoding="utf-8").splitlines()
            self.assertEqual(len(lines), 3)
            parsed = [json.loads(line) for line in lines]
            self.assertEqual(parsed[0]["event_type"], "segment")
            self.assertEqual(parsed[0]["sequence"], 1)
            self.assertEqual(parsed[1]["fallback_reason"], "status_503")
            self.assertEqual(parsed[-1]["event_type"], "error")
            self.assertEqual(parsed[-1]["stage"], "translation")

            saved_summary = json.loads(summary.read_text(encoding="utf-8"))
            self.assertEqual(saved_summary["segments_logged"], 2)

    def test_second_run_keeps_earlier_lines(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "session_metrics.jsonl"
            reporter = SessionMetricsReporter(True, str(output), str(Path(tmpdir) / "summary.json"))
            reporter.start_session()
            reporter.record_event(_event(1, 0.5))
            reporter.finalize_session()
            reporter.start_session()
            reporter.record_event(_event(1, 0.7))

            lines = output.read_text(encoding="utf-8").splitlines()
            self.assertEqual(len(lines), 2)

    def test_append_mode_keeps_existing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "session_metrics.jsonl"
            output.write_text('{"event_type": "segment"}\n', encoding="utf-8")
            reporter = SessionMetricsReporter(
                True, str(output), str(Path(tmpdir) / "summary.json"), append_mode=True
            )
            reporter.start_session()
            reporter.record_event(_event(1, 0.5))

            self.assertEqual(len(output.read_text(encoding="utf-8").splitlines()), 2)

    def test_first_run_truncates_without_append_mode(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "session_metrics.jsonl"
            output.write_text('{"event_type": "segment"}\n', encoding="utf-8")
            reporter = SessionMetricsReporter(
                True, str(output), str(Path(tmpdir) / "summary.json"), append_mode=False
            )
            reporter.start_session()

            self.assertEqual(output.read_text(encoding="utf-8"), "")

    def test_disabled_reporter_writes_nothing(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            output = Path(tmpdir) / "metrics.jsonl"
            summary = Path(tmpdir) / "summary.json"
            reporter = SessionMetricsReporter(False, str(output), str(summary))
            reporter.start_session()
            reporter.record_event(_event(1, 0.5))
            reporter.record_error("transcription", "boom")

            self.assertEqual(reporter.finalize_session(), {})
            self.assertFalse(output.exists())
            self.assertFalse(summary.exists())


if __name__ == "__main__":
    unittest.main()
