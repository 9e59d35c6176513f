"""Error taxonomy for the commentary pipeline."""

from __future__ import annotations


class PipelineError(Exception):
    """Base class for every error raised by the pipeline."""


class InvalidInput(PipelineError):
    """A request is missing required fields; no collaborator was called."""


class CaptureUnavailable(PipelineError):
    """The audio source could not be acquired or re-acquired."""


class TranscriptionFailed(PipelineError):
    """The transcription collaborator failed or timed out for one segment."""


class TranslationFailed(PipelineError):
    """Every step of the translation fallback chain was exhausted."""


class NarrationFailed(PipelineError):
    """Speech synthesis or playback failed. Never leaves NarrationController."""


class SessionBusy(PipelineError):
    """An operation that requires a non-listening session was attempted while listening."""
