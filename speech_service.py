from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

import numpy as np
from openai import AsyncOpenAI

from config_utils import read_str_env

PCM_SAMPLE_RATE = 24000


@dataclass
class SynthesizedSpeech:
    audio_bytes: bytes
    content_type: str
    sample_rate: int = PCM_SAMPLE_RATE


class OpenAISpeechService:
    """Text-to-speech through the OpenAI audio endpoint, returned as raw PCM16."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini-tts",
        voice: str = "alloy",
    ) -> None:
        key = api_key or os.getenv("OPENAI_API_KEY")
        if not key:
            raise RuntimeError("OPENAI_API_KEY is required for speech synthesis.")
        self._client = AsyncOpenAI(api_key=key)
        self._model = read_str_env("SPEECH_MODEL", model) or model
        self._voice = read_str_env("SPEECH_VOICE", voice) or voice

    async def synthesize(self, text: str, language: str) -> SynthesizedSpeech:
        response = await self._client.audio.speech.create(
            model=self._model,
            voice=self._voice,
            input=text,
            instructions=f"Speak in the language with code '{language}' like an energetic soccer commentator.",
            response_format="pcm",
        )
        return SynthesizedSpeech(audio_bytes=response.content, content_type="audio/pcm")


def decode_speech(speech: SynthesizedSpeech) -> np.ndarray:
    if speech.content_type not in {"audio/pcm", "audio/l16"}:
        raise ValueError(f"Unsupported speech content type: {speech.content_type}")
    usable = len(speech.audio_bytes) - (len(speech.audio_bytes) % 2)
    if usable <= 0:
        raise ValueError("Speech response contained no audio.")
    int16_samples = np.frombuffer(speech.audio_bytes[:usable], dtype="<i2")
    return (int16_samples.astype(np.float32) / 32768.0).reshape(-1)


class SoundDevicePlayer:
    def play(self, samples: np.ndarray, sample_rate: int) -> None:
        import sounddevice as sd

        sd.play(samples, samplerate=sample_rate)

    def stop(self) -> None:
        import sounddevice as sd

        sd.stop()
