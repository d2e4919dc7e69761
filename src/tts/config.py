"""TTS configuration."""

from dataclasses import dataclass


@dataclass
class TTSConfig:
    engine: str = "google"              # "google" (live synthesis) or "file" (pre-recorded clip)
    language_code: str = "en-US"
    voice_name: str = "en-US-Standard-E"  # Google TTS voice ID
    ssml_gender: str = "FEMALE"
    audio_encoding: str = "MULAW"       # Twilio media streams are mu-law
    sample_rate: int = 8000
