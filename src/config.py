from pathlib import Path
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_UTTERANCE = """Now is the winter of our discontent
Made glorious summer by this sun of York.
Some are born great, some achieve greatness
And some have greatness thrust upon them.
Friends, Romans, countrymen - lend me your ears!
"""


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # Allow extra fields in .env without raising errors
    )

    # Required: missing values fail at startup
    google_application_credentials: str = Field(...)
    base_file_dir: Path = Field(...)

    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=3000)
    log_level: str = Field(default="INFO")

    # TTS Configuration
    tts_engine: Literal["google", "file"] = Field(default="google")
    tts_language_code: str = Field(default="en-US")
    tts_voice_name: str = Field(default="en-US-Standard-E")
    tts_ssml_gender: Literal["FEMALE", "MALE", "NEUTRAL", "SSML_VOICE_GENDER_UNSPECIFIED"] = Field(default="FEMALE")
    prerecorded_clip: str = Field(default="standard.dat")

    # Call flow
    greeting_text: str = Field(default="Hi. I'm your Twilio host. Welcome!")
    utterance_text: str = Field(default=DEFAULT_UTTERANCE)
    twiml_start_mode: Literal["connect", "play"] = Field(default="connect")
    stream_start_delay_seconds: float = Field(default=1.0, ge=0.0)
    playback_mark_name: Optional[str] = Field(default=None)

    # Diagnostics: dump each audio pipeline stage to this directory
    debug_dump_dir: Optional[Path] = Field(default=None)

    @field_validator("base_file_dir")
    @classmethod
    def ensure_base_file_dir(cls, value: Path) -> Path:
        if not value.is_dir():
            raise ValueError(f"BASE_FILE_DIR is not a directory: {value}")
        return value

    @property
    def prerecorded_clip_path(self) -> Path:
        return self.base_file_dir / self.prerecorded_clip


settings = Settings()
