"""
Central configuration for the MediAssist backend
"""

from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from enum import Enum


class Environment(str, Enum):
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


class RecordingLanguage(str, Enum):
    ENGLISH = "en-US"
    HINDI = "hi-IN"
    KANNADA = "kn-IN"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    # Environment
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = Field(default=False)
    log_level: str = Field(default="INFO")

    # API Configuration
    api_title: str = Field(default="MediAssist API")
    api_description: str = Field(default="Clinical notes backend: patients, consultations, transcripts and summaries")
    api_version: str = Field(default="1.0.0")
    api_host: str = Field(default="0.0.0.0")
    api_port: int = Field(default=5000)
    api_secret_key: str = Field(...)

    # Persistence
    database_url: str = Field(default="sqlite:///./mediassist.db")
    upload_dir: str = Field(default="uploads")

    # Audio Upload Limits
    max_file_size_mb: int = Field(default=50)
    supported_audio_formats: List[str] = Field(
        default=[
            "audio/mpeg", "audio/mp3", "audio/wav", "audio/x-wav", "audio/mp4",
            "audio/m4a", "audio/x-m4a", "audio/aac", "audio/ogg", "audio/webm",
            "audio/flac", "application/octet-stream",
        ]
    )
    supported_recording_languages: List[str] = Field(
        default=[language.value for language in RecordingLanguage]
    )

    # AWS S3
    aws_access_key_id: Optional[str] = Field(default=None)
    aws_secret_access_key: Optional[str] = Field(default=None)
    aws_region: str = Field(default="eu-north-1")
    s3_bucket_name: Optional[str] = Field(default=None)

    # Google Cloud (Speech-to-Text and Translation share one API key)
    google_cloud_api_key: Optional[str] = Field(default=None)
    google_speech_url: str = Field(default="https://speech.googleapis.com/v1/speech:recognize")
    google_translate_url: str = Field(default="https://translation.googleapis.com/language/translate/v2")

    # LLM (OpenAI-compatible endpoint, Ollama by default)
    llm_base_url: str = Field(default="http://localhost:11434/v1")
    llm_api_key: str = Field(default="ollama")
    llm_model: str = Field(default="llama3:latest")
    llm_temperature: float = Field(default=0.2)
    llm_max_tokens: int = Field(default=2000)

    # Timeouts (seconds, per call; no retries)
    stt_timeout: int = Field(default=60)
    llm_timeout: int = Field(default=120)
    translate_timeout: int = Field(default=30)
    storage_timeout: int = Field(default=60)

    # Rate Limiting
    rate_limit_enabled: bool = Field(default=True)
    rate_limit_requests: int = Field(default=10)
    rate_limit_window: int = Field(default=60)  # seconds

    # CORS Configuration
    cors_origins: List[str] = Field(default=["*"])
    cors_allow_credentials: bool = Field(default=False)
    cors_allow_methods: List[str] = Field(default=["GET", "POST", "PUT", "DELETE"])
    cors_allow_headers: List[str] = Field(default=["*"])

    # Security
    token_algorithm: str = Field(default="HS256")
    access_token_expire_minutes: int = Field(default=60 * 24 * 7)

    # Monitoring
    enable_metrics: bool = Field(default=True)

    @property
    def s3_configured(self) -> bool:
        return bool(self.aws_access_key_id and self.aws_secret_access_key and self.s3_bucket_name)

    @property
    def google_configured(self) -> bool:
        return bool(self.google_cloud_api_key)

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


# Global settings instance
settings = Settings()
