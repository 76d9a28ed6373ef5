from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional
from dotenv import load_dotenv, find_dotenv


_SETTINGS_CONFIG = SettingsConfigDict(
    env_file=".env",
    env_file_encoding="utf-8",
    validate_assignment=True,
    extra="ignore",
    case_sensitive=False,
    populate_by_name=True,
)


class OpenAIConfig(BaseSettings):
    """OpenAI provider configuration (transcription, topics, captioning)."""

    api_key: Optional[str] = Field(default=None, validation_alias="OPENAI_API_KEY")
    base_url: Optional[str] = Field(default=None, validation_alias="OPENAI_BASE_URL")
    timeout: int = Field(default=200, validation_alias="OPENAI_TIMEOUT")
    transcription_model: str = Field(default="whisper-1", validation_alias="OPENAI_TRANSCRIPTION_MODEL")
    topic_model: str = Field(default="gpt-4.1-nano", validation_alias="OPENAI_TOPIC_MODEL")
    caption_model: str = Field(default="gpt-5-mini", validation_alias="OPENAI_CAPTION_MODEL")
    summarisation_model: str = Field(default="gpt-4o-mini", validation_alias="OPENAI_SUMMARISATION_MODEL")

    model_config = _SETTINGS_CONFIG


class VoyageConfig(BaseSettings):
    """Voyage AI embedding provider configuration."""

    api_key: Optional[str] = Field(default=None, validation_alias="VOYAGE_API_KEY")
    base_url: str = Field(default="https://api.voyageai.com/v1", validation_alias="VOYAGE_BASE_URL")
    text_model: str = Field(default="voyage-3-large", validation_alias="VOYAGE_TEXT_MODEL")
    multimodal_model: str = Field(default="voyage-multimodal-3", validation_alias="VOYAGE_MULTIMODAL_MODEL")
    dimension: int = Field(default=1024, validation_alias="VOYAGE_EMBEDDING_DIMENSION")
    max_batch_size: int = Field(default=128, validation_alias="VOYAGE_MAX_BATCH_SIZE")
    timeout: int = Field(default=60, validation_alias="VOYAGE_TIMEOUT")

    model_config = _SETTINGS_CONFIG


class AWSConfig(BaseSettings):
    """AWS configuration for Rekognition face detection."""

    region: str = Field(default="us-east-1", validation_alias="AWS_REGION")
    access_key_id: Optional[str] = Field(default=None, validation_alias="AWS_ACCESS_KEY_ID")
    secret_access_key: Optional[str] = Field(default=None, validation_alias="AWS_SECRET_ACCESS_KEY")

    model_config = _SETTINGS_CONFIG


class RetryConfig(BaseSettings):
    """Backoff parameters shared by every remote call site."""

    max_retries: int = Field(default=3, validation_alias="RETRY_MAX_RETRIES")
    initial_backoff: float = Field(default=1.0, validation_alias="RETRY_INITIAL_BACKOFF")
    max_backoff: float = Field(default=10.0, validation_alias="RETRY_MAX_BACKOFF")
    jitter: float = Field(default=0.3, validation_alias="RETRY_JITTER")

    model_config = _SETTINGS_CONFIG


class ProviderSelectionConfig(BaseSettings):
    """Names of the provider implementations the factory should build."""

    llm: str = Field(default="openai", validation_alias="LLM_PROVIDER")
    vision: str = Field(default="openai", validation_alias="VISION_PROVIDER")
    transcription: str = Field(default="openai", validation_alias="TRANSCRIPTION_PROVIDER")
    embedding: str = Field(default="voyage", validation_alias="EMBEDDING_PROVIDER")
    image_embedding: str = Field(default="voyage", validation_alias="IMAGE_EMBEDDING_PROVIDER")
    face_detection: str = Field(default="aws_rekognition", validation_alias="FACE_DETECTION_PROVIDER")

    model_config = _SETTINGS_CONFIG


class PipelineConfig(BaseSettings):
    """Tuning knobs for the analysis pipeline."""

    frame_interval_sec: float = Field(default=5.0, validation_alias="FRAME_INTERVAL_SEC")
    max_frames: int = Field(default=1000, validation_alias="MAX_FRAMES")
    frame_concurrency: int = Field(default=6, validation_alias="FRAME_CONCURRENCY")
    face_detection_enabled: bool = Field(default=True, validation_alias="FACE_DETECTION_ENABLED")
    face_detection_concurrency: int = Field(default=5, validation_alias="FACE_DETECTION_CONCURRENCY")
    face_confidence_threshold: float = Field(default=80.0, validation_alias="FACE_CONFIDENCE_THRESHOLD")
    face_crop_padding: float = Field(default=0.2, validation_alias="FACE_CROP_PADDING")
    face_embedding_max_height: int = Field(default=448, validation_alias="FACE_EMBEDDING_MAX_HEIGHT")
    face_iou_threshold: float = Field(default=0.5, validation_alias="FACE_IOU_THRESHOLD")
    face_dedup_window_sec: float = Field(default=10.0, validation_alias="FACE_DEDUP_WINDOW_SEC")
    run_timeout_sec: Optional[float] = Field(default=None, validation_alias="RUN_TIMEOUT_SEC")

    model_config = _SETTINGS_CONFIG


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    model_config = _SETTINGS_CONFIG


class RCSQConfig(BaseSettings):
    """Main configuration class."""

    # Application settings
    app_name: str = Field(default="rcsq-tool", validation_alias="APP_NAME")
    app_version: str = Field(default="1.0.0", validation_alias="APP_VERSION")

    model_config = _SETTINGS_CONFIG

    def __init__(self, **kwargs):
        # Force load environment variables before initializing
        load_dotenv(find_dotenv(usecwd=True))

        super().__init__(**kwargs)
        # Initialize cached configurations
        self._openai = None
        self._voyage = None
        self._aws = None
        self._retry = None
        self._providers = None
        self._pipeline = None
        self._logging = None

    @property
    def openai(self) -> OpenAIConfig:
        if self._openai is None:
            self._openai = OpenAIConfig()
        return self._openai

    @property
    def voyage(self) -> VoyageConfig:
        if self._voyage is None:
            self._voyage = VoyageConfig()
        return self._voyage

    @property
    def aws(self) -> AWSConfig:
        if self._aws is None:
            self._aws = AWSConfig()
        return self._aws

    @property
    def retry(self) -> RetryConfig:
        if self._retry is None:
            self._retry = RetryConfig()
        return self._retry

    @property
    def providers(self) -> ProviderSelectionConfig:
        if self._providers is None:
            self._providers = ProviderSelectionConfig()
        return self._providers

    @property
    def pipeline(self) -> PipelineConfig:
        if self._pipeline is None:
            self._pipeline = PipelineConfig()
        return self._pipeline

    @property
    def logging(self) -> LoggingConfig:
        if self._logging is None:
            self._logging = LoggingConfig()
        return self._logging
