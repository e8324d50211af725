"""Configuration management for DataChat"""
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables"""

    # OpenAI Configuration
    openai_api_key: str = Field(default="", alias="OPENAI_API_KEY", repr=False)
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    openai_base_url: str = Field(default="", alias="OPENAI_BASE_URL")
    openai_timeout: int = Field(default=60, alias="OPENAI_TIMEOUT")
    # Generation is never retried automatically; users resubmit instead
    openai_max_retries: int = Field(default=0, alias="OPENAI_MAX_RETRIES")
    openai_temperature: float = Field(default=0.0, alias="OPENAI_TEMPERATURE")

    # Database Configuration (in-memory SQLite per session by default)
    database_url: str = Field(default="sqlite://", alias="DATABASE_URL")

    # Result / prompt sizing
    preview_rows: int = Field(default=100, alias="PREVIEW_ROWS")
    question_count: int = Field(default=5, alias="QUESTION_COUNT")
    chart_prompt_max_rows: int = Field(default=1000, alias="CHART_PROMPT_MAX_ROWS")

    # Demo datasets
    demos_config: str = Field(default="demos/config.json", alias="DEMOS_CONFIG")

    # Application Configuration
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Server Configuration
    server_host: str = Field(default="0.0.0.0", alias="SERVER_HOST")
    gradio_server_port: int = Field(default=7860, alias="GRADIO_SERVER_PORT")
    gradio_share: bool = Field(default=False, alias="GRADIO_SHARE")

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )


# Load settings from environment
settings = Settings()
