from pydantic import Field
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    app_name: str = Field("ticket-scanner", alias="APP_NAME")
    app_env: str = Field("dev", alias="APP_ENV")

    # Vision model (OpenRouter, OpenAI-compatible chat completions)
    openrouter_api_key: str | None = Field(default=None, alias="OPENROUTER_API_KEY")
    llm_base_url: str = Field("https://openrouter.ai/api/v1", alias="LLM_BASE_URL")
    llm_model: str = Field("google/gemini-2.5-flash", alias="LLM_MODEL")
    llm_timeout_seconds: float = Field(120.0, alias="LLM_TIMEOUT_SECONDS")

    # Session storage
    upload_dir: str = Field("uploads", alias="UPLOAD_DIR")
    max_upload_files: int = Field(50, alias="MAX_UPLOAD_FILES")
    max_upload_size_mb: int = Field(50, alias="MAX_UPLOAD_SIZE_MB")

    # Fields below this confidence are marked for review; tickets below it are flagged
    review_confidence_threshold: int = Field(80, alias="REVIEW_CONFIDENCE_THRESHOLD")

    # CORS allowed origins (comma-separated list for production deployment)
    cors_origins: str = Field("http://localhost:5173,http://127.0.0.1:5173", alias="CORS_ORIGINS")

    # Observability
    log_level: str = Field("INFO", alias="LOG_LEVEL")
    log_json: bool = Field(False, alias="LOG_JSON")

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8", "extra": "ignore"}

settings = Settings()
