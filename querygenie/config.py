from typing import List, Optional
from pydantic import ConfigDict
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # MongoDB Configuration
    mongo_uri: str = "mongodb://localhost:27017/"
    database_name: Optional[str] = None  # Falls back to the URI's default database

    # LLM Provider Selection
    llm_provider: str = "openai"  # Options: openai, gemini, local, huggingface
    llm_temperature: float = 0.1
    llm_max_tokens: int = 1000

    # OpenAI Configuration (sk-or-v1- keys are routed to OpenRouter)
    openai_api_key: Optional[str] = None
    openai_model: str = "gpt-4o-mini"
    openai_base_url: Optional[str] = None

    # Google Gemini Configuration
    google_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.5-flash-lite"

    # Hugging Face Configuration
    huggingface_api_key: Optional[str] = None
    huggingface_model: str = "openai/gpt-oss-120b"

    # Local LLM Configuration
    local_llm_base_url: str = "http://localhost:1234/v1"
    local_llm_model: str = "google/gemma-3-27b"

    # Query pipeline limits
    max_query_length: int = 1000
    max_result_size: int = 10000
    max_documents: int = 100
    schema_cache_ttl_seconds: float = 300.0
    save_timeout_seconds: float = 5.0
    history_enabled: bool = False

    # Service Configuration
    port: int = 8000
    cors_origins: List[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    log_level: str = "INFO"
    environment: str = "development"

    model_config = ConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore"
    )

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

# Global settings instance
settings = Settings()
