from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # App
    app_name: str = "Discovery Workflow Engine"
    log_level: str = "INFO"
    json_logs: bool = True

    # Sessions
    session_timeout_hours: float = 24.0
    session_store_backend: str = "json"  # json | memory | redis
    session_store_path: str = ".discovery/sessions.json"
    redis_url: str = "redis://localhost:6379"

    # Research routing
    router_config_path: str = "config/research-router-config.json"
    router_config_poll_seconds: float = 2.0
    provider_timeout_seconds: float = 30.0

    # Providers
    tavily_api_key: str = ""
    tavily_base_url: str = "https://api.tavily.com"
    perplexity_api_key: str = ""
    perplexity_base_url: str = "https://api.perplexity.ai"
    perplexity_model: str = "sonar"
    context7_api_key: str = ""
    context7_base_url: str = "https://context7.com/api/v1"
    context7_enabled: bool = True

    # PRD generation and quality gates
    prd_output_dir: str = ".discovery/docs"
    min_requirements_count: int = 3
    max_requirements_count: int = 20
    max_technologies_per_validation: int = 10
    max_research_queries_per_stage: int = 5
    task_generation_min_score: float = 55.0


@lru_cache
def get_settings() -> Settings:
    return Settings()
