from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # OpenRouter (summarizer)
    openrouter_api_key: str = ""
    openrouter_base_url: str = "https://openrouter.ai/api/v1"
    default_model: str = "openai/gpt-4o-mini"
    openrouter_model: str = ""

    # Redis cache
    redis_url: str = ""  # redis://127.0.0.1:6379/0, empty disables caching
    cache_ttl_seconds: int = 3600
    cache_key_prefix: str = "doctor_reputation"

    # Upstream HTTP
    http_timeout_seconds: float = 30.0
    http_user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/91.0.4472.124 Safari/537.36"
    )

    # Sources (priority order: rms, rs, iwgc)
    source_rms_active: bool = True
    source_rs_active: bool = True
    source_iwgc_active: bool = True

    rms_base_url: str = "https://www.ratemds.com"
    rms_search_max_pages: int = 2
    rms_speciality_max_pages: int = 2
    rms_review_max_pages: int = 20
    rms_pacing_seconds: float = 0.5
    rms_min_review_count: int = 0

    rs_search_url: str = "https://search.realself.com/site_search"
    rs_site_url: str = "https://www.realself.com"
    rs_min_review_count: int = 0

    iwgc_base_url: str = "https://www.iwantgreatcare.org"
    iwgc_show_all_max_pages: int = 5
    iwgc_review_max_pages: int = 10
    iwgc_min_review_count: int = 2

    # Report synthesis
    report_prompt_token_budget: int = 12000
    report_summary_max_chars: int = 1200
    report_highlight_max_chars: int = 400
    report_summarizer_max_tokens: int = 700
    report_summarizer_temperature: float = 0.7

    # API
    cors_origins: str = "http://localhost:3000"

    # Logging
    app_log_level: str = "INFO"
    noisy_log_level: str = "WARNING"
    log_dir: str = "logs"

    model_config = {
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",")]


settings = Settings()
