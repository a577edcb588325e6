from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "DeepTicker Quote Service"
    app_version: str = "1.0.0"
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"

    schema_version: str = "1.0"

    request_timeout_seconds: float = 8.0
    retry_attempts: int = 2
    retry_backoff_base_seconds: float = 0.5

    provider_cooldown_seconds: int = 600
    provider_priority: list[str] = ["yahoo", "rapidapi", "alpha_vantage"]
    search_provider_priority: list[str] = ["alpha_vantage", "yahoo", "rapidapi"]

    realtime_quote_ttl_seconds: int = 300
    delayed_quote_ttl_seconds: int = 600
    search_ttl_seconds: int = 3600
    search_max_results: int = 10
    search_debounce_seconds: float = 0.5

    cache_sweep_interval_seconds: int = 1800
    cache_database_url: str | None = None

    alpha_vantage_api_key: str = ""
    rapidapi_key: str = ""
    rapidapi_host: str = "apidojo-yahoo-finance-v1.p.rapidapi.com"

    rate_limit_requests_per_minute: int = 120

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


settings = Settings()
