from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Baby Steps Coach API"
    gemini_api_key: str = ""
    # Split proposals and chat both use this model; override via GEMINI_MODEL.
    gemini_model: str = "gemini-2.0-flash"
    gemini_timeout_seconds: int = 25
    gemini_max_retries: int = 2
    database_url: str = ""
    db_pool_min_size: int = 1
    db_pool_max_size: int = 10
    # Comma-separated origins for CORS. Use "*" only for local/demo environments.
    cors_allow_origins: str = "*"
    jwt_secret_key: str
    jwt_algorithm: str = "HS256"
    # Identity providers such as Supabase stamp access tokens with aud="authenticated".
    jwt_audience: str | None = None
    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore")


settings = Settings()
