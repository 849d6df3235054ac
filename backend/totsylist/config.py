from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {
        "env_file": ".env",
        "extra": "ignore",
        "env_prefix": "",
        "case_sensitive": False,
    }

    # Gemini
    gemini_api_key: str = ""
    gemini_model: str = "gemini-2.5-flash"
    gemini_api_version: str = "v1"
    gemini_timeout_seconds: float = 120.0

    # App
    environment: str = "development"
    log_level: str = "INFO"
    log_file: str = ""
    cors_origins: str = ""  # comma-separated

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


settings = Settings()
