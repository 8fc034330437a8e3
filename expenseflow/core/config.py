from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    # App
    app_name: str = "expenseflow"
    debug: bool = False

    # CORS
    cors_origins: str = "http://localhost:3000"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    # Database
    database_url: str = "sqlite:///./expenseflow.db"
    database_echo: bool = False

    # Approval engine
    decision_max_retries: int = 3  # attempts per decision on version conflicts

    # Logging
    log_level: str = "INFO"
    log_dir: str = "./logs"
    log_to_file: bool = False

    model_config = SettingsConfigDict(
        env_prefix="EXPENSEFLOW_",
        env_file=".env",
        case_sensitive=False,
        extra="ignore"  # Allow extra env vars without raising validation errors
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
