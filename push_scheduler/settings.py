from pydantic_settings import BaseSettings, SettingsConfigDict

# ====================================
# SETTINGS
# ====================================

class Settings(BaseSettings):
    # Wczytujemy zmienne środowiskowe z pliku .env
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    DATABASE_URL: str = "sqlite:///./local.db"

    # Firebase / FCM HTTP v1
    FIREBASE_SA_B64: str = ""
    FIREBASE_PROJECT_ID: str = ""
    FCM_TIMEOUT_SECONDS: float = 20.0
    DEFAULT_TOPIC: str = "all"

    # background loop
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_INTERVAL_SECONDS: int = 60

    # IST (+05:30), tylko do wyświetlania
    DISPLAY_UTC_OFFSET_MINUTES: int = 330

    RATE_LIMIT: str = "120/minute"
    CORS_ORIGINS: str = "*"
    LOG_LEVEL: str = "INFO"

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

# Dependency: settings singleton

def get_settings() -> Settings:
    return Settings()
