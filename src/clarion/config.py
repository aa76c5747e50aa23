from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # Upstream on-chain analytics host (bitcoin research kit compatible)
    API_BASE_URL: str = "https://bitcoinresearchkit.org"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # DCA ranking defaults
    DCA_BUDGET_PER_DAY: float = 10.0
    DCA_WINDOW_SIZE: int = 1460  # 4 years
    DCA_ZONE_SIZE: float = 0.25
    DCA_MAX_BONUS: float = 1.5
    DCA_DAILY_BUDGET_CAP: float = 60.0  # Maximum daily spend cap

    # Logging Settings
    LOG_LEVEL: str = "INFO"
    LOG_FILE_PATH: str = "logs/clarion.log"

    API_V1_STR: str = "/api"
    PROJECT_NAME: str = "Clarion"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
