from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_ENV: str = "dev"
    APP_SECRET: str
    DB_URL: str = "sqlite:///./triad.db"
    JWT_ISS: str = "triad"
    JWT_EXP_MIN: int = 12*60
    TZ: str = "UTC"
    LOG_LEVEL: str = "INFO"

    # Order pricing
    BOX_FEE: int = 100              # per takeaway box
    NO_RECIPE_QUOTA: int = 999      # quota for items without ingredients

    # Transaction retry (optimistic conflicts, locked db)
    TXN_MAX_RETRIES: int = 3
    TXN_BASE_DELAY_MS: int = 20
    TXN_MAX_DELAY_MS: int = 500
    TXN_JITTER_MS: int = 20

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
