from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- DB ---
    DATABASE_URL: str = "sqlite:///./auction.db"

    # --- JWT ---
    JWT_SECRET: str = "change-this-secret"
    JWT_ALG: str = "HS256"
    JWT_EXPIRE_MIN: int = 720

    CORS_ORIGINS: list[str] = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
        "http://localhost:3000",
    ]
    LOG_LEVEL: str = "INFO"

    # --- Auction rules ---
    STARTING_BUDGET: int = 1000
    MAX_MANAGERS: int = 8
    MAX_ROSTER: int = 15
    MAX_ROUND2_SELECTIONS: int = 5
    MIN_PLAYER_COST: int = 5  # flat floor used by the pre-bid affordability check

    # --- Timer (seconds) ---
    BID_TIMER_SECONDS: float = 30.0
    BID_FREEZE_SECONDS: float = 3.0
    SETTLEMENT_DISPLAY_SECONDS: float = 5.0
    TIMER_ENABLED: bool = True
    TICK_SECONDS: float = 1.0

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
