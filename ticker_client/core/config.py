from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Stock Ticker Client"
    debug: bool = False
    log_level: str = "INFO"

    server_url: str = "https://ticker.cinefiles.dev"
    socket_path: str = "socket.io"
    transports: list[str] = Field(default_factory=lambda: ["websocket"])
    reconnection_delay_seconds: float = 1.0
    reconnection_delay_max_seconds: float = 5.0
    connect_wait_timeout_seconds: float = 10.0
    ack_timeout_seconds: float = 10.0

    price_history_size: int = 8
    roll_price_fallback: float = 1.0
    trade_unit: int = 1

    credentials_path: str = "~/.stock_ticker/credentials.json"
    guest_name_prefix: str = "Guest"
    guest_suffix_length: int = 4

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    return Settings()
