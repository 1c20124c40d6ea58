from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Application configuration loaded from environment variables."""

    database_url: str  # MongoDB URL, the path is the database name, e.g. mongodb://localhost/uidkeeper
    host: str
    port: int
    debug: bool
    cors_origins: list[str] = []
    admin_password: str = "admin"  # Used only when the bootstrap admin user does not exist yet
    session_ttl_hours: int = 720  # 0 keeps sessions for the process lifetime
    store_timeout_ms: int = 10_000  # Upper bound for every MongoDB call
    max_uid_hours: int = 8760
    cleanup_interval_seconds: int = 0  # 0 disables the background cleanup job
    # Chat-bot connections
    bot_autostart: bool = True
    bot_connect_timeout_seconds: float = 60
    bot_heartbeat_interval_seconds: float = 30
    bot_reconnect_attempts: int = 5
    bot_reconnect_delay_seconds: float = 5
    bot_startup_stagger_seconds: float = 2

    model_config = {
        "env_file": [".env"],
        "env_prefix": "UIDKEEPER_",
        "extra": "ignore",
    }
