from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "ieum-client"
    app_env: str = "development"

    # REST backend
    api_url: str = "http://localhost:4000"
    request_timeout: float = 10.0

    # Socket.IO
    socket_url: str = "http://localhost:4001"
    socket_path: str = "/socket.io/"
    socket_transports: list[str] = ["websocket", "polling"]

    # Local persisted state (token + cached profile)
    database_url: str = "sqlite:///./ieum.sqlite"

    # Delay before an on-screen message is acknowledged as read
    mark_read_delay: float = 0.5
    min_search_length: int = 2

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )


settings = Settings()
