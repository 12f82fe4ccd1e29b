from pydantic_settings import BaseSettings, SettingsConfigDict

class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_prefix="MIGRATION_", extra="ignore")

    app_name: str = "ci-migrator"
    log_level: str = "INFO"

    server_url: str = "http://localhost:5000"
    client_id: str = ""
    client_secret: str = ""

    request_timeout: float = 60.0
    # server side tokens live 180 minutes
    token_ttl_minutes: int = 175

settings = Settings()
