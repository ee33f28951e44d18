from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_env: str = "dev"
    auth_mode: str = "none"  # none | forwardauth
    root_path: str = ""
    log_level: str = "INFO"

    postgres_db: str = "famsplit"
    postgres_user: str = "famsplit_user"
    postgres_password: str = "famsplit_pass"
    postgres_host: str = "db"
    postgres_port: int = 5432
    database_url_override: str | None = None

    cors_origins: list[str] = ["*"]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"postgresql+psycopg2://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )


settings = Settings()
