from pydantic_settings import BaseSettings


DEFAULT_USERNAME = "admin"
DEFAULT_PASSWORD = "admin"


class ConfigurationError(RuntimeError):
    """Raised at startup when the configuration is unsafe to run with."""


class Settings(BaseSettings):
    # Durable data file + backups
    DATA_FILE: str = "data.json"
    BACKUP_DIR: str = "backups"
    IMPORT_BACKUP_KEEP: int = 10
    AUTO_BACKUP_KEEP: int = 5
    AUTO_BACKUP_ENABLED: bool = True
    AUTO_BACKUP_INTERVAL_MINUTES: float = 60.0

    # Auth: single configured account
    AUTH_USERNAME: str = DEFAULT_USERNAME
    AUTH_PASSWORD: str = DEFAULT_PASSWORD
    ALLOW_DEFAULT_CREDENTIALS: bool = False  # must be set explicitly to run as admin/admin
    SECRET_KEY: str = ""
    JWT_ALGORITHM: str = "HS256"
    SESSION_COOKIE_NAME: str = "printcost_session"
    SESSION_EXPIRE_HOURS: int = 24

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"

    @property
    def using_default_credentials(self) -> bool:
        return self.AUTH_USERNAME == DEFAULT_USERNAME and self.AUTH_PASSWORD == DEFAULT_PASSWORD


def check_startup_settings(config: Settings) -> None:
    """Refuse to run with an empty password or unexamined default credentials."""
    if not config.AUTH_PASSWORD:
        raise ConfigurationError("AUTH_PASSWORD is empty; set a password before starting")
    if config.using_default_credentials and not config.ALLOW_DEFAULT_CREDENTIALS:
        raise ConfigurationError(
            "Default credentials in use; change AUTH_USERNAME/AUTH_PASSWORD "
            "or set ALLOW_DEFAULT_CREDENTIALS=true"
        )
    if not config.SECRET_KEY:
        raise ConfigurationError("SECRET_KEY not configured; set it in environment variables")


settings = Settings()
