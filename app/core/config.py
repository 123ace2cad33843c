from pydantic_settings import BaseSettings
from typing import Optional

class Settings(BaseSettings):
    PROJECT_NAME: str = "One Pace (Torbox)"
    VERSION: str = "1.0.0"

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # TorBox (stream resolution is disabled while the key is unset)
    TORBOX_API_KEY: Optional[str] = None
    TORBOX_API_URL: str = "https://api.torbox.app/v1"
    TORBOX_TIMEOUT: float = 20.0

    # Submit reconciliation: attempt N waits RECONCILE_BASE_DELAY * N seconds
    RECONCILE_MAX_ATTEMPTS: int = 5
    RECONCILE_BASE_DELAY: float = 2.0

    # Episode registry; defaults to the bundled app/catalog/data/onepace.json
    CATALOG_FILE: Optional[str] = None

    class Config:
        env_file = ".env"

settings = Settings()
