"""
Configuration de l'application.

Les valeurs sont lues depuis l'environnement (préfixe STOCKBOARD_)
ou un fichier .env, puis mises en cache une fois par processus.
"""

from functools import lru_cache
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="STOCKBOARD_", env_file=".env")

    # Persistance : "sqlalchemy" ou "json" (stockage local)
    storage_backend: str = "sqlalchemy"
    database_uri: str = "sqlite:///stockboard.db"
    state_file: str = "stockboard-state.json"
    inventory_ref: str = "main"

    # Synchronisation distante : URI de la base partagée, désactivée si vide
    event_store_uri: Optional[str] = None

    # Notifications de rupture : "log" ou "email"
    notifications_backend: str = "log"
    alert_recipient: str = "stock@example.com"
    smtp_host: str = "localhost"
    smtp_port: int = 587

    tick_seconds: float = 60.0
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Chargées une seule fois par processus."""
    return Settings()
