from functools import lru_cache
from pathlib import Path
from typing import List
from urllib.parse import urlparse
from pydantic_settings import BaseSettings, SettingsConfigDict

ENV_FILE = Path(__file__).resolve().parents[2] / ".env"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=str(ENV_FILE), case_sensitive=False)

    APP_NAME: str = "Gatehouse"
    ENVIRONMENT: str = "development"
    DEBUG: bool = True
    API_V1_PREFIX: str = "/api/v1"
    BACKEND_HOST: str = "0.0.0.0"
    BACKEND_PORT: int = 3000

    DATABASE_URL: str = "sqlite:///./gatehouse.db"

    # Visitor records live in a flat JSON file keyed by request id.
    DATA_DIR: str = "./data"
    VISITOR_DATA_FILE: str = "visitorData.json"

    GATEPASS_VALIDITY_HOURS: int = 6
    GATEPASS_QR_TEMPLATE: str = "/qr/{pass_id}.png"

    # "whatsapp" keeps jid-style addresses (<digits>@s.whatsapp.net), "phone" keeps bare digits.
    ADDRESS_FORMAT: str = "whatsapp"

    # log | webhook | socket
    NOTIFICATION_TRANSPORT: str = "log"
    CHAT_BRIDGE_URL: str = ""
    CHAT_BRIDGE_TOKEN: str = ""
    CHAT_BRIDGE_TIMEOUT_SECONDS: float = 10.0

    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    SOCKET_PATH: str = "/socket.io"
    DASHBOARD_NAMESPACE: str = "/realtime/dashboard"
    RESIDENT_NAMESPACE: str = "/realtime/resident"

    @property
    def cors_origins(self) -> List[str]:
        origins: list[str] = []
        for raw in self.CORS_ORIGINS.split(","):
            value = raw.strip()
            if not value:
                continue
            parsed = urlparse(value)
            if parsed.scheme and parsed.netloc:
                value = f"{parsed.scheme}://{parsed.netloc}"
            origins.append(value.rstrip("/"))
        return origins

    @property
    def visitor_data_path(self) -> Path:
        return Path(self.DATA_DIR) / self.VISITOR_DATA_FILE


@lru_cache
def get_settings() -> Settings:
    return Settings()
