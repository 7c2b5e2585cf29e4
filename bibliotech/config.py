import os
from dataclasses import dataclass
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str = "False") -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


@dataclass
class Settings:
    # Server
    api_host: str = os.getenv("API_HOST", "127.0.0.1")
    api_port: int = int(os.getenv("API_PORT", "8080"))

    # Client
    api_base_url: str = os.getenv("API_BASE_URL", f"http://{api_host}:{api_port}")
    request_timeout: float = float(os.getenv("REQUEST_TIMEOUT", "10"))
    health_timeout: float = float(os.getenv("HEALTH_TIMEOUT", "5"))
    health_interval: float = float(os.getenv("HEALTH_INTERVAL", "30"))

    # Storage
    database_file: str = os.getenv("LIBRARY_DB_FILE", "bibliotech.db")

    # Books
    max_cover_bytes: int = int(os.getenv("MAX_COVER_BYTES", str(5 * 1024 * 1024)))  # 5MB
    default_status: str = os.getenv("DEFAULT_STATUS", "reading")
    placeholder_cover_url: str = os.getenv(
        "PLACEHOLDER_COVER_URL", "https://picsum.photos/seed/{seed}/400/600"
    )
    display_language: str = os.getenv("DISPLAY_LANGUAGE", "it")

    # Application
    app_name: str = os.getenv("APP_NAME", "BiblioTech")
    app_version: str = os.getenv("APP_VERSION", "1.0.0")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug: bool = _env_bool("DEBUG")


settings = Settings()
