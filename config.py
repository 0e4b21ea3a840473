import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

MANUAL_DATABASE_URL_FILE = "database_url.txt"


class Settings:
    def __init__(
        self,
        data_dir: Path,
        database_url: Optional[str],
        database_url_source: Optional[str],
        storage_backend: str,
        timezone: str,
        ai_api_key: Optional[str],
        ai_model: str,
        ai_timeout_secs: float,
    ) -> None:
        self.data_dir = data_dir
        self.database_url = database_url
        self.database_url_source = database_url_source
        self.storage_backend = storage_backend
        self.timezone = timezone
        self.ai_api_key = ai_api_key
        self.ai_model = ai_model
        self.ai_timeout_secs = ai_timeout_secs

    @property
    def local_store_path(self) -> Path:
        return self.data_dir / "local_store.json"


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("NEONFLOW_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _read_manual_database_url(data_dir: Path) -> Optional[str]:
    path = data_dir / MANUAL_DATABASE_URL_FILE
    if not path.is_file():
        return None
    value = path.read_text(encoding="utf-8").strip()
    return value or None


def resolve_database_url(data_dir: Path) -> tuple[Optional[str], Optional[str]]:
    """Return the connection string and where it came from.

    The environment wins over the file written by the operator in the data
    directory. ``(None, None)`` means the app runs disconnected.
    """
    env_url = os.getenv("NEONFLOW_DATABASE_URL", "").strip()
    if env_url:
        return env_url, "env"
    manual_url = _read_manual_database_url(data_dir)
    if manual_url:
        return manual_url, "manual"
    return None, None


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    database_url, database_url_source = resolve_database_url(data_dir)
    storage_backend = os.getenv("NEONFLOW_STORAGE", "remote").strip().lower()
    if storage_backend not in {"remote", "local"}:
        raise ValueError(f"Unsupported storage backend: {storage_backend}")
    timezone = os.getenv("NEONFLOW_TIMEZONE", "Europe/Madrid")
    ai_api_key = os.getenv("NEONFLOW_AI_API_KEY") or None
    ai_model = os.getenv("NEONFLOW_AI_MODEL", "gemini-2.5-flash")
    ai_timeout_secs = float(os.getenv("NEONFLOW_AI_TIMEOUT_SECS", "20"))
    return Settings(
        data_dir=data_dir,
        database_url=database_url,
        database_url_source=database_url_source,
        storage_backend=storage_backend,
        timezone=timezone,
        ai_api_key=ai_api_key,
        ai_model=ai_model,
        ai_timeout_secs=ai_timeout_secs,
    )
