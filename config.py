import os
from functools import lru_cache
from pathlib import Path


class Settings:
    def __init__(
        self,
        database_url: str,
        csv_encoding: str,
        max_upload_bytes: int,
        log_level: str,
    ) -> None:
        self.database_url = database_url
        self.csv_encoding = csv_encoding
        self.max_upload_bytes = max_upload_bytes
        self.log_level = log_level


def _ensure_data_dir() -> Path:
    root = Path(os.getenv("LEDGER_DATA_DIR", "./data")).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    data_dir = _ensure_data_dir()
    default_db = data_dir / "ledger.db"
    database_url = os.getenv("LEDGER_DATABASE_URL", f"sqlite:///{default_db}")
    csv_encoding = os.getenv("LEDGER_CSV_ENCODING", "utf-8-sig")
    max_upload_bytes = int(os.getenv("LEDGER_MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
    log_level = os.getenv("LEDGER_LOG_LEVEL", "INFO").upper()
    return Settings(
        database_url=database_url,
        csv_encoding=csv_encoding,
        max_upload_bytes=max_upload_bytes,
        log_level=log_level,
    )
