"""Environment-driven settings for the diagnosis service.

All values are read with `os.getenv` after `load_dotenv()` has run in
`main.py`. `DATA_DIR` is required; everything else has a default.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

_NUMBERED_KEY = re.compile(r"^OPENAI_API_KEY_(\d+)$")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_api_keys() -> List[str]:
    """Collect credentials from OPENAI_API_KEYS and OPENAI_API_KEY_<n>.

    The comma-separated list comes first, then numbered keys in numeric
    order. Blank entries and duplicates are dropped.
    """
    keys: List[str] = [part.strip() for part in os.getenv("OPENAI_API_KEYS", "").split(",")]
    numbered = sorted(
        (int(match.group(1)), value.strip())
        for name, value in os.environ.items()
        if (match := _NUMBERED_KEY.match(name))
    )
    keys.extend(value for _, value in numbered)

    unique: List[str] = []
    for key in keys:
        if key and key not in unique:
            unique.append(key)
    return unique


@dataclass
class Settings:
    """Resolved configuration for one process."""

    data_dir: Path
    api_keys: List[str] = field(default_factory=list)
    model: str = "gpt-5"
    record_capacity: int = 100
    retry_budget: Optional[int] = None
    analysis_timeout_seconds: float = 60.0
    download_timeout_seconds: float = 30.0
    max_image_bytes: int = 10 * 1024 * 1024
    report_language: str = "Arabic"
    free_scans: int = 3
    paywall_enabled: bool = True
    admin_token: str = ""
    operator_chat_ref: str = "operator"
    image_retention_seconds: int = 7 * 86_400
    cleanup_interval_seconds: int = 3_600
    log_level: str = "INFO"

    @property
    def records_path(self) -> Path:
        return self.data_dir / "records.json"

    @property
    def accounts_path(self) -> Path:
        return self.data_dir / "accounts.json"

    @property
    def images_dir(self) -> Path:
        return self.data_dir / "images"

    @property
    def archive_dir(self) -> Path:
        return self.data_dir / "archive"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the process environment.

        Raises:
            RuntimeError: If DATA_DIR is missing or a numeric value is malformed.
        """
        env_dir = os.getenv("DATA_DIR")
        if env_dir is None or not env_dir.strip():
            raise RuntimeError(
                "DATA_DIR environment variable must be set to a writable "
                "directory where records, accounts and images are stored."
            )
        data_dir = Path(env_dir).expanduser()
        if data_dir.exists() and not data_dir.is_dir():
            raise RuntimeError(f"DATA_DIR={env_dir!r} points to a file, not a directory ({data_dir}).")

        retry_budget = _env_int("RETRY_BUDGET", 0)
        return cls(
            data_dir=data_dir,
            api_keys=load_api_keys(),
            model=os.getenv("OPENAI_MODEL", "gpt-5"),
            record_capacity=_env_int("RECORD_CAPACITY", 100),
            retry_budget=retry_budget or None,
            analysis_timeout_seconds=_env_float("ANALYSIS_TIMEOUT_SECONDS", 60.0),
            download_timeout_seconds=_env_float("DOWNLOAD_TIMEOUT_SECONDS", 30.0),
            max_image_bytes=_env_int("MAX_IMAGE_BYTES", 10 * 1024 * 1024),
            report_language=os.getenv("REPORT_LANGUAGE", "Arabic"),
            free_scans=_env_int("FREE_SCANS", 3),
            paywall_enabled=_env_bool("PAYWALL_ENABLED", True),
            admin_token=os.getenv("ADMIN_TOKEN", ""),
            operator_chat_ref=os.getenv("OPERATOR_CHAT_REF", "operator"),
            image_retention_seconds=_env_int("IMAGE_RETENTION_SECONDS", 7 * 86_400),
            cleanup_interval_seconds=_env_int("CLEANUP_INTERVAL_SECONDS", 3_600),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
