from __future__ import annotations
"""Application settings persistence helpers."""

from dataclasses import dataclass
import json
from pathlib import Path

from .signer import MAX_PRESIGN_EXPIRES

MAX_LIST_KEYS = 1000


@dataclass
class AppSettings:
    """Simple container for persistent app settings."""

    max_keys: int = MAX_LIST_KEYS
    presign_expires_in: int = 3600


def _bounded_int(value: object, default: int, upper: int) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if number <= 0 or number > upper:
        return default
    return number


class SettingsStorage:
    """JSON-backed persistence for :class:`AppSettings`."""

    def __init__(self, storage_path: str | Path | None = None):
        if storage_path is None:
            storage_path = Path.home() / ".pys3core_settings.json"
        self._path = Path(storage_path)

    def load(self) -> AppSettings:
        if not self._path.exists():
            return AppSettings()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError):
            return AppSettings()
        if not isinstance(data, dict):
            return AppSettings()
        return AppSettings(
            max_keys=_bounded_int(data.get("max_keys"), AppSettings.max_keys, MAX_LIST_KEYS),
            presign_expires_in=_bounded_int(
                data.get("presign_expires_in"), AppSettings.presign_expires_in, MAX_PRESIGN_EXPIRES
            ),
        )

    def save(self, settings: AppSettings) -> None:
        payload = {
            "max_keys": min(max(int(settings.max_keys), 1), MAX_LIST_KEYS),
            "presign_expires_in": min(max(int(settings.presign_expires_in), 1), MAX_PRESIGN_EXPIRES),
        }
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        except OSError:
            # Persist best-effort; ignore filesystem issues.
            return
