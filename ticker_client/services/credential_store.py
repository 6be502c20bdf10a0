import json
import logging
import os
from pathlib import Path
from threading import Lock

from ticker_client.core.config import get_settings

logger = logging.getLogger(__name__)

TOKEN_KEY = "token"
LAST_GAME_KEY = "last_game_id"
GUEST_KEY = "guest_name"


class CredentialStore:
    def __init__(self, path: str | Path | None = None) -> None:
        raw_path = path if path is not None else get_settings().credentials_path
        self._path = Path(raw_path).expanduser()
        self._lock = Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read_locked(self) -> dict[str, str]:
        try:
            payload = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("ignoring unreadable credential file %s: %s", self._path, exc)
            return {}
        if not isinstance(payload, dict):
            return {}
        return {key: value for key, value in payload.items() if isinstance(value, str)}

    def _write_locked(self, data: dict[str, str]) -> None:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
            os.replace(tmp_path, self._path)
        except OSError as exc:
            logger.warning("could not persist credentials to %s: %s", self._path, exc)

    def _get(self, key: str) -> str | None:
        with self._lock:
            value = self._read_locked().get(key)
        return value if value and value.strip() else None

    def _set(self, key: str, value: str | None) -> None:
        with self._lock:
            data = self._read_locked()
            if value is None or not value.strip():
                if key not in data:
                    return
                data.pop(key, None)
            else:
                data[key] = value.strip()
            self._write_locked(data)

    def get_token(self) -> str | None:
        return self._get(TOKEN_KEY)

    def set_token(self, token: str) -> None:
        self._set(TOKEN_KEY, token)

    def clear_token(self) -> None:
        self._set(TOKEN_KEY, None)

    def get_last_game_id(self) -> str | None:
        return self._get(LAST_GAME_KEY)

    def set_last_game_id(self, game_id: str) -> None:
        self._set(LAST_GAME_KEY, game_id)

    def clear_last_game_id(self) -> None:
        self._set(LAST_GAME_KEY, None)

    def get_guest_name(self) -> str | None:
        return self._get(GUEST_KEY)

    def set_guest_name(self, name: str) -> None:
        self._set(GUEST_KEY, name)
