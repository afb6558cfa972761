"""
Local persistence of the classifier API key.

The credential is a single string stored under a fixed key in a small
JSON key-value file. It is cleared outright when the classifier rejects
it or the user wants to enter a different one.
"""

import json
import logging
import os
from pathlib import Path
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

CREDENTIAL_KEY = "anthropic-api-key"


class CredentialStore(Protocol):
    def get(self) -> Optional[str]:
        ...

    def set(self, token: str) -> None:
        ...

    def clear(self) -> None:
        ...


class FileCredentialStore:
    """
    JSON file holding {"anthropic-api-key": "..."}.

    Other keys in the file are preserved. The file is written with
    owner-only permissions.
    """

    def __init__(self, path: Path | str, key: str = CREDENTIAL_KEY) -> None:
        self._path = Path(path).expanduser()
        self._key = key

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict:
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, json.JSONDecodeError) as e:
            logger.warning("Credential file unreadable, ignoring", extra={"path": str(self._path), "error": str(e)})
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data), encoding="utf-8")
        os.chmod(tmp_path, 0o600)
        os.replace(tmp_path, self._path)

    def get(self) -> Optional[str]:
        value = self._read().get(self._key)
        return value if isinstance(value, str) and value else None

    def set(self, token: str) -> None:
        token = token.strip()
        if not token:
            raise ValueError("Credential cannot be empty")
        data = self._read()
        data[self._key] = token
        self._write(data)
        logger.info("Credential stored", extra={"path": str(self._path)})

    def clear(self) -> None:
        data = self._read()
        if self._key not in data:
            return
        del data[self._key]
        self._write(data)
        logger.info("Credential cleared", extra={"path": str(self._path)})


class InMemoryCredentialStore:
    """Credential store that forgets everything on restart."""

    def __init__(self, token: Optional[str] = None) -> None:
        self._token = token or None

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        token = token.strip()
        if not token:
            raise ValueError("Credential cannot be empty")
        self._token = token

    def clear(self) -> None:
        self._token = None


def create_credential_store(path: Optional[str] = None) -> CredentialStore:
    """File-backed store when a path is configured, in-memory otherwise."""
    if path:
        return FileCredentialStore(path)
    return InMemoryCredentialStore()
