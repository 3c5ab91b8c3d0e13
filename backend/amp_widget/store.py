"""
Configuration store.

Keeps PersonalizationConfig records in a key-value layout
(``config:{id}`` plus a ``config:list`` id set), either in memory or
persisted to a JSON file. Bearer tokens are Fernet-encrypted before they
are written and only decrypted when a caller asks for credentials.
"""

import json
import os
import tempfile
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

from cryptography.fernet import Fernet, InvalidToken

from .errors import ConfigNotFoundError
from .logger import logger
from .schemas import (
    ApiConfig,
    CreateConfigRequest,
    IdentityConfig,
    PersonalizationConfig,
    UpdateConfigRequest,
)
from .settings import settings

CONFIG_PREFIX = "config:"
CONFIG_LIST_KEY = "config:list"
REDACTED = "[REDACTED]"


def generate_config_id() -> str:
    return f"cfg_{uuid.uuid4().hex[:12]}"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CredentialCipher:
    """Symmetric encryption for profile API bearer tokens."""

    def __init__(self, key: Optional[str] = None):
        if not key:
            logger.warning(
                "ENCRYPTION_KEY not set; generated an ephemeral key. "
                "Stored credentials will not survive a restart.")
            key = Fernet.generate_key().decode("ascii")
        self._fernet = Fernet(key.encode("ascii") if isinstance(key, str) else key)

    def encrypt(self, plaintext: str) -> str:
        return self._fernet.encrypt(plaintext.encode("utf-8")).decode("ascii")

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode("ascii")).decode("utf-8")
        except InvalidToken:
            logger.error("Failed to decrypt stored bearer token")
            raise


class ConfigStore:
    def __init__(self, path: Optional[str] = None, cipher: Optional[CredentialCipher] = None):
        self._path = Path(path) if path else None
        self._cipher = cipher or CredentialCipher(settings.encryption_key)
        self._kv: Dict[str, dict] = {}
        self._ids: set[str] = set()
        self._load()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def _load(self) -> None:
        if not self._path or not self._path.exists():
            return
        with self._path.open("r", encoding="utf-8") as fh:
            raw = json.load(fh)
        self._ids = set(raw.get(CONFIG_LIST_KEY, []))
        self._kv = {k: v for k, v in raw.items() if k != CONFIG_LIST_KEY}
        logger.info(f"Loaded {len(self._ids)} configurations from {self._path}")

    def _flush(self) -> None:
        if not self._path:
            return
        payload = dict(self._kv)
        payload[CONFIG_LIST_KEY] = sorted(self._ids)
        self._path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self._path.parent, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(payload, fh, indent=2)
            os.replace(tmp, self._path)
        except Exception:
            os.unlink(tmp)
            raise

    # -------------------------------------------------------------------------
    # Credentials
    # -------------------------------------------------------------------------

    def _encrypt_api_config(self, api_config: ApiConfig) -> ApiConfig:
        return api_config.model_copy(
            update={"bearer_token": self._cipher.encrypt(api_config.bearer_token)})

    def _decrypt_api_config(self, api_config: ApiConfig) -> ApiConfig:
        return api_config.model_copy(
            update={"bearer_token": self._cipher.decrypt(api_config.bearer_token)})

    @staticmethod
    def _redact_api_config(api_config: ApiConfig) -> ApiConfig:
        return api_config.model_copy(update={"bearer_token": REDACTED})

    # -------------------------------------------------------------------------
    # CRUD
    # -------------------------------------------------------------------------

    def create_config(self, request: CreateConfigRequest) -> PersonalizationConfig:
        """Store a new configuration; the returned copy carries the plain token."""
        now = _now()
        config = PersonalizationConfig(
            id=generate_config_id(),
            created_at=now,
            updated_at=now,
            api_config=request.api_config,
            personalization=request.personalization,
            widget_config=request.widget_config,
            identity_config=request.identity_config or IdentityConfig(),
        )
        stored = config.model_copy(
            update={"api_config": self._encrypt_api_config(config.api_config)})
        self._kv[f"{CONFIG_PREFIX}{config.id}"] = stored.model_dump(mode="json")
        self._ids.add(config.id)
        self._flush()
        logger.info(f"Created configuration {config.id}")
        return config

    def get_config(self, config_id: str, include_credentials: bool = False) -> Optional[PersonalizationConfig]:
        raw = self._kv.get(f"{CONFIG_PREFIX}{config_id}")
        if raw is None:
            return None
        config = PersonalizationConfig.model_validate(raw)
        if include_credentials:
            api_config = self._decrypt_api_config(config.api_config)
        else:
            api_config = self._redact_api_config(config.api_config)
        return config.model_copy(update={"api_config": api_config})

    def require_config(self, config_id: str, include_credentials: bool = False) -> PersonalizationConfig:
        config = self.get_config(config_id, include_credentials)
        if config is None:
            raise ConfigNotFoundError(config_id)
        return config

    def update_config(self, config_id: str, updates: UpdateConfigRequest) -> Optional[PersonalizationConfig]:
        key = f"{CONFIG_PREFIX}{config_id}"
        raw = self._kv.get(key)
        if raw is None:
            return None
        existing = PersonalizationConfig.model_validate(raw)
        changes = {
            name: getattr(updates, name)
            for name in updates.model_fields_set
            if getattr(updates, name) is not None
        }
        new_api_config = changes.get("api_config")
        if new_api_config is not None:
            changes["api_config"] = self._encrypt_api_config(new_api_config)
        # id and created_at are never overwritten
        changes["updated_at"] = _now()
        updated = existing.model_copy(update=changes)
        self._kv[key] = updated.model_dump(mode="json")
        self._flush()
        logger.info(f"Updated configuration {config_id}")

        if new_api_config is not None:
            api_config = new_api_config
        else:
            api_config = self._redact_api_config(existing.api_config)
        return updated.model_copy(update={"api_config": api_config})

    def delete_config(self, config_id: str) -> bool:
        key = f"{CONFIG_PREFIX}{config_id}"
        if key not in self._kv:
            return False
        del self._kv[key]
        self._ids.discard(config_id)
        self._flush()
        logger.info(f"Deleted configuration {config_id}")
        return True

    def list_config_ids(self) -> List[str]:
        return sorted(self._ids)

    def list_configs(self) -> List[PersonalizationConfig]:
        configs = (self.get_config(cid) for cid in self.list_config_ids())
        return [c for c in configs if c is not None]
