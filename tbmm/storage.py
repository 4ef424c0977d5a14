"""
Local persistence for the API key and user settings
"""

import json
import logging
import os
import yaml
from dataclasses import asdict, fields
from typing import Dict, Optional

from .models import Settings

logger = logging.getLogger(__name__)

API_KEY_ITEM = "tbmm.apiKey"
SETTINGS_ITEM = "tbmm.settings"

class LocalStorage:
    """String key/value store kept in a YAML file"""

    def __init__(self, path: str):
        self.path = path

    def _read(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        with open(self.path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Storage file is not a mapping: {self.path}")
        return data

    def _write(self, data: Dict[str, str]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(data, f, default_flow_style=False, allow_unicode=True)

    def get_item(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def remove_item(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)

    @classmethod
    def from_config(cls, config: dict) -> "LocalStorage":
        storage = config['storage']
        return cls(os.path.join(os.path.expanduser(storage['dir']), storage['file']))

class AuthStore:
    """TorBox API key of the logged in user"""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    @property
    def api_key(self) -> Optional[str]:
        return self.storage.get_item(API_KEY_ITEM)

    @property
    def is_authenticated(self) -> bool:
        return bool(self.api_key)

    def login(self, api_key: str) -> None:
        api_key = api_key.strip()
        if not api_key:
            raise ValueError("API key must not be empty")
        self.storage.set_item(API_KEY_ITEM, api_key)
        logger.info("Stored TorBox API key")

    def logout(self) -> None:
        self.storage.remove_item(API_KEY_ITEM)
        logger.info("Removed TorBox API key")

class SettingsStore:
    """User settings, stored as JSON under a single storage item"""

    def __init__(self, storage: LocalStorage):
        self.storage = storage

    @property
    def settings(self) -> Settings:
        stored = self.storage.get_item(SETTINGS_ITEM)
        if not stored:
            return Settings()
        try:
            data = json.loads(stored)
            known = {f.name for f in fields(Settings)}
            return Settings(**{k: v for k, v in data.items() if k in known})
        except (ValueError, TypeError, AttributeError) as e:
            logger.error(f"Failed to load settings: {e}")
            return Settings()

    def update(self, **changes) -> Settings:
        """Apply changes and persist the result"""
        known = {f.name for f in fields(Settings)}
        unknown = set(changes) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        updated = Settings(**dict(asdict(self.settings), **changes))
        self.storage.set_item(SETTINGS_ITEM, json.dumps(asdict(updated)))
        return updated
