# src/ollama_native/secrets/sources.py

from __future__ import annotations
import logging
import os
from typing import Dict, Iterable, List, Optional, Protocol, Union

from ollama_native.core.errors import OllamaValidationError

try:
    import keyring as _keyring
except Exception:
    _keyring = None  # optional

logger = logging.getLogger(__name__)

# `keyring set ollama-native OLLAMA_API_KEY`
KEYRING_SERVICE = "ollama-native"


def _clean(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class SecretSource(Protocol):
    label: str

    def lookup(self, key: str) -> Optional[str]: ...


class EnvSource:
    """Process environment (after .env has been loaded): `key` as given, then upper-cased."""

    label = "env"

    def lookup(self, key: str) -> Optional[str]:
        for candidate in dict.fromkeys((key, key.upper())):
            value = _clean(os.getenv(candidate))
            if value:
                return value
        return None


class KeyringSource:
    """
    OS keyring. The key name is the username under the `ollama-native` service;
    an entry stored under the key name as its own service is accepted too.
    """

    label = "keyring"

    def __init__(self, service: str = KEYRING_SERVICE):
        self.service = service

    def lookup(self, key: str) -> Optional[str]:
        if _keyring is None:
            return None
        try:
            value = _clean(_keyring.get_password(self.service, key))
            if value:
                return value
            cred = _keyring.get_credential(key, None)
            return _clean(getattr(cred, "password", None)) if cred else None
        except Exception as e:  # no usable backend, locked store, ...
            logger.debug("keyring lookup for %s failed: %s", key, e)
            return None


SOURCE_TYPES = {"env": EnvSource, "keyring": KeyringSource}


def build_secret_sources(method: Union[str, Iterable[str]]) -> List[SecretSource]:
    """Sources in lookup order. `method` is one name or a list; duplicates collapse."""
    names = [method] if isinstance(method, str) else list(method)
    sources: Dict[str, SecretSource] = {}
    for name in names:
        key = str(name).strip().lower()
        if key not in SOURCE_TYPES:
            raise OllamaValidationError(f"Unknown secrets method '{name}'. Allowed: {sorted(SOURCE_TYPES)}")
        sources.setdefault(key, SOURCE_TYPES[key]())
    return list(sources.values())


class SecretsResolver:
    """
    Finds a secret by key name across the configured sources.
    mapping renames keys per target, e.g. { "ollama": { "api_key": "MY_OLLAMA_KEY" } };
    unmapped targets use `<NAME>_API_KEY`.
    """

    def __init__(self, method: Union[str, Iterable[str]] = "env", mapping: Optional[Dict[str, Dict[str, str]]] = None):
        self.sources = build_secret_sources(method)
        self.mapping = mapping or {}

    def key_name(self, name: str = "ollama", field: str = "api_key") -> str:
        return self.mapping.get(name, {}).get(field) or f"{name.upper()}_{field.upper()}"

    def secret(self, name: str = "ollama", field: str = "api_key") -> Optional[str]:
        key = self.key_name(name, field)
        for source in self.sources:
            value = source.lookup(key)
            if value:
                logger.debug("%s resolved from %s", key, source.label)
                return value
        return None
