# src/ollama_native/config_loader.py

from __future__ import annotations
from pathlib import Path
from typing import Any, Dict
import yaml

from .core.errors import OllamaValidationError


class ConfigError(OllamaValidationError):
    pass


def _lookup(d: Dict[str, Any], dotted: str) -> Any:
    cur: Any = d
    for k in dotted.split("."):
        if not isinstance(cur, dict) or k not in cur:
            return None
        cur = cur[k]
    return cur


def _require(d: Dict[str, Any], dotted: str, typ: type) -> Any:
    val = _lookup(d, dotted)
    if val is None:
        raise ConfigError(f"Missing config key: {dotted}")
    _check(dotted, val, typ)
    return val


def _check(dotted: str, val: Any, typ: type) -> None:
    if typ is int and (isinstance(val, bool) or not isinstance(val, int)):
        raise ConfigError(f"'{dotted}' must be an integer")
    if typ is str and not isinstance(val, str):
        raise ConfigError(f"'{dotted}' must be a string")
    if typ is dict and not isinstance(val, dict):
        raise ConfigError(f"'{dotted}' must be a mapping")


def load_config(path: Path) -> Dict[str, Any]:
    """
    Read and type-check the YAML config. Range checks (URL shape, timeout bounds)
    happen later in TransportConfig.from_options.

        ollama:  { host: str, timeout_ms: int, max_retries: int, headers: {str: str} }
        web:     { host: str }
        secrets: { method: str | [str], mapping: {name: {api_key: service}} }
    """
    if not path or not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(raw, dict) or not raw:
        raise ConfigError(f"Config is empty or invalid YAML: {path}")

    _require(raw, "ollama.host", str)

    # Optional keys: type-checked only, no defaults assigned here
    optional = {
        "ollama.timeout_ms": int,
        "ollama.max_retries": int,
        "ollama.headers": dict,
        "web.host": str,
        "secrets.mapping": dict,
    }
    for dotted, typ in optional.items():
        val = _lookup(raw, dotted)
        if val is not None:
            _check(dotted, val, typ)

    method = _lookup(raw, "secrets.method")
    if method is not None and not isinstance(method, (str, list)):
        raise ConfigError("'secrets.method' must be a string or a list of strings")

    # Normalise the host: trailing slashes would double up with endpoint paths
    raw["ollama"]["host"] = raw["ollama"]["host"].strip().rstrip("/")
    return raw
