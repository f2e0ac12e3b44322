from __future__ import annotations
import os
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlsplit
from dotenv import load_dotenv

from .config import DEFAULT_HOST, TransportConfig
from .config_loader import load_config
from .client.endpoints import WEB_BASE_URL
from .client.service import OllamaService
from .secrets.sources import SecretsResolver


def _is_hosted(host: str) -> bool:
    hostname = urlsplit(host).hostname or ""
    return hostname == "ollama.com" or hostname.endswith(".ollama.com")


def build_service(config_path: Optional[Path] = None, **service_kwargs: Any) -> OllamaService:
    """
    Composition root: .env + YAML (or env-only defaults), secrets, validated configs.
    The API key is sent only to ollama.com hosts (web tools, or a hosted main host).
    """
    load_dotenv()
    cfg: Dict[str, Any] = load_config(config_path) if config_path else {}

    ollama_cfg = cfg.get("ollama") or {}
    host = ollama_cfg.get("host") or os.getenv("OLLAMA_HOST") or DEFAULT_HOST

    secrets_cfg = cfg.get("secrets") or {}
    resolver = SecretsResolver(method=secrets_cfg.get("method", "env"), mapping=secrets_cfg.get("mapping", {}))
    api_key = resolver.secret("ollama")
    auth = {"Authorization": f"Bearer {api_key}"} if api_key else {}

    headers = dict(ollama_cfg.get("headers") or {})
    if _is_hosted(host):
        headers = {**auth, **headers}

    config = TransportConfig.from_options(
        host,
        headers=headers,
        timeout_ms=ollama_cfg.get("timeout_ms"),
        max_retries=ollama_cfg.get("max_retries"),
    )
    web_host = (cfg.get("web") or {}).get("host") or WEB_BASE_URL
    web_config = config.for_host(web_host).with_headers(auth)
    return OllamaService(config, web_config=web_config, **service_kwargs)
