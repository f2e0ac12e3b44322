from __future__ import annotations
from typing import Dict

# Hosted web search/fetch lives on ollama.com, not on a local server.
WEB_BASE_URL = "https://ollama.com"

API_ENDPOINTS: Dict[str, str] = {
    "chat": "/api/chat",
    "copy": "/api/copy",
    "create": "/api/create",
    "delete": "/api/delete",
    "embed": "/api/embed",
    "generate": "/api/generate",
    "list": "/api/tags",
    "ps": "/api/ps",
    "pull": "/api/pull",
    "push": "/api/push",
    "show": "/api/show",
    "version": "/api/version",
    "web_search": "/api/web_search",
    "web_fetch": "/api/web_fetch",
}
