import json
import os
from typing import Any, Dict, List, Optional

DEFAULT_SOURCES_FILE = os.path.join(os.path.dirname(os.path.abspath(__file__)), "proxy_sources.json")


def _as_list(v: Any) -> List[Any]:
    if isinstance(v, list):
        return v
    if isinstance(v, (tuple, set)):
        return list(v)
    # Single string or dict -> wrap into list
    return [v] if v else []


def proxy_sources(path: Optional[str] = None) -> Dict[str, List[Any]]:
    """
    Load the source catalog: {"sources": [...], "user_agents": [...]}.

    A bare JSON list is read as the source list with no identity pool.
    Raises OSError / ValueError when the file is missing or malformed.
    """
    with open(path or DEFAULT_SOURCES_FILE, 'r', encoding='utf-8') as file:
        data = json.load(file)
    if isinstance(data, list):
        return {"sources": data, "user_agents": []}
    if not isinstance(data, dict):
        raise ValueError("proxy sources file must contain a JSON object or list")
    return {
        "sources": _as_list(data.get("sources")),
        "user_agents": [str(ua) for ua in _as_list(data.get("user_agents")) if ua],
    }
