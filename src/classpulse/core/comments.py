import json
from typing import Any, Dict, List


def normalize_comments(raw: Any) -> List[Dict[str, Any]]:
    """Coerce a comment payload (JSON text, list or None) into a list of mappings."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="ignore")
    if isinstance(raw, str):
        if not raw.strip():
            return []
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, list):
        return []
    return [dict(item) for item in raw if isinstance(item, dict)]


def initials(name: str, default: str = "?") -> str:
    letters = "".join(part[0].upper() for part in (name or "").split(" ") if part)
    return letters or default
