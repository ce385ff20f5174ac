import os
import re
import sys
import json
import hashlib
from datetime import datetime
from typing import Any, Dict, Optional

def log_error(message: str) -> None:
    print(f"[TELNETFS] {message}", file=sys.stderr, flush=True)

def clamp_int(value: Any, default: int, min_value: int, max_value: int) -> int:
    try:
        numeric = int(value)
    except Exception:
        numeric = default
    if numeric < min_value:
        return min_value
    if numeric > max_value:
        return max_value
    return numeric

def to_bool(value: Any, default: bool = False) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    s = str(value).lower().strip()
    if s in ("true", "1", "yes", "on"):
        return True
    if s in ("false", "0", "no", "off"):
        return False
    return default

def iso_now() -> str:
    return datetime.now().isoformat(timespec="milliseconds")

def safe_name(text: str) -> str:
    cleaned = re.sub(r"[^a-zA-Z0-9._-]+", "_", text.strip())
    return cleaned[:80] if cleaned else "unnamed"

def format_address(address: Any) -> str:
    """Render a peer address tuple as ``host:port``."""
    if isinstance(address, tuple) and len(address) >= 2:
        return f"{address[0]}:{address[1]}"
    return str(address)

def json_line(path: str, payload: Dict[str, Any]) -> None:
    try:
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False) + "\n")
    except Exception as exc:
        log_error(f"log write failed ({path}): {exc}")

def make_cache_dirs(cache_root: str) -> Dict[str, str]:
    sessions_dir = os.path.join(cache_root, "sessions")
    os.makedirs(sessions_dir, exist_ok=True)
    return {
        "cache_root": cache_root,
        "sessions_dir": sessions_dir,
    }

def resolve_runtime_paths(
    server_root_arg: Optional[str],
    cache_dir_arg: Optional[str],
) -> Dict[str, str]:
    server_root = os.path.abspath(os.path.expanduser(server_root_arg or "server"))
    root_tag = safe_name(os.path.basename(server_root))
    root_hash = hashlib.sha1(server_root.encode("utf-8")).hexdigest()[:8]
    root_ns = f"{root_tag}-{root_hash}"
    if cache_dir_arg:
        cache_root = os.path.join(os.path.abspath(os.path.expanduser(cache_dir_arg)), root_ns)
    else:
        cache_root = os.path.join(os.path.dirname(server_root), ".telnetfs-cache", root_ns)
    return {
        "server_root": server_root,
        "root_tag": root_tag,
        "cache_root": cache_root,
    }
