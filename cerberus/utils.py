import os
import re
import sys
import json
from datetime import datetime
from typing import Any, Dict, Optional

ANSI_ESCAPE = re.compile(r"\x1B(?:[@-Z\\-_]|\[[0-?]*[ -/]*[@-~])")


def log_error(message: str) -> None:
    print(f"[CERBERUS] {message}", file=sys.stderr, flush=True)

def clamp_int(value: Any, default: int, min_value: int, max_value: int) -> int:
    try:
        numeric = int(value)
    except (TypeError, ValueError):
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

def clean_output(text: str) -> str:
    if not text:
        return ""
    text = ANSI_ESCAPE.sub("", text)
    return text.replace("\r\n", "\n").replace("\r", "\n")

def json_line(path: str, payload: Dict[str, Any]) -> None:
    try:
        with open(path, "a", encoding="utf-8") as handle:
            handle.write(json.dumps(payload, ensure_ascii=False) + "\n")
    except OSError as exc:
        log_error(f"log write failed ({path}): {exc}")

def make_log_dirs(log_root: Optional[str]) -> Dict[str, str]:
    if not log_root:
        return {}
    log_root = os.path.abspath(os.path.expanduser(log_root))
    sessions_dir = os.path.join(log_root, "sessions")
    os.makedirs(sessions_dir, exist_ok=True)
    return {
        "log_root": log_root,
        "sessions_dir": sessions_dir,
    }
