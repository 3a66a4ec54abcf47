from __future__ import annotations

import os
from pathlib import Path


REPO_ROOT = Path(__file__).resolve().parents[3]

DATA_DIR = Path(os.environ.get("COURSECANVAS_DATA_DIR") or (REPO_ROOT / "data"))
DB_PATH = DATA_DIR / "db.json"
MEDIA_DIR = DATA_DIR / "media"

LOG_LEVEL = (os.environ.get("COURSECANVAS_LOG_LEVEL") or "INFO").upper()


def _env_flag(name: str, default: bool) -> bool:
    raw = (os.environ.get(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "on"}


# Reject goto-scene buttons whose target does not exist when a course is saved.
# Playback keeps treating such clicks as no-ops either way.
STRICT_GOTO_TARGETS = _env_flag("COURSECANVAS_STRICT_GOTO", True)

# Canvas used for scenes that have no background screenshot.
DEFAULT_CANVAS_WIDTH = 800
DEFAULT_CANVAS_HEIGHT = 600

# Decimal places kept on percentage geometry.
PERCENT_PRECISION = 4

# Hotspot and arrow markers, at natural scale.
ICON_SIZE_PX = 32

TOOLTIP_DISMISS_MS = 3000

MAX_UPLOAD_BYTES = 25 * 1024 * 1024


DEV_CORS_ORIGINS = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:8000",
    "http://127.0.0.1:8000",
]
