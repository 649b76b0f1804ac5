#!/usr/bin/env python3
"""
WanlyConsole v1.0.0 — Main entry point.
Operator console for the video-generation job queue.
"""

import sys
import os
import logging
import traceback
from pathlib import Path
from datetime import datetime

# ── Determine project root ────────────────────────────────────────────
PROJECT_ROOT = Path(__file__).resolve().parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from wanly_console.core.constants import APP_VERSION, LOG_DIR  # noqa: E402

# ── Logging setup (writes to ~/Library/Logs/wanly-console/) ──────────
LOG_DIR.mkdir(parents=True, exist_ok=True)
LOG_FILE = LOG_DIR / "app.log"

logging.basicConfig(
    level=os.environ.get("WANLY_LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.FileHandler(LOG_FILE, encoding="utf-8"),
    ],
)
logger = logging.getLogger("wanly-console")


def main():
    logger.info("=" * 60)
    logger.info("wanly-console v%s starting at %s", APP_VERSION, datetime.now().isoformat())
    logger.info("Python: %s", sys.executable)
    logger.info("Project root: %s", PROJECT_ROOT)
    logger.info("=" * 60)

    try:
        from wanly_console.desktop.ui_main import main as run_app
        run_app()
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        logger.critical("Fatal error: %s\n%s", error_msg, traceback.format_exc())
        print(f"{error_msg}\nCheck logs at: {LOG_FILE}", file=sys.stderr)
        sys.exit(1)


if __name__ == "__main__":
    main()
