from __future__ import annotations

import os

import uvicorn
from loguru import logger
from recipebox.main import app as recipebox_app

# `uvicorn main:app` serves the API without going through main().
app = recipebox_app

RELOAD_ON = {"1", "true", "yes", "on"}


def _reload_requested() -> bool:
    """Reload is on unless RECIPEBOX_RELOAD says otherwise."""

    raw = os.getenv("RECIPEBOX_RELOAD")
    return raw is None or raw.lower() in RELOAD_ON


def _port() -> int:
    return int(os.getenv("RECIPEBOX_PORT", "3001"))


def main() -> None:
    """Serve the RecipeBox API with uvicorn, reloading on code changes when allowed."""

    reload_enabled = _reload_requested()
    try:
        uvicorn.run("main:app", host="0.0.0.0", port=_port(), reload=reload_enabled)
    except PermissionError:
        # The reload watcher needs filesystem notifications some hosts deny.
        if not reload_enabled:
            raise
        logger.warning("File watching denied; serving without reload (RECIPEBOX_RELOAD=0 skips this)")
        uvicorn.run("main:app", host="0.0.0.0", port=_port(), reload=False)


if __name__ == "__main__":
    main()
