"""Entry point for running the DeMEDIA media service with Uvicorn."""
from __future__ import annotations

import uvicorn

from demedia.config import get_settings


def main() -> None:
  settings = get_settings()
  uvicorn.run(
    "demedia.main:app",
    host=settings.server_host,
    port=settings.server_port,
    reload=settings.server_reload,
    log_level=settings.log_level.lower(),
  )


if __name__ == "__main__":
  main()
