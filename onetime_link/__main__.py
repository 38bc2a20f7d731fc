"""Serve the sample application: ``python -m onetime_link``."""

from __future__ import annotations

import uvicorn

from onetime_link.core.config import settings


def main() -> None:
    uvicorn.run("onetime_link.main:app", host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    main()
