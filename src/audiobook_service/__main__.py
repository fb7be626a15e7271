"""Run the service with ``python -m audiobook_service``."""
from __future__ import annotations

import uvicorn

from audiobook_service.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run("audiobook_service.main:app", host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
