"""Run the API with ``python -m notetree``."""

import uvicorn

from .core.config import settings


def main() -> None:
    uvicorn.run(
        "notetree.main:app",
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
