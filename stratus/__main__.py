"""Run the Stratus HTTP server with uvicorn."""

import uvicorn

from stratus.config import get_settings


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "stratus.api.app:app",
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
