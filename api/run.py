"""Run the stream API."""

import uvicorn

from api.main import create_app
from app.utils.logger import setup_logging
from config.settings import get_settings


def main() -> None:
    settings = get_settings()

    # Setup logging before starting the server
    setup_logging(
        log_level=settings.logging.level,
        log_format=settings.logging.format,
        log_file=settings.logging.file_path,
        enable_console=settings.logging.enable_console,
    )

    uvicorn.run(
        create_app(settings=settings),
        host=settings.api.host,
        port=settings.api.port,
        log_level=settings.logging.level.lower(),
        access_log=True,
    )


if __name__ == "__main__":
    main()
