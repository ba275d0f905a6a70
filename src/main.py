"""Process entrypoint: HTTP ingress plus queue workers in one event loop."""

import uvicorn

from config.settings import get_settings
from src.api.app import create_app
from src.context import AppContext
from src.logging_setup import setup_logging


def main() -> None:
    settings = get_settings()
    setup_logging(settings.log_level)
    app = create_app(AppContext.from_settings(settings))
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()
