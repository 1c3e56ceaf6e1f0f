"""Run the chat relay with uvicorn: ``python -m chatrelay``."""
import uvicorn

from chatrelay.config import get_config


def main() -> None:
    config = get_config()
    # uvicorn exits the process if the port cannot be bound.
    uvicorn.run(
        "chatrelay.main:app",
        host=config.server.host,
        port=config.server.port,
        log_level=config.logging.level.lower(),
    )


if __name__ == "__main__":
    main()
