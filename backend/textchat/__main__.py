"""Run the server: ``python -m textchat``."""
import uvicorn

from textchat.config import get_config


def main() -> None:
    config = get_config()
    uvicorn.run(
        "textchat.main:app",
        host=config.server.host,
        port=config.server.port,
        reload=config.server.reload,
        log_level=config.logging.level,
    )


if __name__ == "__main__":
    main()
