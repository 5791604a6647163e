import asyncio
import logging

from rich.logging import RichHandler

from stranger_chat.core.session_manager import SessionManager
from stranger_chat.ui.cli import StrangerChatCLI, console
from stranger_chat.utils.config import SessionConfig


def configure_logging(level: str):
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main():
    config = SessionConfig.from_env()
    configure_logging(config.log_level)

    cli = StrangerChatCLI(SessionManager(config=config))
    try:
        asyncio.run(cli.run())
    except KeyboardInterrupt:
        pass
    except Exception as e:
        logging.getLogger(__name__).exception("Fatal error")
        print(f"Fatal Error: {e}")


if __name__ == "__main__":
    main()
