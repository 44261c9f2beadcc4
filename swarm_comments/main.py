"""swarm-comments -- Command line entry point.

Runs one comment session until interrupted:
1. Configuration loading (``SWARM_COMMENT_*`` environment / ``.env``)
2. Logging setup
3. Metrics exporter (when ``metrics_port`` is set)
4. Session start (tip discovery, history cursor, reaction state, polling)
5. Optional one-shot message send
6. Shutdown on SIGINT / SIGTERM

Usage::

    SWARM_COMMENT_PRIVATE_KEY=0x... SWARM_COMMENT_TOPIC=my-article \\
        python -m swarm_comments.main --send "hello"
"""

import argparse
import asyncio
import json
import logging
import logging.config
import signal
from typing import Optional

from swarm_comments.config.settings import CommentSettings, get_settings
from swarm_comments.engine.comment import SwarmComment
from swarm_comments.engine.context import SessionContext
from swarm_comments.engine.emitter import CommentEvent
from swarm_comments.messages.schemas import Message, ReactionSnapshot


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------

def setup_logging(log_level: str = "INFO", log_format: str = "json"):
    """Setup structured logging.

    Two modes are supported:
    - ``json``  -- one JSON-ish object per line (default)
    - ``text``  -- human-readable format for local development
    """
    if log_format == "json":
        formatter = {
            "class": "logging.Formatter",
            "format": json.dumps({
                "time": "%(asctime)s",
                "level": "%(levelname)s",
                "module": "%(name)s",
                "message": "%(message)s",
            }),
        }
    else:
        formatter = {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        }

    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"default": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
        },
        "root": {
            "level": log_level,
            "handlers": ["console"],
        },
    })


logger = logging.getLogger("swarm_comments.main")


# ---------------------------------------------------------------------------
# Session runner
# ---------------------------------------------------------------------------

class CommentApplication:
    """Wires settings, metrics and one :class:`SwarmComment` session."""

    def __init__(self, settings: CommentSettings):
        self.settings = settings
        self.context = SessionContext()
        self.session = SwarmComment(settings, context=self.context)
        self._shutdown_event = asyncio.Event()

        emitter = self.session.get_emitter()
        emitter.on(CommentEvent.MESSAGE_RECEIVED, self._on_message)
        emitter.on(CommentEvent.REACTIONS_RECEIVED, self._on_reactions)
        emitter.on(CommentEvent.MESSAGE_REQUEST_ERROR, self._on_request_error)
        emitter.on(CommentEvent.CRITICAL_ERROR, self._on_critical_error)

    def _on_message(self, message: Message) -> None:
        logger.info("[%d] %s: %s", message.index, message.username, message.message)

    def _on_reactions(self, snapshot: ReactionSnapshot) -> None:
        logger.info("Reaction state %d: %d active", snapshot.index, len(snapshot.reactions))

    def _on_request_error(self, message: Message) -> None:
        logger.warning("Message %s was not placed", message.id)

    def _on_critical_error(self, error: Exception) -> None:
        logger.critical("Comment tip unavailable: %s", error)

    def request_shutdown(self) -> None:
        self._shutdown_event.set()

    async def run(self, send: Optional[str] = None) -> None:
        if self.settings.metrics_port:
            self.context.metrics.start_server(self.settings.metrics_port)

        await self.session.start()

        if send:
            await self.session.send_message(send)

        await self._shutdown_event.wait()

    async def shutdown(self) -> None:
        checkpoint = self.session.get_checkpoint()
        await self.session.stop()
        logger.info("Resume with checkpoint %s", checkpoint.model_dump_json())


# ---------------------------------------------------------------------------
# Async entry point
# ---------------------------------------------------------------------------

def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="swarm-comments")
    parser.add_argument("--send", help="send one comment after start-up")
    return parser.parse_args(argv)


async def main(argv: Optional[list[str]] = None):
    """Main async entry point."""
    args = parse_args(argv)
    settings = get_settings()
    setup_logging(settings.log_level, settings.log_format)

    app = CommentApplication(settings)

    loop = asyncio.get_running_loop()

    def signal_handler():
        logger.info("Received shutdown signal")
        app.request_shutdown()

    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, signal_handler)

    try:
        await app.run(send=args.send)
    except Exception as exc:
        logger.critical("Fatal error: %s", exc, exc_info=True)
    finally:
        await app.shutdown()


def cli():
    asyncio.run(main())


if __name__ == "__main__":
    cli()
