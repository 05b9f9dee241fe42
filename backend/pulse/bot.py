"""
Pulse Analytics Discord collector
Listens to the gateway and forwards analytics facts to the configured sink
"""

import asyncio
import logging
import os
import sys
from typing import Any

from discord.ext import commands
from dotenv import load_dotenv

import discord
from pulse.core import (
    BACKEND_DIR,
    BOT_NAME,
    BOT_VERSION,
    COGS_PACKAGE,
    HealthCheckServer,
    PulseSettings,
    setup_logging,
    validate_env_vars,
)
from pulse.dispatcher import FactDispatcher
from pulse.sinks import FactSink, create_sink

logger = logging.getLogger("pulse")


class PulseClient(commands.Bot):
    """Collector client: no commands, only gateway listeners"""

    def __init__(self, settings: PulseSettings, sink: FactSink | None = None):
        intents = discord.Intents.default()
        intents.message_content = True  # message length for activity logs
        intents.members = True  # member join/leave events
        intents.voice_states = True

        super().__init__(
            command_prefix=commands.when_mentioned,
            intents=intents,
            help_command=None,
        )

        self.settings = settings
        self.sink = sink or create_sink(settings)
        self.fact_dispatcher = FactDispatcher(self.sink)
        self.health_server: HealthCheckServer | None = None

        self.initial_extensions = [
            f"{COGS_PACKAGE}.collector",
        ]

    async def setup_hook(self):
        """Prepare the sink, listeners and health server before connecting"""
        asyncio.get_running_loop().set_exception_handler(self._handle_loop_exception)

        await self.sink.start()
        logger.info(f"Fact sink ready: {self.sink.name}")

        for extension in self.initial_extensions:
            await self.load_extension(extension)
        logger.info(f"Loaded Cogs: {', '.join(e.split('.')[-1] for e in self.initial_extensions)}")

        if self.settings.health_enabled:
            self.health_server = HealthCheckServer(
                bot=self, dispatcher=self.fact_dispatcher, port=self.settings.health_port
            )
            await self.health_server.start()

        logger.info("Connecting to Discord...")

    async def on_ready(self):
        """Gateway session established"""
        logger.info(f"{BOT_NAME} {BOT_VERSION} online as {self.user} (ID: {self.user.id})")
        logger.info(f"Connected to {len(self.guilds)} server(s) | discord.py {discord.__version__}")
        for guild in self.guilds:
            logger.info(f"  - {guild.name} ({guild.member_count} members)")

    async def on_error(self, event_method: str, /, *args: Any, **kwargs: Any) -> None:
        """Log listener errors and keep running"""
        logger.exception(f"Unhandled error in {event_method}")

    def _handle_loop_exception(self, loop: asyncio.AbstractEventLoop, context: dict) -> None:
        exc = context.get("exception")
        message = context.get("message", "Unhandled exception in event loop")
        if exc is not None:
            logger.error(f"{message}: {exc!r}", exc_info=exc)
        else:
            logger.error(message)

    async def close(self):
        """Report orphaned sessions and release sink resources"""
        if self.is_closed():
            return
        self.fact_dispatcher.log_orphaned_sessions()
        if self.health_server:
            await self.health_server.stop()
        await super().close()
        await self.sink.close()


async def main() -> int:
    """Collector entry point; returns the process exit code"""
    load_dotenv(dotenv_path=BACKEND_DIR / ".env", encoding="utf-8")
    setup_logging(os.getenv("LOG_LEVEL", "INFO"))

    try:
        settings = validate_env_vars()
    except ValueError as e:
        logger.error(str(e))
        logger.error("Required: DISCORD_TOKEN, and INGEST_URL + INGEST_SECRET (SINK=http) "
                     "or DATABASE_URL (SINK=database)")
        return 1

    setup_logging(settings.log_level)
    logger.info(f"Starting {BOT_NAME} (sink={settings.sink})")

    async with PulseClient(settings) as bot:
        try:
            await bot.start(settings.discord_token)
        except discord.LoginFailure as e:
            logger.error(f"Discord login failed: {e}")
            return 1
    return 0


def run() -> None:
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        logger.info("Collector stopped manually")
