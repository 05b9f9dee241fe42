"""HTTP health check server"""

import asyncio
import logging
import time
from typing import TYPE_CHECKING, Any

from aiohttp import web

if TYPE_CHECKING:
    from pulse.dispatcher import FactDispatcher

logger = logging.getLogger(__name__)

HEARTBEAT_INTERVAL = 300


class HealthCheckServer:
    """HTTP health check server"""

    def __init__(
        self,
        bot: Any = None,
        dispatcher: "FactDispatcher | None" = None,
        host: str = "0.0.0.0",
        port: int = 8080,
    ) -> None:
        self.bot: Any = bot
        self.dispatcher = dispatcher
        self.host = host
        self.port = port
        self.app = web.Application()
        self.runner: web.AppRunner | None = None
        self._start_time: float = time.time()
        self._heartbeat_task: asyncio.Task | None = None
        self._setup_routes()

    def _setup_routes(self) -> None:
        """Configure HTTP routes"""
        self.app.router.add_get("/", self.handle_root)
        self.app.router.add_get("/health", self.handle_health)
        self.app.router.add_get("/status", self.handle_status)
        self.app.router.add_get("/ping", self.handle_ping)

    def _is_ready(self) -> bool:
        return self.bot is not None and self.bot.is_ready()

    async def handle_root(self, request: web.Request) -> web.Response:
        """Root endpoint - minimal service info"""
        return web.json_response({"service": "pulse-collector", "status": "running"})

    async def handle_health(self, request: web.Request) -> web.Response:
        """Liveness check, always 200"""
        ready = self._is_ready()
        return web.json_response(
            {"status": "healthy" if ready else "starting", "ready": ready},
        )

    async def handle_status(self, request: web.Request) -> web.Response:
        """Detailed status including delivery counters"""
        ready = self._is_ready()
        body: dict[str, Any] = {
            "service": "pulse-collector",
            "bot_id": str(self.bot.user.id) if ready and self.bot.user else None,
            "uptime_seconds": int(time.time() - self._start_time),
            "guilds": len(self.bot.guilds) if ready else 0,
        }
        if self.dispatcher is not None:
            body["open_voice_sessions"] = len(self.dispatcher.tracker.table)
            body["facts"] = self.dispatcher.stats.as_dict()
            sink = self.dispatcher.sink
            body["sink"] = {"name": sink.name, "healthy": await sink.check_health()}
        return web.json_response(body)

    async def handle_ping(self, request: web.Request) -> web.Response:
        """Ping endpoint"""
        return web.Response(text="pong")

    async def _heartbeat(self) -> None:
        """Periodic heartbeat: log uptime and delivery counters"""
        while True:
            await asyncio.sleep(HEARTBEAT_INTERVAL)
            uptime = int(time.time() - self._start_time)
            ready = self._is_ready()
            guilds = len(self.bot.guilds) if ready else 0
            if self.dispatcher is not None:
                stats = self.dispatcher.stats
                logger.info(
                    f"Heartbeat: uptime={uptime}s, ready={ready}, guilds={guilds}, "
                    f"delivered={stats.delivered}, failed={stats.failed}, "
                    f"open_voice_sessions={len(self.dispatcher.tracker.table)}"
                )
            else:
                logger.info(f"Heartbeat: uptime={uptime}s, ready={ready}, guilds={guilds}")

    async def start(self) -> None:
        """Start health check server"""
        try:
            self.runner = web.AppRunner(self.app)
            await self.runner.setup()
            site = web.TCPSite(self.runner, self.host, self.port)
            await site.start()

            self._heartbeat_task = asyncio.create_task(self._heartbeat())

            logger.info(f"Health server started on {self.host}:{self.port}")
        except Exception as e:
            logger.exception(f"Failed to start health server: {e}")
            raise

    async def stop(self) -> None:
        """Stop health check server"""
        if self._heartbeat_task:
            self._heartbeat_task.cancel()
        if self.runner:
            try:
                await self.runner.cleanup()
                logger.info("Health server stopped")
            except Exception as e:
                logger.exception(f"Error stopping health server: {e}")
