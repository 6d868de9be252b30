"""Read-only status endpoints over the relay context."""

from __future__ import annotations

from aiohttp import web

from whale_relay.accounting.stats import RelayContext
from whale_relay.logging.loggers import get_relay_logger
from whale_relay.logging.metrics import connection_snapshot, summarize_stats

CONTEXT_KEY = web.AppKey("relay_context", RelayContext)


async def status(request: web.Request) -> web.Response:
    context = request.app[CONTEXT_KEY]
    return web.json_response(
        {
            "status": "running",
            "connected": context.connection.connected,
            "connection": connection_snapshot(context),
            "stats": summarize_stats(context),
        }
    )


async def health(request: web.Request) -> web.Response:
    context = request.app[CONTEXT_KEY]
    connected = context.connection.connected
    return web.json_response(
        {"status": "healthy" if connected else "disconnected", "connected": connected}
    )


def create_health_app(context: RelayContext) -> web.Application:
    app = web.Application()
    app[CONTEXT_KEY] = context
    app.router.add_get("/", status)
    app.router.add_get("/health", health)
    return app


class HealthServer:
    """Runs the status app on the relay's event loop."""

    def __init__(self, context: RelayContext, host: str, port: int) -> None:
        self.app = create_health_app(context)
        self.host = host
        self.port = port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        self._runner = web.AppRunner(self.app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        get_relay_logger().info("status server listening host=%s port=%d", self.host, self.port)

    async def stop(self) -> None:
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
