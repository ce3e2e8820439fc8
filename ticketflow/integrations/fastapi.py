"""FastAPI integration helpers for TicketFlow."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager

try:
    from fastapi import FastAPI, Request
except ImportError as exc:  # pragma: no cover - optional dependency
    raise ImportError(
        "FastAPI integration requires 'fastapi'. Install with `pip install ticketflow[fastapi]`."
    ) from exc

from ticketflow.bootstrap import Application
from ticketflow.server.scheduler import Scheduler


class TicketFlowFastAPIPlugin:
    """Runs a TicketFlow application's scheduler inside a host FastAPI app's lifespan."""

    def __init__(self, app: FastAPI, application: Application):
        self.app = app
        self.application = application

        app.state.ticketflow = application
        app.state.ticketflow_scheduler = application.scheduler
        self._wrap_lifespan()

    def _wrap_lifespan(self) -> None:
        inner = self.app.router.lifespan_context

        @asynccontextmanager
        async def lifespan(app):
            await self.startup()
            try:
                async with inner(app) as state:
                    yield state
            finally:
                await self.shutdown()

        self.app.router.lifespan_context = lifespan

    def get_scheduler(self) -> Scheduler:
        return self.application.scheduler

    def include_api(self, path: str = "/ticketflow", debug: bool = False) -> None:
        from ticketflow.api.app import create_app

        # The host app owns the lifecycle, so the mounted app must not start it again.
        api_app = create_app(
            self.application.scheduler,
            self.application.jira,
            self.application.settings,
            wiki=self.application.confluence,
            debug=debug,
        )
        self.app.mount(path, api_app)

    async def startup(self) -> None:
        self.application.lifecycle.start()

    async def shutdown(self) -> None:
        await asyncio.to_thread(self.application.lifecycle.stop)


def get_ticketflow_scheduler(request: Request) -> Scheduler:
    """FastAPI dependency: ``scheduler: Scheduler = Depends(get_ticketflow_scheduler)``."""
    return request.app.state.ticketflow_scheduler


def add_ticketflow_to_fastapi(app: FastAPI, application: Application) -> TicketFlowFastAPIPlugin:
    return TicketFlowFastAPIPlugin(app, application)
