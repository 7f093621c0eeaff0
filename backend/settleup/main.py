import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from settleup.api.balances import router as balances_router
from settleup.api.payments import router as payments_router
from settleup.api.settlements import router as settlements_router
from settleup.core.config import settings
from settleup.core.errors import SettlementError
from settleup.workers.reminders import send_overdue_reminders

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger("settleup")


async def reminder_loop():
    while True:
        try:
            await send_overdue_reminders()
        except Exception:
            logger.exception("Overdue reminder run failed")
        await asyncio.sleep(settings.reminder_interval_seconds)


@asynccontextmanager
async def lifespan(app):
    task = asyncio.create_task(reminder_loop())
    yield
    task.cancel()


app = FastAPI(title="SettleUp API", version="0.1.0", lifespan=lifespan)


class TimingMiddleware:
    """Lightweight ASGI middleware, no BaseHTTPMiddleware overhead."""
    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send):
        if scope["type"] != "http":
            return await self.app(scope, receive, send)

        t0 = time.perf_counter()
        status_code = 0

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message["status"]
            await send(message)

        await self.app(scope, receive, send_wrapper)
        ms = int((time.perf_counter() - t0) * 1000)
        logger.info(f"{scope.get('method', '?')} {scope.get('path', '?')} -> {status_code} in {ms}ms")


app.add_middleware(TimingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(SettlementError)
async def settlement_error_handler(request: Request, exc: SettlementError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message, "code": exc.code})


app.include_router(balances_router)
app.include_router(settlements_router)
app.include_router(payments_router)


@app.get("/api/health")
async def health():
    return {"status": "ok"}
