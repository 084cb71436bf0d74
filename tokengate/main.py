"""Token Gate FastAPI application."""
import asyncio
import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request

from tokengate.api import health, interactions, verify
from tokengate.config import (
    CHALLENGE_CLEANUP_INTERVAL_SECONDS,
    DISCORD_APPLICATION_ID,
    GUILD_ID,
    PORT,
    PUBLIC_BASE_URL,
    validate_config,
)
from tokengate.logging_config import configure_logging
from tokengate.platform.gateway import RoleGatewayError, close_role_gateway, get_role_gateway
from tokengate.platform.interactions import COMMANDS
from tokengate.verification.ledger import get_challenge_ledger
from tokengate.verification.scheduler import get_scheduler

configure_logging()
log = logging.getLogger("tokengate")


async def _challenge_cleanup_task():
    """Periodically sweep expired challenges."""
    while True:
        await asyncio.sleep(CHALLENGE_CLEANUP_INTERVAL_SECONDS)
        try:
            count = await get_challenge_ledger().cleanup_expired()
            if count > 0:
                log.debug(f"Challenge cleanup: removed {count} expired challenges")
        except Exception as e:
            log.error(f"Challenge cleanup error: {e}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler for startup/shutdown."""
    log.info("Starting Token Gate service...")

    issues = validate_config()
    if issues:
        for issue in issues:
            log.error(f"Configuration error: {issue}")
        raise RuntimeError("Invalid configuration")

    gateway = await get_role_gateway()

    if DISCORD_APPLICATION_ID:
        try:
            await gateway.register_commands(DISCORD_APPLICATION_ID, GUILD_ID, COMMANDS)
        except RoleGatewayError as e:
            log.error(f"Error registering commands: {e}")
    else:
        log.info("Slash command registration skipped (DISCORD_APPLICATION_ID not set)")

    scheduler = await get_scheduler()
    scheduler.start()
    app.state.scheduler = scheduler
    cleanup_task = asyncio.create_task(_challenge_cleanup_task())

    log.info(f"Token Gate service started, verification links under {PUBLIC_BASE_URL}")

    yield

    log.info("Shutting down Token Gate service...")
    cleanup_task.cancel()
    try:
        await cleanup_task
    except asyncio.CancelledError:
        pass
    await scheduler.stop()
    await get_challenge_ledger().close()
    await close_role_gateway()
    log.info("Token Gate service stopped")


app = FastAPI(
    title="Token Gate",
    version="0.1.0",
    description="Wallet-verified Discord role gating",
    lifespan=lifespan,
)


@app.middleware("http")
async def req_log(request: Request, call_next):
    start = time.time()
    route = request.url.path
    remote = request.client.host if request.client else "-"
    resp = await call_next(request)
    duration_ms = int((time.time() - start) * 1000)
    log.info(f"request_complete status={resp.status_code} duration_ms={duration_ms}",
             extra={"request_id": request.headers.get("X-Request-ID", "-"),
                    "route": route, "remote_addr": remote})
    return resp


app.include_router(health.router)
app.include_router(verify.router)
app.include_router(interactions.router)


def run() -> None:
    """Run the service."""
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=PORT)


if __name__ == "__main__":
    run()
