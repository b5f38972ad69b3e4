"""Application entrypoint for FastAPI and bot startup."""

import asyncio
import sys
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncGenerator

import uvicorn
from aiogram import Dispatcher
from aiogram.types import Update
from fastapi import Depends, FastAPI, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from cardbot.bot.instance import create_bot
from cardbot.bot.router import setup_routers
from cardbot.config import config
from cardbot.jobs import setup_sweep_jobs, shutdown_scheduler, start_scheduler
from cardbot.logging import get_logger, setup_logging
from cardbot.services import build_services
from cardbot.storage.db import close_engine, create_tables

setup_logging(config.log_level)
logger = get_logger(__name__)

bot = create_bot(config)
services = build_services()

dp = Dispatcher()

rate_limit_middleware = setup_routers(dp, services)


async def verify_admin_token(
    authorization: str | None = Header(None, alias="Authorization"),
) -> None:
    """Verify admin token for protected endpoints.

    Raises:
        HTTPException: If token is invalid or missing
    """
    if not config.admin_token:
        raise HTTPException(
            status_code=503,
            detail="Admin endpoints not configured (ADMIN_TOKEN not set)",
        )

    if not authorization:
        raise HTTPException(status_code=401, detail="Authorization header required")

    # Support "Bearer <token>" or just "<token>"
    token = authorization
    if authorization.startswith("Bearer "):
        token = authorization[7:]

    if token != config.admin_token:
        raise HTTPException(status_code=403, detail="Invalid admin token")


async def _startup() -> None:
    await create_tables()
    logger.info("Database tables ensured")

    start_scheduler()
    setup_sweep_jobs(services, config, rate_limit_middleware)


async def _shutdown() -> None:
    shutdown_scheduler()
    await bot.session.close()
    await close_engine()
    logger.info("Bot session and database engine closed")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting application")
    await _startup()

    if config.bot_mode == "webhook":
        webhook_full_url = f"{config.webhook_url}{config.webhook_path}"
        logger.info(f"Setting webhook to {webhook_full_url}")
        await bot.set_webhook(url=webhook_full_url, drop_pending_updates=True)
        logger.info("Webhook registered successfully")

    yield

    logger.info("Shutting down application")
    if config.bot_mode == "webhook":
        await bot.delete_webhook()
        logger.info("Webhook deleted")
    await _shutdown()


app = FastAPI(
    title="Business Card Bot",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"ok": True}


@app.post(config.webhook_path)
async def telegram_webhook(request: Request) -> JSONResponse:
    """Handle incoming Telegram webhook updates."""
    if config.bot_mode != "webhook":
        return JSONResponse(
            status_code=400,
            content={"error": "Webhook mode is not enabled"},
        )

    try:
        data = await request.json()
        update = Update.model_validate(data, context={"bot": bot})
        await dp.feed_update(bot=bot, update=update)
        return JSONResponse(content={"ok": True})
    except Exception as e:
        logger.exception(f"Error processing webhook update: {e}")
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
        )


@app.get("/admin/stats")
async def get_stats(
    _: None = Depends(verify_admin_token),
) -> dict:
    """Get application statistics.

    Requires admin token in Authorization header.
    """
    from cardbot.storage.repo_feedback import FeedbackRepo

    async with services.session_factory() as session:
        total_users = await services.directory(session).count_users()
        total_connections = await services.connections(session).count_connections()
        total_feedback = await FeedbackRepo(session).count_feedback()

    return {
        "users": {"total": total_users},
        "connections": {"accepted": total_connections},
        "feedback": {"total": total_feedback},
        "conversations": {"active": len(services.conversations)},
        "searches": {"active": len(services.search_sessions)},
        "rate_limiter": {"tracked_users": len(services.rate_limiter)},
        "caches": {cache.name: cache.get_stats().to_dict() for cache in services.caches()},
    }


class FeedbackItem(BaseModel):
    """One stored feedback message."""

    id: int
    user_id: int
    username: str | None
    text: str
    created_at: datetime


@app.get("/admin/feedback")
async def get_recent_feedback(
    limit: int = 20,
    _: None = Depends(verify_admin_token),
) -> dict:
    """Return the most recent feedback messages."""
    from cardbot.storage.repo_feedback import FeedbackRepo

    limit = max(1, min(limit, 100))
    async with services.session_factory() as session:
        rows = await FeedbackRepo(session).get_recent(limit)

    items = [
        FeedbackItem(
            id=row.id,
            user_id=row.user_id,
            username=row.username,
            text=row.text,
            created_at=row.created_at,
        ).model_dump(mode="json")
        for row in rows
    ]
    return {"ok": True, "feedback": items}


async def run_polling() -> None:
    """Run the bot in polling mode."""
    logger.info("Starting bot in polling mode")
    await _startup()

    try:
        await dp.start_polling(
            bot,
            drop_pending_updates=True,
            allowed_updates=["message", "callback_query"],
        )
    finally:
        await _shutdown()
        logger.info("Polling stopped")


def main() -> None:
    """Main entrypoint supporting both polling and webhook modes."""
    if len(sys.argv) > 1 and sys.argv[1] == "polling":
        asyncio.run(run_polling())
    elif config.bot_mode == "polling" and len(sys.argv) == 1:
        asyncio.run(run_polling())
    else:
        logger.info(f"Starting FastAPI server on {config.host}:{config.port}")
        uvicorn.run(
            "cardbot.main:app",
            host=config.host,
            port=config.port,
            reload=False,
        )


if __name__ == "__main__":
    main()
