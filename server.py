"""
Web channel for GetStocks Relay.

Serves the download form page and the JSON endpoint its script calls, a
health check, and (in webhook mode) the Telegram webhook.

Endpoints:
    GET  /                  : Download form page
    POST /                  : Form actions (getInfo, getLink, checkDownloadStatus)
    GET  /health            : Health check
    POST /telegram/webhook  : Telegram updates (webhook mode only)
"""

import hmac
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

from aiohttp import web
from telegram import Update
from telegram.ext import Application

from config import Config
from models.schemas import (
    Channel,
    DownloadLog,
    JobHandle,
    JobOutcome,
    error_response,
    is_success,
)
from services.async_database import AsyncDatabaseService, DatabaseError
from services.getstocks import STATUS_READY, AsyncGetStocksClient
from utils.logging_config import get_logger
from utils.validators import is_web_url

logger = get_logger(__name__)

WEBHOOK_PATH = "/telegram/webhook"
SECRET_TOKEN_HEADER = "X-Telegram-Bot-Api-Secret-Token"
TEMPLATE_PATH = Path(__file__).parent / "templates" / "index.html"

CONFIG_KEY = web.AppKey("config", Config)
CLIENT_KEY = web.AppKey("client", AsyncGetStocksClient)
DATABASE_KEY = web.AppKey("database", object)
TELEGRAM_KEY = web.AppKey("telegram_application", object)
PAGE_KEY = web.AppKey("index_page", str)


def render_index(config: Config) -> str:
    """Render the form page with the configured polling schedule."""
    template = TEMPLATE_PATH.read_text(encoding="utf-8")
    return (
        template
        .replace("__POLL_INTERVAL_MS__", str(int(config.web_poll_interval * 1000)))
        .replace("__POLL_TIMEOUT_MS__", str(int(config.poll_timeout * 1000)))
    )


def _premium_flag(raw: Optional[str]) -> bool:
    """Form `ispre`; absent or blank means the premium default."""
    if raw is None or not raw.strip():
        return True
    return raw.strip().lower() not in ("0", "false", "no")


def _bad_request(message: str) -> web.Response:
    return web.json_response(error_response(message), status=400)


def _missing_fields(form, *names: str) -> Optional[str]:
    missing = [name for name in names if not (form.get(name) or "").strip()]
    if missing:
        return f"Missing required fields: {', '.join(missing)}"
    return None


# ── Form actions ────────────────────────────────────────────────────────

async def action_get_info(request: web.Request, form) -> web.Response:
    """Resolve download metadata for a link."""
    problem = _missing_fields(form, "link")
    if problem:
        return _bad_request(problem)
    link = form["link"].strip()
    if not is_web_url(link):
        return _bad_request("Invalid link")

    client = request.app[CLIENT_KEY]
    return web.json_response(await client.get_info(link))


async def action_get_link(request: web.Request, form) -> web.Response:
    """Submit a download job."""
    problem = _missing_fields(form, "link")
    if problem:
        return _bad_request(problem)

    client = request.app[CLIENT_KEY]
    response = await client.get_link(
        form["link"].strip(),
        is_premium=_premium_flag(form.get("ispre")),
        item_type=(form.get("type") or "").strip() or None,
    )
    return web.json_response(response)


async def action_check_status(request: web.Request, form) -> web.Response:
    """Query a job's status; terminal states are recorded in the history."""
    problem = _missing_fields(form, "slug", "id")
    if problem:
        return _bad_request(problem)

    handle = JobHandle(
        provider_slug=form["slug"].strip(),
        item_id=form["id"].strip(),
        is_premium=_premium_flag(form.get("ispre")),
        item_type=(form.get("type") or "").strip(),
    )
    client = request.app[CLIENT_KEY]
    response = await client.check_download_status(handle)

    if not is_success(response):
        await _record(request, form, handle, JobOutcome.FAILED, response.get("message"), None)
    elif response["result"].get("status") == STATUS_READY:
        await _record(request, form, handle, JobOutcome.READY, None, response["result"])

    return web.json_response(response)


ACTIONS: Dict[str, Callable[[web.Request, Any], Awaitable[web.Response]]] = {
    "getInfo": action_get_info,
    "getLink": action_get_link,
    "checkDownloadStatus": action_check_status,
}


async def _record(
    request: web.Request,
    form,
    handle: JobHandle,
    outcome: JobOutcome,
    error: Optional[str],
    result: Optional[Dict[str, Any]],
) -> None:
    database: Optional[AsyncDatabaseService] = request.app.get(DATABASE_KEY)
    if database is None:
        return

    result = result or {}
    log = DownloadLog(
        link=(form.get("link") or "").strip() or f"{handle.provider_slug}:{handle.item_id}",
        channel=Channel.WEB,
        outcome=outcome,
        provider_slug=handle.provider_slug,
        item_id=handle.item_id,
        item_type=handle.item_type or None,
        filename=str(result["itemFilename"]) if result.get("itemFilename") else None,
        size=str(result["itemSize"]) if result.get("itemSize") else None,
        error=error,
    )
    try:
        await database.save_log(log)
    except DatabaseError as exc:
        logger.error("database_save_failed", error=str(exc))


# ── Handlers ────────────────────────────────────────────────────────────

async def handle_index(request: web.Request) -> web.Response:
    """Serve the download form."""
    return web.Response(text=request.app[PAGE_KEY], content_type="text/html")


async def handle_action(request: web.Request) -> web.Response:
    """Dispatch a form POST by its `action` field."""
    form = await request.post()
    action = form.get("action")
    handler = ACTIONS.get(action)
    if handler is None:
        logger.info("web_unknown_action", action=action)
        return _bad_request("Unknown action")

    logger.info("web_action", action=action)
    try:
        return await handler(request, form)
    except Exception as exc:
        logger.exception("web_action_failed", action=action, error=str(exc))
        return web.json_response(error_response("Internal error"), status=500)


async def handle_health(request: web.Request) -> web.Response:
    """Health check endpoint."""
    config = request.app[CONFIG_KEY]
    return web.json_response({
        "status": "healthy",
        "service": "getstocks-relay",
        "telegram_mode": config.telegram_mode,
        "webhook": request.app.get(TELEGRAM_KEY) is not None,
    })


async def handle_telegram_webhook(request: web.Request) -> web.Response:
    """Queue a Telegram update for the bot application."""
    config = request.app[CONFIG_KEY]
    if config.webhook_secret:
        supplied = request.headers.get(SECRET_TOKEN_HEADER, "")
        if not hmac.compare_digest(supplied, config.webhook_secret):
            logger.warning("webhook_secret_mismatch")
            return web.Response(status=403)

    try:
        payload = await request.json()
    except ValueError:
        return web.Response(status=400)

    application: Application = request.app[TELEGRAM_KEY]
    update = Update.de_json(payload, application.bot)
    await application.update_queue.put(update)
    return web.Response(status=200)


def create_web_app(
    config: Config,
    client: AsyncGetStocksClient,
    database: Optional[AsyncDatabaseService] = None,
    telegram_application: Optional[Application] = None,
) -> web.Application:
    """
    Build the aiohttp application.

    Args:
        config: Application configuration
        client: Provider client shared with the chat channel
        database: Optional download history
        telegram_application: Bot application to feed webhook updates into
    """
    app = web.Application()
    app[CONFIG_KEY] = config
    app[CLIENT_KEY] = client
    app[PAGE_KEY] = render_index(config)
    if database is not None:
        app[DATABASE_KEY] = database

    app.router.add_get("/", handle_index)
    app.router.add_post("/", handle_action)
    app.router.add_get("/health", handle_health)

    if telegram_application is not None:
        app[TELEGRAM_KEY] = telegram_application
        app.router.add_post(WEBHOOK_PATH, handle_telegram_webhook)

    return app
