"""
GetStocks Relay Telegram Bot - Main Entry Point.
Accepts stock-media links, asks GetStocks to prepare the download and replies
with a download button once the file is ready.
"""

import asyncio
import html
import time
from typing import Any, Coroutine, List, Optional, Set

from aiohttp import web
from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.error import TelegramError
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    MessageHandler,
    filters,
)

from config import Config, ConfigurationError, get_config
from models.schemas import (
    Channel,
    DownloadLog,
    DownloadResult,
    ItemSupport,
    JobOutcome,
    JobRequest,
    PollOutcome,
)
from server import WEBHOOK_PATH, create_web_app
from services.async_database import AsyncDatabaseService, DatabaseError
from services.getstocks import AsyncGetStocksClient
from services.pending_store import PendingSelectionStore
from services.poller import DownloadPoller
from services.translator import RequestTranslator, Submission, TranslationKind
from utils.logging_config import bind_context, clear_context, configure_logging, get_logger
from utils.validators import extract_url_from_text

logger = get_logger(__name__)

# Callback data prefix for type-selection buttons: "type:<key>:<index>"
TYPE_CALLBACK_PREFIX = "type:"

EXPIRED_SELECTION_MESSAGE = "⚠️ This request has expired. Please send the link again."


class GetStocksBot:
    """
    Chat channel: translates messages, runs download jobs and reports results.
    """

    def __init__(
        self,
        config: Config,
        client: Optional[AsyncGetStocksClient] = None,
        database: Optional[AsyncDatabaseService] = None,
    ):
        """Initialize the bot with explicit configuration."""
        self.config = config
        self.client = client or AsyncGetStocksClient(
            token=config.getstocks_token,
            base_url=config.getstocks_base_url,
            timeout=config.request_timeout,
        )
        self.translator = RequestTranslator(self.client, max_links=config.max_input_links)
        self.poller = DownloadPoller(
            self.client,
            interval=config.chat_poll_interval,
            timeout=config.poll_timeout,
        )
        self.pending = PendingSelectionStore(ttl_seconds=config.pending_ttl_seconds)
        self.db = database or AsyncDatabaseService(db_path=config.db_path)
        self._jobs: Set[asyncio.Task] = set()

    async def init(self) -> None:
        """Async initialization."""
        await self.db.init()
        logger.info("bot_initialized", db_path=self.config.db_path)

    # ── Commands ────────────────────────────────────────────────────────

    async def start_command(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /start command."""
        name = html.escape(update.effective_user.first_name if update.effective_user else "User")
        await update.effective_message.reply_text(
            f"👋 Hi <b>{name}</b>!\n\n"
            "Send me a stock-media link (Freepik, Shutterstock, Envato, ...) and "
            "I'll prepare the download for you.\n\n"
            f"You can send up to <b>{self.config.max_input_links}</b> links at once, one per line.",
            parse_mode=ParseMode.HTML,
        )
        logger.info("command_start", chat_id=update.effective_chat.id)

    async def help_command(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle /help command."""
        await update.effective_message.reply_text(
            "<b>How to use</b>\n\n"
            "1. Send one link to choose the file type\n"
            f"2. Or send up to {self.config.max_input_links} links, one per line, "
            "to download each with the default type\n"
            "3. Wait while the file is prepared "
            f"(up to {int(self.config.poll_timeout)} seconds)\n"
            "4. Press <b>Download</b> when the file is ready",
            parse_mode=ParseMode.HTML,
        )
        logger.info("command_help", chat_id=update.effective_chat.id)

    # ── Messages ────────────────────────────────────────────────────────

    async def process_message(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """
        Process an incoming text message containing one or more links.

        - One link: resolve it and offer the available types
        - Several links: download each with the default type
        """
        if not update.message or not update.message.text:
            return

        chat_id = update.effective_chat.id
        user_id = update.effective_user.id if update.effective_user else chat_id
        name = html.escape(update.effective_chat.first_name or "User")
        bind_context(chat_id=chat_id, user_id=user_id)

        try:
            translation = await self.translator.translate(update.message.text)
            kind = translation.kind
            logger.info("message_translated", kind=kind.value, link_count=len(translation.links))

            if kind is TranslationKind.TOO_MANY_LINKS:
                await update.message.reply_text(
                    f"Hi <b>{name}</b>, you only can put <b>{self.config.max_input_links}</b> links here.",
                    parse_mode=ParseMode.HTML,
                )

            elif kind is TranslationKind.NO_LINKS:
                hint = ""
                if extract_url_from_text(update.message.text):
                    hint = "\nPut each link on its own line, without any other text."
                await update.message.reply_text(
                    f"Hi <b>{name}</b>, please send me a valid link to download.{hint}",
                    parse_mode=ParseMode.HTML,
                )

            elif kind is TranslationKind.RESOLVE_FAILED:
                await update.message.reply_text(
                    "Sorry, unable to get info for this link: "
                    f"{html.escape(translation.message or 'Unknown error')}",
                    parse_mode=ParseMode.HTML,
                )

            elif kind is TranslationKind.CHOOSE_TYPE:
                await self._send_type_selection(update, translation.links[0], translation.support, name)

            else:
                self._schedule(
                    self._run_jobs(context.bot, chat_id, translation.requests, batch=kind is TranslationKind.BATCH)
                )

        except Exception as exc:
            logger.exception("message_processing_failed", error=str(exc))
            await update.message.reply_text("⚠️ Something went wrong. Please try again later.")
        finally:
            clear_context()

    async def _send_type_selection(
        self,
        update: Update,
        link: str,
        support: ItemSupport,
        name: str,
    ) -> None:
        """Remember the link and show one button per available type."""
        chat_id = update.effective_chat.id
        selection = self.pending.put(chat_id, link, support.is_premium, support.types)

        await update.message.reply_text(
            self._format_type_prompt(name, chat_id, support),
            parse_mode=ParseMode.HTML,
            reply_markup=self._build_type_keyboard(selection.key, support),
        )
        logger.info(
            "type_selection_sent",
            slug=support.slug,
            item_id=support.item_id,
            type_count=len(support.types),
        )

    def _build_type_keyboard(self, key: str, support: ItemSupport) -> InlineKeyboardMarkup:
        """One row per type; callback data stays well under Telegram's 64-byte limit."""
        keyboard = [
            [InlineKeyboardButton(label, callback_data=f"{TYPE_CALLBACK_PREFIX}{key}:{index}")]
            for index, (_, label) in enumerate(support.types)
        ]
        return InlineKeyboardMarkup(keyboard)

    # ── Callbacks ───────────────────────────────────────────────────────

    async def handle_callback_query(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE
    ) -> None:
        """Handle a type-selection button press."""
        query = update.callback_query
        chat_id = update.effective_chat.id
        user_id = update.effective_user.id if update.effective_user else chat_id
        bind_context(chat_id=chat_id, user_id=user_id)

        try:
            try:
                await query.answer()
            except TelegramError as exc:
                logger.warning("callback_answer_failed", error=str(exc))

            data = query.data or ""
            if not data.startswith(TYPE_CALLBACK_PREFIX):
                logger.debug("callback_ignored", data=data)
                return

            key, _, raw_index = data[len(TYPE_CALLBACK_PREFIX):].partition(":")
            selection = self.pending.pop(key, chat_id=chat_id)
            item_type = selection.type_at(int(raw_index)) if selection and raw_index.isdigit() else None

            if selection is None or item_type is None:
                logger.warning("type_selection_expired", key=key)
                await context.bot.send_message(chat_id=chat_id, text=EXPIRED_SELECTION_MESSAGE)
                return

            logger.info("type_selected", item_type=item_type)
            request = JobRequest(
                source_link=selection.link,
                is_premium=selection.is_premium,
                selected_type=item_type,
            )
            self._schedule(self._run_jobs(context.bot, chat_id, [request], batch=False))

            try:
                await query.edit_message_reply_markup(reply_markup=None)
            except TelegramError as exc:
                logger.warning("type_keyboard_not_removed", error=str(exc))

        except Exception as exc:
            logger.exception("callback_processing_failed", error=str(exc))
            await context.bot.send_message(chat_id=chat_id, text="⚠️ Something went wrong. Please try again later.")
        finally:
            clear_context()

    # ── Jobs ────────────────────────────────────────────────────────────

    def _schedule(self, coro: Coroutine[Any, Any, None]) -> asyncio.Task:
        """Run a download job in the background so the update handler returns."""
        task = asyncio.create_task(coro)
        self._jobs.add(task)
        task.add_done_callback(self._jobs.discard)
        return task

    async def _run_jobs(
        self,
        bot: Bot,
        chat_id: int,
        requests: List[JobRequest],
        batch: bool,
    ) -> None:
        """Run each request independently."""
        bind_context(chat_id=chat_id)
        await asyncio.gather(*(self._run_job(bot, chat_id, request, batch) for request in requests))

    async def _run_job(
        self,
        bot: Bot,
        chat_id: int,
        request: JobRequest,
        batch: bool,
    ) -> None:
        """Submit one job, poll it and send exactly one final message."""
        try:
            submission = await self.translator.submit(request)
            if not submission.ok:
                await self._send_html(bot, chat_id, self._format_submit_error(submission, batch))
                return

            handle = submission.handle
            await self._send_html(
                bot,
                chat_id,
                f"BOT is processing your download <b>{html.escape(handle.provider_slug)}</b> "
                f"with id: <b>{html.escape(handle.item_id)}</b>. Please wait...",
            )

            started = time.monotonic()
            outcome = await self.poller.wait_for_download(handle)
            elapsed_ms = int((time.monotonic() - started) * 1000)

            if outcome.kind is JobOutcome.READY:
                await self._send_html(
                    bot,
                    chat_id,
                    self._format_ready_message(outcome.result),
                    reply_markup=InlineKeyboardMarkup(
                        [[InlineKeyboardButton("Download", url=outcome.result.download_link)]]
                    ),
                )
            else:
                await self._send_html(bot, chat_id, self._format_failure_message(outcome))

            await self._record(request, chat_id, outcome, elapsed_ms)

        except Exception as exc:
            logger.exception("download_job_failed", link=request.source_link, error=str(exc))
            await bot.send_message(chat_id=chat_id, text="⚠️ Something went wrong. Please try again later.")

    async def _send_html(
        self,
        bot: Bot,
        chat_id: int,
        text: str,
        reply_markup: Optional[InlineKeyboardMarkup] = None,
    ) -> None:
        await bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode=ParseMode.HTML,
            reply_markup=reply_markup,
        )

    async def _record(
        self,
        request: JobRequest,
        chat_id: int,
        outcome: PollOutcome,
        elapsed_ms: int,
    ) -> None:
        """Save the job outcome; history failures never reach the user."""
        result = outcome.result
        log = DownloadLog(
            link=request.source_link,
            channel=Channel.TELEGRAM,
            outcome=outcome.kind,
            provider_slug=outcome.handle.provider_slug,
            item_id=outcome.handle.item_id,
            item_type=outcome.handle.item_type,
            filename=result.filename if result else None,
            size=result.size if result else None,
            chat_id=chat_id,
            error=outcome.message if outcome.kind is not JobOutcome.READY else None,
            processing_time_ms=elapsed_ms,
        )
        try:
            await self.db.save_log(log)
        except DatabaseError as exc:
            logger.error("database_save_failed", error=str(exc))

    # ── Formatting ──────────────────────────────────────────────────────

    def _format_type_prompt(self, name: str, chat_id: int, support: ItemSupport) -> str:
        return (
            f"Hi <b>{name}</b> (<code>{chat_id}</code>).\n\n"
            f"You requesting download for <b>{html.escape(support.slug)}</b> "
            f"with id: <b>{html.escape(support.item_id)}</b>\n"
            "Please choose type to continue..."
        )

    def _format_ready_message(self, result: DownloadResult) -> str:
        """Format the final message for a prepared file."""
        esc = html.escape
        return (
            "Your file is ready:\n\n"
            f"- Provider: <b>{esc(result.provider_slug)}</b>\n"
            f"- ID: <b>{esc(result.item_id)}</b>\n"
            f"- Filename: <b>{esc(result.filename)}</b>\n"
            f"- Size: <b>{esc(result.size)}</b>\n"
        )

    def _format_failure_message(self, outcome: PollOutcome) -> str:
        """Format the final message for a failed or timed-out job."""
        reason = "Timeout" if outcome.kind is JobOutcome.TIMED_OUT else (outcome.message or "Unknown error")
        return (
            f"Sorry, link with provider <b>{html.escape(outcome.handle.provider_slug)}</b> "
            f"with id <b>{html.escape(outcome.handle.item_id)}</b> can't download now! "
            f"({html.escape(reason)})"
        )

    def _format_submit_error(self, submission: Submission, batch: bool) -> str:
        message = html.escape(submission.message or "Unknown error")
        if batch:
            return f"Sorry, unable to process link: {html.escape(submission.request.source_link)} - {message}"
        return f"Error processing download: {message}"

    # ── Lifecycle ───────────────────────────────────────────────────────

    async def cleanup(self) -> None:
        """Cancel outstanding jobs and release resources."""
        for task in list(self._jobs):
            task.cancel()
        if self._jobs:
            await asyncio.gather(*self._jobs, return_exceptions=True)
        await self.client.close()
        logger.info("bot_cleanup_completed", dropped_selections=self.pending.clear())

    def build_application(self) -> Application:
        """Build the Telegram application and register handlers."""
        builder = Application.builder().token(self.config.telegram_token)
        if self.config.telegram_mode == "webhook":
            builder = builder.updater(None)
        application = builder.build()

        application.add_handler(CommandHandler("start", self.start_command))
        application.add_handler(CommandHandler("help", self.help_command))
        application.add_handler(
            CallbackQueryHandler(self.handle_callback_query, pattern=f"^{TYPE_CALLBACK_PREFIX}")
        )
        application.add_handler(
            MessageHandler(
                filters.TEXT & ~filters.COMMAND,
                self.process_message
            )
        )
        return application

    async def serve(self) -> None:
        """
        Run the bot (polling or webhook) and the web form server until cancelled.
        """
        logger.info("bot_starting", telegram_mode=self.config.telegram_mode, web_enabled=self.config.web_enabled)
        await self.init()

        application = self.build_application()
        webhook_mode = self.config.telegram_mode == "webhook"
        runner: Optional[web.AppRunner] = None

        async with application:
            await application.start()
            try:
                if webhook_mode:
                    webhook_url = self.config.webhook_url.rstrip("/") + WEBHOOK_PATH
                    await application.bot.set_webhook(
                        url=webhook_url,
                        secret_token=self.config.webhook_secret,
                        allowed_updates=Update.ALL_TYPES,
                    )
                    logger.info("webhook_registered", path=WEBHOOK_PATH)
                else:
                    await application.updater.start_polling(allowed_updates=Update.ALL_TYPES)
                    logger.info("bot_polling_started")

                if self.config.web_enabled:
                    web_app = create_web_app(
                        self.config,
                        self.client,
                        database=self.db,
                        telegram_application=application if webhook_mode else None,
                    )
                    runner = web.AppRunner(web_app)
                    await runner.setup()
                    site = web.TCPSite(runner, self.config.web_host, self.config.web_port)
                    await site.start()
                    logger.info("web_server_started", host=self.config.web_host, port=self.config.web_port)

                await asyncio.Event().wait()

            except asyncio.CancelledError:
                logger.info("bot_shutting_down")
            finally:
                if runner is not None:
                    await runner.cleanup()
                if application.updater is not None and application.updater.running:
                    await application.updater.stop()
                await application.stop()
                await self.cleanup()


def main():
    """Main entry point."""
    try:
        config = get_config()
    except ConfigurationError as e:
        configure_logging()
        logger.error("configuration_error", error=str(e))
        print(f"\n❌ Configuration Error: {e}")
        print("Please check your .env file and ensure all required variables are set.")
        return

    configure_logging(log_level=config.log_level, json_format=config.log_json)
    bot = GetStocksBot(config)
    try:
        asyncio.run(bot.serve())
    except KeyboardInterrupt:
        logger.info("bot_stopped_by_user")
    except Exception as e:
        logger.exception("fatal_error", error=str(e))
        raise


if __name__ == "__main__":
    main()
