"""Entry point for the NutriZap Telegram bot.

This module initialises the Telegram application, registers the quiz
conversation and the checkout buttons and starts polling.  Quiz screens
live in ``nutrizap.bot.handlers.quiz`` and plan checkout in
``nutrizap.bot.handlers.checkout``.

Set ``TELEGRAM_BOT_TOKEN`` or populate ``config.json`` before running.
Supabase, Stripe, Resend and the webhook are optional; missing
integrations are reported at startup.
"""

from __future__ import annotations

import logging
import warnings

from colorama import Fore, Style
from colorama import init as colorama_init
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import (
    Application,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
    ConversationHandler,
    MessageHandler,
    filters,
)

from telegram.warnings import PTBUserWarning

from .handlers import checkout, quiz
from ..core import texts
from ..core.config import load_config, telegram_bot_token
from ..services.analytics import Tracker
from ..services.connectivity import check_connectivity
from ..services.geolocation import Geolocator, ip_from_start_payload
from ..services.leads import get_lead_store

logger = logging.getLogger(__name__)

warnings.filterwarnings("ignore", category=PTBUserWarning)

START_KEYBOARD = InlineKeyboardMarkup(
    [[InlineKeyboardButton("🚀 Começar o quiz", callback_data="start_quiz")]]
)


async def start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Respond to /start with the welcome screen.

    A deep-link payload carrying the visitor IP is kept for geolocation.
    """
    ip_address = ip_from_start_payload(context.args[0] if context.args else None)
    if ip_address:
        context.user_data["ip_address"] = ip_address
    tracker = context.bot_data.get("tracker")
    if tracker is not None:
        tracker.pageview("/start")
    await update.message.reply_text(texts.render("welcome"), reply_markup=START_KEYBOARD)
    return ConversationHandler.END


async def handle_error(update: object, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Log unexpected errors and tell the visitor to try again."""
    logger.exception("Unhandled error: %s", context.error)
    if isinstance(update, Update) and update.effective_message:
        await update.effective_message.reply_text(texts.ERRORS["generic"])


def _status(ok: bool) -> str:
    if ok:
        return f"{Fore.GREEN}connected{Style.RESET_ALL}"
    return f"{Fore.RED}unavailable{Style.RESET_ALL}"


def build_application(token: str, cfg: dict) -> Application:
    application = Application.builder().token(token).build()
    application.bot_data["config"] = cfg
    application.bot_data["lead_store"] = get_lead_store(cfg)
    application.bot_data["tracker"] = Tracker(cfg.get("gtm_id", ""))
    application.bot_data["geolocator"] = Geolocator()

    quiz_conv = ConversationHandler(
        entry_points=[
            CommandHandler("quiz", quiz.start_quiz),
            CallbackQueryHandler(quiz.start_quiz, pattern="^start_quiz$"),
        ],
        states={
            quiz.QUESTION: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, quiz.receive_answer)
            ],
            quiz.INTERLUDE: [
                CallbackQueryHandler(quiz.continue_quiz, pattern="^quiz_continue$")
            ],
            quiz.EMAIL: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, quiz.receive_email)
            ],
            quiz.WHATSAPP: [
                MessageHandler(filters.TEXT & ~filters.COMMAND, quiz.receive_whatsapp)
            ],
        },
        fallbacks=[CommandHandler("cancel", quiz.cancel)],
        allow_reentry=True,
    )

    application.add_handler(quiz_conv)
    application.add_handler(CommandHandler("start", start))
    application.add_handler(CallbackQueryHandler(checkout.choose_plan, pattern="^plan:"))
    application.add_error_handler(handle_error)
    return application


def main() -> None:
    """Main entry point.  Instantiate the bot and run polling."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(name)s: %(message)s", level=logging.INFO
    )
    colorama_init()
    cfg = load_config()

    statuses = check_connectivity(cfg)
    logger.info("Supabase: %s", _status(statuses.get("supabase", False)))
    logger.info("Stripe: %s", _status(statuses.get("stripe", False)))
    logger.info("Resend: %s", _status(statuses.get("resend", False)))
    logger.info("Webhook: %s", _status(statuses.get("webhook", False)))

    token = telegram_bot_token(cfg)
    if not token:
        logger.warning("TELEGRAM_BOT_TOKEN is not set; bot will not start.")
        return
    application = build_application(token, cfg)
    application.run_polling()


if __name__ == "__main__":
    main()
