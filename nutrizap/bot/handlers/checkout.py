from __future__ import annotations

import asyncio
import logging

from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.ext import ContextTypes

from ...core import texts
from ...services.payments import PRODUCTS, PaymentError, StripeGateway
from .quiz import get_config, get_tracker

logger = logging.getLogger(__name__)


def _gateway(context: ContextTypes.DEFAULT_TYPE) -> StripeGateway:
    gateway = context.bot_data.get("payment_gateway")
    if gateway is None:
        gateway = context.bot_data["payment_gateway"] = StripeGateway.from_config(
            get_config(context)
        )
    return gateway


async def choose_plan(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Open a checkout session for the plan tapped on the sales page."""
    query = update.callback_query
    await query.answer()
    plan = query.data.split(":", 1)[1]
    if plan not in PRODUCTS:
        logger.warning("Process: checkout | Unknown plan %s", plan)
        await query.message.reply_text(texts.ERRORS["checkout"])
        return
    try:
        gateway = _gateway(context)
        session = await asyncio.to_thread(gateway.checkout_plan, plan, get_config(context))
    except PaymentError as exc:
        logger.exception("Process: checkout | Checkout failed: %s", exc)
        await query.message.reply_text(texts.ERRORS["checkout"])
        return
    if not session.url:
        logger.error("Process: checkout | Session %s has no URL", session.id)
        await query.message.reply_text(texts.ERRORS["checkout"])
        return
    get_tracker(context).conversion(f"checkout_{plan}")
    keyboard = InlineKeyboardMarkup(
        [[InlineKeyboardButton("💳 Finalizar assinatura", url=session.url)]]
    )
    await query.message.reply_text(texts.render("checkout_link"), reply_markup=keyboard)
