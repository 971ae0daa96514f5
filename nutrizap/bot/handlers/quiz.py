from __future__ import annotations

import asyncio
import logging
import math

from telegram import (
    InlineKeyboardButton,
    InlineKeyboardMarkup,
    ReplyKeyboardMarkup,
    ReplyKeyboardRemove,
    Update,
)
from telegram.ext import ContextTypes, ConversationHandler

from ...core import logic, texts
from ...core.config import email_sender, load_config, resend_api_key, webhook_url
from ...core.utils import format_whatsapp, is_valid_email, is_valid_whatsapp
from ...services import quiz
from ...services.analytics import Tracker
from ...services.email import EmailError, send_welcome_email
from ...services.fingerprint import telegram_fingerprint
from ...services.geolocation import DEFAULT_LOCATION, Geolocator
from ...services.leads import Lead, LeadStoreError, enrich_lead, get_lead_store
from ...services.payments import PRODUCTS
from ...services.webhook import WebhookError, send_quiz

logger = logging.getLogger(__name__)

# Conversation states of the quiz funnel
(QUESTION, INTERLUDE, EMAIL, WHATSAPP) = range(4)

CONTINUE_KEYBOARD = InlineKeyboardMarkup(
    [[InlineKeyboardButton("Continuar ➡️", callback_data="quiz_continue")]]
)

SLOW_METABOLISM = ("Metabolismo lento",)
SEDENTARY = ("Sedentário",)
NO_YOYO = ("Não",)

GAUGE_WIDTH = 10


def get_config(context: ContextTypes.DEFAULT_TYPE) -> dict:
    cfg = context.bot_data.get("config")
    if cfg is None:
        cfg = context.bot_data["config"] = load_config()
    return cfg


def get_store(context: ContextTypes.DEFAULT_TYPE):
    store = context.bot_data.get("lead_store")
    if store is None:
        store = context.bot_data["lead_store"] = get_lead_store(get_config(context))
    return store


def get_tracker(context: ContextTypes.DEFAULT_TYPE) -> Tracker:
    tracker = context.bot_data.get("tracker")
    if tracker is None:
        tracker = context.bot_data["tracker"] = Tracker(get_config(context).get("gtm_id", ""))
    return tracker


def get_geolocator(context: ContextTypes.DEFAULT_TYPE) -> Geolocator:
    geolocator = context.bot_data.get("geolocator")
    if geolocator is None:
        geolocator = context.bot_data["geolocator"] = Geolocator()
    return geolocator


def lead_payload(context: ContextTypes.DEFAULT_TYPE) -> dict:
    """Build the enriched lead payload for the current visitor.

    The IP from the deep link is geolocated only until a city is known.
    """
    payload = quiz.answers_to_lead_payload(
        context.user_data["answers"],
        fingerprint=context.user_data["fingerprint"],
        ip_address=context.user_data.get("ip_address"),
    )
    geolocator = None if context.user_data.get("city") else get_geolocator(context)
    return enrich_lead(payload, geolocator)


def question_keyboard(question_id: str):
    """Return a reply keyboard with the options of ``question_id``."""
    options = texts.get_question(question_id).get("options")
    if not options:
        return ReplyKeyboardRemove()
    rows = [[quiz.option_label(question_id, option)] for option in options]
    return ReplyKeyboardMarkup(rows, resize_keyboard=True, one_time_keyboard=True)


def question_text(step: int, answers: dict) -> str:
    question = texts.QUESTIONS[step]
    return texts.render(
        "question",
        step=step + 1,
        total=len(texts.QUESTIONS),
        emoji=texts.question_emoji(question["id"]),
        name=answers.get("name"),
        question=question["question"],
        description=question.get("description"),
    )


async def ask_question(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    step = context.user_data.get("step", 0)
    question_id = texts.QUESTION_IDS[step]
    await update.effective_message.reply_text(
        question_text(step, context.user_data["answers"]),
        reply_markup=question_keyboard(question_id),
    )
    return QUESTION


async def start_quiz(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Entry point of the quiz conversation."""
    if update.callback_query:
        await update.callback_query.answer()
    ip_address = context.user_data.get("ip_address")
    context.user_data.clear()
    if ip_address:
        context.user_data["ip_address"] = ip_address
    context.user_data["answers"] = {}
    context.user_data["step"] = 0
    context.user_data["fingerprint"] = telegram_fingerprint(update.effective_user.id)
    get_tracker(context).quiz_start()
    return await ask_question(update, context)


async def save_progress(context: ContextTypes.DEFAULT_TYPE) -> Lead | None:
    """Upsert the lead with every answer collected so far.

    Datastore failures are logged; the visitor can keep answering.
    """
    fingerprint = context.user_data["fingerprint"]
    try:
        payload = await asyncio.to_thread(lead_payload, context)
        return await asyncio.to_thread(
            get_store(context).upsert_by_fingerprint, fingerprint, payload
        )
    except LeadStoreError as exc:
        logger.exception("Process: save_progress | Lead upsert failed: %s", exc)
        return None


def gauge_bar(position: float, width: int = GAUGE_WIDTH) -> str:
    """Draw a text gauge with a marker at ``position`` percent."""
    index = min(int(position / 100 * width), width - 1)
    return "".join("🔘" if i == index else "▬" for i in range(width))


def bmi_profile_text(answers: dict) -> str:
    weight = answers["weight"]
    height = answers["height"]
    age = answers["age"]
    bmi = logic.evaluate_bmi(weight, height)
    goal = logic.weight_goal(weight, height)
    weeks = 0
    deadline = ""
    if goal.difference_kg > 0:
        timeframe = logic.compute_timeframe(goal.difference_kg, bmi.value)
        weeks = math.ceil(timeframe.days / 7)
        deadline = logic.target_date(timeframe.days).strftime("%d/%m/%Y")
    age_message = texts.render(
        "age_risk",
        name=answers.get("name", ""),
        age=age,
        bmi=bmi.value,
        risk=logic.age_risk_factor(age, bmi.value),
    )
    return texts.render(
        "bmi_profile",
        name=answers.get("name", ""),
        bmi=bmi.value,
        gauge=gauge_bar(logic.bmi_gauge_position(bmi.value)),
        category_label=texts.category_label(bmi.category.value),
        category_message=texts.category_message(bmi.category.value),
        ideal_weight=logic.format_kg(goal.ideal_weight_kg),
        is_gain=goal.is_gain,
        difference=goal.difference_kg,
        weeks=weeks,
        target_date=deadline,
        age_message=age_message,
    )


def congratulations_text(answers: dict) -> str:
    summary = logic.weight_loss_summary(
        answers["weight"], answers["targetWeight"], answers["height"]
    )
    milestones = logic.intermediate_weights(answers["weight"], answers["targetWeight"])
    return texts.render(
        "congratulations",
        name=answers.get("name", ""),
        summary=summary,
        milestones=milestones,
    )


def personal_profile_text(context: ContextTypes.DEFAULT_TYPE) -> str:
    answers = context.user_data["answers"]
    report = logic.build_report(quiz.profile_from_answers(answers))
    context.user_data["report"] = report
    return texts.render(
        "personal_profile",
        name=answers.get("name", ""),
        report=report,
        category_label=texts.category_label(report.bmi.category.value),
        ideal_weight=logic.format_kg(report.ideal_weight_kg),
        age=report.profile.age_years,
    )


def current_report(context: ContextTypes.DEFAULT_TYPE):
    """Return the report computed for the personal profile, building it if needed."""
    report = context.user_data.get("report")
    if report is None:
        report = logic.build_report(quiz.profile_from_answers(context.user_data["answers"]))
        context.user_data["report"] = report
    return report


def diagnosis_text(context: ContextTypes.DEFAULT_TYPE) -> str:
    answers = context.user_data["answers"]
    report = current_report(context)
    is_female = quiz.sex_from_answers(answers).value == "female"
    return texts.render(
        "diagnosis",
        name=answers.get("name", ""),
        target_weight=f"{report.profile.target_weight_kg:.1f}",
        report=report,
        markers=texts.CHART_MARKERS,
        slow_metabolism=answers.get("metabolism") in SLOW_METABOLISM,
        sedentary=answers.get("activity") in SEDENTARY,
        yoyo=answers.get("yoyoEffect") not in (None,) + NO_YOYO,
        similar_client="Ana" if is_female else "Carlos",
        city=context.user_data.get("city") or DEFAULT_LOCATION.city,
        weight_loss=round(abs(report.profile.weight_diff_kg)),
    )


INTERLUDE_RENDERERS = {
    "bmi_profile": lambda context: bmi_profile_text(context.user_data["answers"]),
    "congratulations": lambda context: congratulations_text(context.user_data["answers"]),
    "personal_profile": personal_profile_text,
}


async def receive_answer(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    step = context.user_data.get("step", 0)
    question_id = texts.QUESTION_IDS[step]
    try:
        value = quiz.validate_answer(question_id, update.message.text)
    except quiz.AnswerError as exc:
        await update.message.reply_text(str(exc), reply_markup=question_keyboard(question_id))
        return QUESTION
    context.user_data["answers"][question_id] = value
    get_tracker(context).quiz_answer(question_id, value)
    lead = await save_progress(context)
    if lead is not None and lead.city:
        context.user_data["city"] = lead.city
    context.user_data["step"] = step + 1

    interlude = quiz.INTERLUDES.get(question_id)
    if interlude:
        try:
            text = INTERLUDE_RENDERERS[interlude](context)
        except logic.InvalidInputError as exc:
            logger.exception("Process: %s | Calculation failed: %s", interlude, exc)
            await update.message.reply_text(texts.ERRORS["calculation"])
            return ConversationHandler.END
        await update.message.reply_text(text, reply_markup=ReplyKeyboardRemove())
        await update.message.reply_text("👇", reply_markup=CONTINUE_KEYBOARD)
        return INTERLUDE
    if step + 1 >= len(texts.QUESTIONS):
        return await show_diagnosis(update, context)
    return await ask_question(update, context)


async def continue_quiz(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    """Leave an interlude screen and move on."""
    await update.callback_query.answer()
    if context.user_data.get("step", 0) >= len(texts.QUESTIONS):
        return await show_diagnosis(update, context)
    return await ask_question(update, context)


async def show_diagnosis(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    try:
        text = diagnosis_text(context)
    except logic.InvalidInputError as exc:
        logger.exception("Process: diagnosis | Calculation failed: %s", exc)
        await update.effective_message.reply_text(texts.ERRORS["calculation"])
        return ConversationHandler.END
    answers = context.user_data["answers"]
    await update.effective_message.reply_text(text, reply_markup=ReplyKeyboardRemove())
    await update.effective_message.reply_text(
        texts.render("ask_email", name=answers.get("name", ""))
    )
    return EMAIL


async def receive_email(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    email = update.message.text.strip()
    if not is_valid_email(email):
        await update.message.reply_text(texts.ERRORS["email"])
        return EMAIL
    context.user_data["answers"]["email"] = email
    get_tracker(context).lead_capture("email")
    await update.message.reply_text(texts.render("ask_whatsapp"))
    return WHATSAPP


async def _store_contact(context: ContextTypes.DEFAULT_TYPE) -> Lead:
    """Attach email and WhatsApp to the lead, creating it if needed."""
    store = get_store(context)
    fingerprint = context.user_data["fingerprint"]
    answers = context.user_data["answers"]
    payload = quiz.answers_to_lead_payload(answers, fingerprint=fingerprint)
    lead = await asyncio.to_thread(
        store.update_contact, fingerprint, payload["email"], payload["whatsapp"]
    )
    if lead is None:
        payload = await asyncio.to_thread(lead_payload, context)
        lead = await asyncio.to_thread(store.upsert_by_fingerprint, fingerprint, payload)
    return lead


async def relay_lead(lead: Lead, cfg: dict) -> None:
    """Send the lead to the webhook and email the visitor.

    Both steps are optional; failures are logged and do not stop the funnel.
    """
    url = webhook_url(cfg)
    if url:
        try:
            await asyncio.to_thread(send_quiz, lead, url)
        except WebhookError as exc:
            logger.exception("Process: relay_lead | Webhook failed: %s", exc)
    api_key = resend_api_key(cfg)
    if api_key:
        sender, reply_to = email_sender(cfg)
        try:
            await asyncio.to_thread(
                send_welcome_email,
                lead,
                api_key=api_key,
                sender=sender,
                reply_to=reply_to,
            )
        except EmailError as exc:
            logger.exception("Process: relay_lead | Welcome email failed: %s", exc)


def plans_keyboard() -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup(
        [
            [InlineKeyboardButton(product.name, callback_data=f"plan:{plan}")]
            for plan, product in PRODUCTS.items()
        ]
    )


def sales_page_text(context: ContextTypes.DEFAULT_TYPE) -> str:
    answers = context.user_data["answers"]
    report = current_report(context)
    goal_kg = answers["weight"] - answers["targetWeight"]
    return texts.render(
        "sales_page",
        name=answers.get("name", ""),
        goal_kg=goal_kg,
        timeframe=report.timeframe.label,
        plans=list(PRODUCTS.values()),
    )


async def receive_whatsapp(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    whatsapp = format_whatsapp(update.message.text)
    if not is_valid_whatsapp(whatsapp):
        await update.message.reply_text(texts.ERRORS["whatsapp"])
        return WHATSAPP
    context.user_data["answers"]["whatsapp"] = whatsapp
    try:
        lead = await _store_contact(context)
    except LeadStoreError as exc:
        logger.exception("Process: contact | Lead update failed: %s", exc)
        await update.message.reply_text(texts.ERRORS["generic"])
        return WHATSAPP

    tracker = get_tracker(context)
    tracker.lead_capture("whatsapp")
    score = lead.score if lead.score is not None else quiz.calculate_score(lead.model_dump())
    tracker.quiz_complete(score)
    await relay_lead(lead, get_config(context))

    await update.message.reply_text(sales_page_text(context), reply_markup=plans_keyboard())
    return ConversationHandler.END


async def cancel(update: Update, context: ContextTypes.DEFAULT_TYPE) -> int:
    await update.effective_message.reply_text(
        "Quiz cancelado. Envie /start para recomeçar.", reply_markup=ReplyKeyboardRemove()
    )
    return ConversationHandler.END
