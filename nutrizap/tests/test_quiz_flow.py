import asyncio
from types import SimpleNamespace

from telegram import InlineKeyboardMarkup, ReplyKeyboardMarkup
from telegram.ext import ConversationHandler

import nutrizap.bot.handlers.quiz as handlers
from nutrizap.core import texts
from nutrizap.services.analytics import Tracker
from nutrizap.services.geolocation import Location
from nutrizap.services.leads import Lead, LeadStoreError
from nutrizap.services.webhook import WebhookError


def full_answers():
    return {
        "weightLossGoal": "Perder 11-20 kg definitivamente",
        "name": "Ana",
        "age": 35,
        "height": 165,
        "weight": 82.0,
        "targetWeight": 68.0,
        "gender": "Feminino",
        "activity": "Sedentário",
        "diet": "Regular",
        "previousAttempts": "3-5 vezes",
        "metabolism": "Metabolismo lento",
        "dietAttempts": "1-2 vezes",
        "dietResults": "Funcionou temporariamente",
        "yoyoEffect": "Sim, algumas vezes",
        "habits": "Preciso melhorar um pouco",
        "time": "30 minutos",
    }


class DummyStore:
    def __init__(self, fail=False):
        self.fail = fail
        self.upserts = []
        self.contacts = []

    def get_by_fingerprint(self, fingerprint):
        return None

    def upsert_by_fingerprint(self, fingerprint, data):
        if self.fail:
            raise LeadStoreError("down")
        self.upserts.append(data)
        return Lead(**{**data, "fingerprint": fingerprint, "id": "lead-1"})

    def update_contact(self, fingerprint, email, whatsapp):
        self.contacts.append((email, whatsapp))
        return None


class DummyChat:
    def __init__(self):
        self.messages = []
        self.markups = []

    async def reply_text(self, text, reply_markup=None):
        self.messages.append(text)
        self.markups.append(reply_markup)
        return SimpleNamespace()


def make_update(text=None, callback=False):
    chat = DummyChat()
    message = SimpleNamespace(text=text, reply_text=chat.reply_text)
    query = None
    if callback:
        async def answer():
            return None

        query = SimpleNamespace(answer=answer, data="quiz_continue", message=message)
    update = SimpleNamespace(
        message=message,
        effective_message=message,
        effective_user=SimpleNamespace(id=7),
        callback_query=query,
    )
    return update, chat


def make_context(store=None, cfg=None, **user_data):
    bot_data = {"config": cfg or {}, "lead_store": store or DummyStore(), "tracker": Tracker()}
    return SimpleNamespace(user_data=dict(user_data), bot_data=bot_data)


def test_start_quiz_asks_first_question():
    update, chat = make_update()
    context = make_context()
    state = asyncio.run(handlers.start_quiz(update, context))
    assert state == handlers.QUESTION
    assert chat.messages[0].startswith("1 de 16")
    assert isinstance(chat.markups[0], ReplyKeyboardMarkup)
    assert context.user_data["answers"] == {}
    assert len(context.user_data["fingerprint"]) == 64
    assert context.bot_data["tracker"].data_layer[0]["event"] == "quiz_start"


def test_invalid_answer_repeats_question():
    update, chat = make_update("abc")
    context = make_context(answers={"name": "Ana"}, step=2, fingerprint="fp")
    state = asyncio.run(handlers.receive_answer(update, context))
    assert state == handlers.QUESTION
    assert chat.messages == [texts.ERRORS["age"]]
    assert context.user_data["step"] == 2


def test_answer_is_saved_and_next_question_asked():
    store = DummyStore()
    update, chat = make_update("Ana")
    context = make_context(store, answers={"weightLossGoal": "Ainda não decidi"}, step=1, fingerprint="fp")
    state = asyncio.run(handlers.receive_answer(update, context))
    assert state == handlers.QUESTION
    assert context.user_data["step"] == 2
    assert store.upserts[-1] == {"fingerprint": "fp", "lead_name": "Ana", "weight_loss_goal": "Ainda não decidi"}
    assert chat.messages[0].startswith("3 de 16")
    assert "Ana, qual é a sua idade?" in chat.messages[0]


def test_weight_answer_shows_bmi_profile():
    answers = {k: v for k, v in full_answers().items() if k in ("weightLossGoal", "name", "age", "height")}
    update, chat = make_update("82")
    context = make_context(answers=answers, step=4, fingerprint="fp")
    state = asyncio.run(handlers.receive_answer(update, context))
    assert state == handlers.INTERLUDE
    assert "IMC: 30.1 (obesidade)" in chat.messages[0]
    assert "acima do seu peso ideal" in chat.messages[0]
    assert isinstance(chat.markups[-1], InlineKeyboardMarkup)


def test_store_failure_does_not_stop_quiz():
    update, chat = make_update("Ana")
    context = make_context(DummyStore(fail=True), answers={}, step=1, fingerprint="fp")
    state = asyncio.run(handlers.receive_answer(update, context))
    assert state == handlers.QUESTION
    assert context.user_data["answers"]["name"] == "Ana"


def test_last_answer_shows_personal_profile_then_diagnosis():
    answers = full_answers()
    del answers["time"]
    update, chat = make_update("30 minutos")
    context = make_context(answers=answers, step=15, fingerprint="fp")
    state = asyncio.run(handlers.receive_answer(update, context))
    assert state == handlers.INTERLUDE
    assert "Seu perfil pessoal, Ana" in chat.messages[0]
    report = context.user_data["report"]
    assert report.timeframe.days > 0

    update, chat = make_update(callback=True)
    state = asyncio.run(handlers.continue_quiz(update, context))
    assert state == handlers.EMAIL
    assert "Diagnóstico de Ana" in chat.messages[0]
    assert "🟢" in chat.messages[0]
    assert "🐌" in chat.messages[0]
    assert "e-mail" in chat.messages[1]


def test_invalid_email_is_rejected():
    update, chat = make_update("ana@")
    context = make_context(answers=full_answers(), fingerprint="fp")
    assert asyncio.run(handlers.receive_email(update, context)) == handlers.EMAIL
    assert chat.messages == [texts.ERRORS["email"]]


def test_contact_completes_funnel(monkeypatch):
    relayed = []
    emailed = []

    def fake_send_quiz(lead, url):
        relayed.append((lead.fingerprint, url))

    def fake_send_welcome_email(lead, **kwargs):
        emailed.append((lead.email, kwargs["api_key"]))
        return {"id": "em_1"}

    monkeypatch.setattr(handlers, "send_quiz", fake_send_quiz)
    monkeypatch.setattr(handlers, "send_welcome_email", fake_send_welcome_email)

    store = DummyStore()
    cfg = {"webhook_url": "https://hooks.example.com", "resend_api_key": "re_test"}
    context = make_context(store, cfg, answers=full_answers(), fingerprint="fp")

    update, chat = make_update("ana@example.com")
    assert asyncio.run(handlers.receive_email(update, context)) == handlers.WHATSAPP

    update, chat = make_update("11987654321")
    state = asyncio.run(handlers.receive_whatsapp(update, context))
    assert state == ConversationHandler.END
    assert store.contacts == [("ana@example.com", "5511987654321")]
    assert store.upserts[-1]["whatsapp"] == "5511987654321"
    assert relayed == [("fp", "https://hooks.example.com")]
    assert emailed == [("ana@example.com", "re_test")]
    assert "Perca 14.0 kg" in chat.messages[0]
    buttons = chat.markups[0].inline_keyboard
    assert [row[0].callback_data for row in buttons] == ["plan:monthly", "plan:annual"]
    events = [e["event"] for e in context.bot_data["tracker"].data_layer]
    assert events == ["lead_capture", "lead_capture", "quiz_complete"]


def test_webhook_failure_still_shows_offer(monkeypatch):
    def broken(lead, url):
        raise WebhookError("HTTP Error: 500")

    monkeypatch.setattr(handlers, "send_quiz", broken)
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    cfg = {"webhook_url": "https://hooks.example.com"}
    answers = {**full_answers(), "email": "ana@example.com"}
    context = make_context(cfg=cfg, answers=answers, fingerprint="fp")
    update, chat = make_update("(11) 98765-4321")
    assert asyncio.run(handlers.receive_whatsapp(update, context)) == ConversationHandler.END
    assert isinstance(chat.markups[0], InlineKeyboardMarkup)


def test_invalid_whatsapp_is_rejected():
    update, chat = make_update("123")
    context = make_context(answers=full_answers(), fingerprint="fp")
    assert asyncio.run(handlers.receive_whatsapp(update, context)) == handlers.WHATSAPP
    assert chat.messages == [texts.ERRORS["whatsapp"]]


def test_cancel():
    update, chat = make_update("/cancel")
    assert asyncio.run(handlers.cancel(update, make_context())) == ConversationHandler.END
    assert "/start" in chat.messages[0]


class DummyGeolocator:
    def __init__(self):
        self.calls = []

    def lookup(self, ip_address):
        self.calls.append(ip_address)
        return Location(city="Recife", timezone="America/Recife")


def test_deep_link_ip_is_geolocated_once():
    geo = DummyGeolocator()
    update, chat = make_update()
    context = make_context(ip_address="189.40.12.3")
    context.bot_data["geolocator"] = geo
    asyncio.run(handlers.start_quiz(update, context))
    assert context.user_data["ip_address"] == "189.40.12.3"

    for text in ("Perder 11-20 kg definitivamente", "Ana"):
        update, chat = make_update(text)
        assert asyncio.run(handlers.receive_answer(update, context)) == handlers.QUESTION

    store = context.bot_data["lead_store"]
    assert geo.calls == ["189.40.12.3"]
    assert context.user_data["city"] == "Recife"
    assert store.upserts[0]["city"] == "Recife"
    assert store.upserts[0]["ip_address"] == "189.40.12.3"
    assert "city" not in store.upserts[1]


def test_gauge_bar_marks_position():
    assert handlers.gauge_bar(0) == "🔘" + "▬" * 9
    assert handlers.gauge_bar(50) == "▬" * 5 + "🔘" + "▬" * 4
    assert handlers.gauge_bar(100) == "▬" * 9 + "🔘"


def test_interludes_show_gauge_and_milestones():
    answers = full_answers()
    profile = handlers.bmi_profile_text(answers)
    assert "0 " + "▬" * 7 + "🔘" + "▬" * 2 + " 40" in profile

    congratulations = handlers.congratulations_text(answers)
    assert "Etapas: 82.0 → 77 → 73 → 68.0 kg" in congratulations
