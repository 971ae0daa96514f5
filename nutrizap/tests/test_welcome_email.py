import json
from types import SimpleNamespace

import pytest

from nutrizap.services import email
from nutrizap.services.leads import Lead


def sample_lead(**overrides):
    data = dict(
        fingerprint="fp",
        lead_name="Ana",
        email="ana@example.com",
        age=35,
        gender="Feminino",
        current_weight_kg=82.0,
        target_weight_kg=68.0,
        activity_level="Sedentário",
    )
    data.update(overrides)
    return Lead(**data)


def test_group_responses_skips_empty_sections():
    sections = email.group_responses(
        {"lead_name": "Ana", "age": 35, "gender": "", "activity_level": "Sedentário"}
    )
    assert sections == [
        ("Informações Pessoais", [("Nome", "Ana"), ("Idade", 35)]),
        ("Hábitos", [("Nível de atividade", "Sedentário")]),
    ]


def test_render_welcome_email():
    subject, html = email.render_welcome_email(sample_lead())
    assert subject == "Ana, seu plano personalizado está pronto! 🎯"
    assert "Olá, Ana!" in html
    assert "82.0kg" in html
    assert "Informações Pessoais" in html
    assert "Histórico" not in html
    assert "Este email foi enviado para ana@example.com" in html


def test_send_welcome_email(monkeypatch):
    captured = {}

    def fake_post(url, json=None, headers=None, timeout=None):
        captured.update(url=url, body=json, headers=headers)
        return SimpleNamespace(status_code=200, text='{"id": "em_1"}', json=lambda: {"id": "em_1"})

    monkeypatch.setattr(email.requests, "post", fake_post)
    result = email.send_welcome_email(
        sample_lead(), api_key="re_test", sender="NutriZap <oi@x.com>", reply_to="suporte@x.com"
    )
    assert result == {"id": "em_1"}
    assert captured["url"] == email.RESEND_URL
    assert captured["headers"]["Authorization"] == "Bearer re_test"
    assert captured["body"]["to"] == ["ana@example.com"]
    assert captured["body"]["reply_to"] == "suporte@x.com"


def test_send_welcome_email_failures(monkeypatch):
    with pytest.raises(email.EmailError):
        email.send_welcome_email(
            sample_lead(email=None), api_key="re_test", sender="a", reply_to="b"
        )
    with pytest.raises(email.EmailError):
        email.send_welcome_email(sample_lead(), api_key="", sender="a", reply_to="b")

    body = json.dumps({"message": "invalid from"})
    monkeypatch.setattr(
        email.requests,
        "post",
        lambda *a, **k: SimpleNamespace(status_code=422, text=body, json=lambda: json.loads(body)),
    )
    with pytest.raises(email.EmailError, match="422"):
        email.send_welcome_email(sample_lead(), api_key="re_test", sender="a", reply_to="b")
