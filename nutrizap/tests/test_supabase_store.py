import json
from types import SimpleNamespace

import pytest
import requests

from nutrizap.services import leads


def make_response(status, body):
    text = json.dumps(body) if body is not None else ""
    return SimpleNamespace(status_code=status, text=text, json=lambda: json.loads(text))


def fake_requests(monkeypatch, responses):
    calls = []

    def fake_request(method, url, params=None, json=None, headers=None, timeout=None):
        calls.append(SimpleNamespace(method=method, url=url, params=params, json=json, headers=headers))
        return responses.pop(0)

    monkeypatch.setattr(leads.requests, "request", fake_request)
    return calls


def test_upsert_updates_existing_row(monkeypatch):
    calls = fake_requests(
        monkeypatch,
        [
            make_response(200, [{"id": "abc"}]),
            make_response(200, [{"id": "abc", "fingerprint": "fp", "lead_name": "Ana"}]),
        ],
    )
    store = leads.SupabaseLeadStore("https://x.supabase.co/", "key")
    lead = store.upsert_by_fingerprint("fp", {"lead_name": "Ana"})

    assert lead.id == "abc"
    assert [c.method for c in calls] == ["GET", "PATCH"]
    assert calls[1].params == {"id": "eq.abc"}
    assert calls[1].json == {"lead_name": "Ana", "fingerprint": "fp"}
    assert calls[0].url == "https://x.supabase.co/rest/v1/leads"
    assert calls[0].headers["Authorization"] == "Bearer key"


def test_upsert_inserts_new_row(monkeypatch):
    calls = fake_requests(
        monkeypatch,
        [make_response(200, []), make_response(201, [{"id": "new", "fingerprint": "fp"}])],
    )
    store = leads.SupabaseLeadStore("https://x.supabase.co", "key")
    assert store.upsert_by_fingerprint("fp", {}).id == "new"
    assert [c.method for c in calls] == ["GET", "POST"]


def test_get_by_fingerprint_missing(monkeypatch):
    fake_requests(monkeypatch, [make_response(200, [])])
    store = leads.SupabaseLeadStore("https://x.supabase.co", "key")
    assert store.get_by_fingerprint("fp") is None


def test_update_contact_filters_by_fingerprint(monkeypatch):
    calls = fake_requests(
        monkeypatch,
        [make_response(200, [{"id": "abc", "fingerprint": "fp", "email": "a@b.com"}])],
    )
    store = leads.SupabaseLeadStore("https://x.supabase.co", "key")
    lead = store.update_contact("fp", "a@b.com", "5511987654321")
    assert lead.email == "a@b.com"
    assert calls[0].params == {"fingerprint": "eq.fp"}


def test_http_error_raises(monkeypatch):
    fake_requests(monkeypatch, [make_response(401, {"message": "bad key"})])
    store = leads.SupabaseLeadStore("https://x.supabase.co", "key")
    with pytest.raises(leads.LeadStoreError):
        store.get_by_fingerprint("fp")


def test_network_error_raises(monkeypatch):
    def broken(*args, **kwargs):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(leads.requests, "request", broken)
    store = leads.SupabaseLeadStore("https://x.supabase.co", "key")
    with pytest.raises(leads.LeadStoreError):
        store.upsert_by_fingerprint("fp", {})


def test_requires_credentials():
    with pytest.raises(ValueError):
        leads.SupabaseLeadStore("", "key")


def test_invalid_json_raises(monkeypatch):
    body = "<html>gateway timeout</html>"
    fake_requests(
        monkeypatch,
        [SimpleNamespace(status_code=200, text=body, json=lambda: json.loads(body))],
    )
    store = leads.SupabaseLeadStore("https://x.supabase.co", "key")
    with pytest.raises(leads.LeadStoreError, match="invalid JSON"):
        store.get_by_fingerprint("fp")


def test_invalid_row_raises(monkeypatch):
    fake_requests(monkeypatch, [make_response(200, [{"id": "1", "age": "old"}])])
    store = leads.SupabaseLeadStore("https://x.supabase.co", "key")
    with pytest.raises(leads.LeadStoreError, match="invalid row"):
        store.get_by_fingerprint("fp")
