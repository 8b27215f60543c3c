import json

from fastapi.testclient import TestClient

import rspamd_filter.rspamd_client as rspamd_client
import rspamd_filter.security as security
from rspamd_filter.main import api

client = TestClient(api)

PAYLOAD = {
    "connection": {
        "remote": {"ip": "209.85.208.48"},
        "hello": {"host": "mail-ed1-f48.google.com"},
        "transaction": {
            "mail_from": {"local_part": "sender", "domain": "example.net"},
            "rcpt_to": [{"local_part": "bob", "domain": "example.com"}],
        },
    },
    "raw_mime": "Subject: hi\r\n\r\nhello\r\n",
}


def test_health():
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"


def test_check_requires_api_key(monkeypatch):
    monkeypatch.setattr(security, "API_KEY", "secret")
    r = client.post("/check", json=PAYLOAD)
    assert r.status_code == 401
    r = client.post("/check", json=PAYLOAD, headers={"X-Api-Key": "wrong"})
    assert r.status_code == 401


def test_check_returns_decision_and_headers(monkeypatch):
    monkeypatch.setattr(security, "API_KEY", "secret")
    reply = {
        "score": 7.25,
        "action": "add header",
        "symbols": {"BAYES_SPAM": {"score": 5.1}},
        "milter": {"remove_headers": {"X-Spam-Status": 0}},
    }
    monkeypatch.setattr(rspamd_client, "stream_to_rspamd", lambda options, message: json.dumps(reply))

    r = client.post("/check", json=PAYLOAD, headers={"Authorization": "Bearer secret"})
    assert r.status_code == 200
    body = r.json()
    assert body["decision"] == "continue"
    assert body["checked"] is True
    assert body["score"] == 7.25
    assert body["isSpam"] is True
    assert ["x-rspamd-score", "7.25"] in body["headers"]
    assert ["x-rspamd-report", "BAYES_SPAM(5.1)"] in body["headers"]
    assert body["removeHeaders"] == ["x-spam-status"]


def test_check_without_verdict(monkeypatch):
    monkeypatch.setattr(security, "API_KEY", "secret")
    monkeypatch.setattr(rspamd_client, "stream_to_rspamd", lambda options, message: "")
    r = client.post("/check", json=PAYLOAD, headers={"X-Api-Key": "secret"})
    assert r.status_code == 200
    body = r.json()
    assert body["decision"] == "continue"
    assert body["score"] is None
    assert body["headers"] == []
    assert body["removeHeaders"] == []


def test_check_validates_payload(monkeypatch):
    monkeypatch.setattr(security, "API_KEY", "secret")
    r = client.post("/check", json={"connection": {}}, headers={"X-Api-Key": "secret"})
    assert r.status_code == 422
