"""
Tests for the webhook endpoint.
"""
from unittest.mock import patch


def _update(update_id, text="/menu", user_id=7):
    return {
        "update_id": update_id,
        "message": {
            "message_id": 10,
            "date": 1700000000,
            "chat": {"id": 100, "type": "private"},
            "from": {"id": user_id, "is_bot": False, "first_name": "Alice"},
            "text": text,
        },
    }


class TestWebhook:
    def test_post_update_returns_ok(self, client, telegram):
        resp = client.post("/api/bot", json=_update(1))

        assert resp.status_code == 200
        assert resp.text == "OK"
        assert telegram.sent() == ["Choose a drink:"]

    def test_callback_update(self, client, telegram):
        payload = {
            "update_id": 2,
            "callback_query": {
                "id": "cb-1",
                "from": {"id": 7, "first_name": "Alice"},
                "message": {"message_id": 555, "chat": {"id": 100}, "text": "card"},
                "data": "D|2",
            },
        }
        resp = client.post("/api/bot", json=payload)

        assert resp.status_code == 200
        assert telegram.edits()[-1]["text"] == "Latte — $3.00\nWhich milk?"

    def test_redelivered_update_processed_once(self, client, telegram):
        client.post("/api/bot", json=_update(3))
        resp = client.post("/api/bot", json=_update(3))

        assert resp.status_code == 200
        assert len(telegram.sent()) == 1

    def test_malformed_body_still_ok(self, client, telegram):
        resp = client.post("/api/bot", content=b"not json", headers={"Content-Type": "application/json"})
        assert resp.status_code == 200
        assert resp.text == "OK"

        resp = client.post("/api/bot", json={"message": "missing update_id"})
        assert resp.status_code == 200
        assert telegram.calls == []

    def test_unknown_fields_ignored(self, client, telegram):
        payload = _update(4)
        payload["edited_message"] = {"anything": True}
        payload["message"]["entities"] = [{"type": "bot_command", "offset": 0, "length": 5}]

        assert client.post("/api/bot", json=payload).status_code == 200
        assert telegram.sent() == ["Choose a drink:"]

    def test_handler_error_notifies_admin(self, client, bot, telegram):
        with patch.object(bot, "process_update", side_effect=RuntimeError("boom")):
            resp = client.post("/api/bot", json=_update(5))

        assert resp.status_code == 200
        assert resp.text == "OK"
        assert telegram.sent(chat_id=999) == ["⚠ Bot error: boom"]

    def test_other_methods_rejected(self, client):
        for method in ("get", "put", "delete"):
            resp = getattr(client, method)("/api/bot")
            assert resp.status_code == 405
            assert resp.json() == {"ok": True}


class TestHealth:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}
