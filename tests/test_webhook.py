import pytest

from app.services.message_router import RouteOutcome
from app.services.payload_service import extract_messaging_events


def delivery(*messaging, object_type="instagram"):
    return {"object": object_type, "entry": [{"id": "p1", "time": 1, "messaging": list(messaging)}]}


def text_event(text="hi", sender="c1", recipient="p1", timestamp=1718000000000):
    return {
        "sender": {"id": sender},
        "recipient": {"id": recipient},
        "timestamp": timestamp,
        "message": {"mid": f"m-{sender}-{timestamp}", "text": text},
    }


class TestHandshake:

    def test_echoes_challenge_exactly(self, client):
        response = client.get("/webhook", params={
            "hub.mode": "subscribe", "hub.verify_token": "verify-me", "hub.challenge": "1158201444",
        })

        assert response.status_code == 200
        assert response.content == b"1158201444"

    def test_wrong_token(self, client):
        response = client.get("/webhook", params={
            "hub.mode": "subscribe", "hub.verify_token": "nope", "hub.challenge": "42",
        })

        assert response.status_code == 403
        assert response.content == b""

    def test_wrong_mode(self, client):
        response = client.get("/webhook", params={
            "hub.mode": "unsubscribe", "hub.verify_token": "verify-me", "hub.challenge": "42",
        })

        assert response.status_code == 403

    def test_missing_parameters(self, client):
        response = client.get("/webhook", params={"hub.mode": "subscribe"})

        assert response.status_code == 400

    def test_non_ascii_token_is_rejected(self, client):
        response = client.get("/webhook", params={
            "hub.mode": "subscribe", "hub.verify_token": "vérify-me", "hub.challenge": "42",
        })

        assert response.status_code == 403

    def test_non_ascii_configured_token(self, ingestor):
        ingestor.verify_token = "clé-secrète"

        assert ingestor.verify("subscribe", "clé-secrète", "7").status_code == 200
        assert ingestor.verify("subscribe", "cle-secrete", "7").status_code == 403

    def test_unconfigured_token_never_matches(self, ingestor):
        ingestor.verify_token = ""

        assert ingestor.verify("subscribe", "anything", "42").status_code == 403


class TestDelivery:

    def test_ack_and_conversation_created(self, client, make_tenant, conversations, responder):
        tenant = make_tenant()

        response = client.post("/webhook", json=delivery(text_event("hi")))

        assert response.status_code == 200
        assert response.text == "EVENT_RECEIVED"
        assert conversations.find(tenant.id, "instagram", "c1").last_message == "hi"
        assert [p.message_text for p in responder.payloads] == ["hi"]

    def test_page_object_maps_to_facebook(self, client, make_tenant, conversations):
        tenant = make_tenant()

        client.post("/webhook", json=delivery(text_event("hello"), object_type="page"))

        assert conversations.find(tenant.id, "facebook", "c1") is not None
        assert conversations.find(tenant.id, "instagram", "c1") is None

    def test_ack_survives_routing_errors(self, client, make_tenant, message_router, monkeypatch):
        make_tenant()

        def explode(event):
            raise RuntimeError("database is down")

        monkeypatch.setattr(message_router, "route", explode)

        response = client.post("/webhook", json=delivery(text_event()))

        assert response.status_code == 200
        assert response.text == "EVENT_RECEIVED"

    def test_unknown_page_still_acknowledged(self, client, db):
        response = client.post("/webhook", json=delivery(text_event(recipient="someone-else")))

        assert response.status_code == 200
        assert db.rows("conversations") == []

    def test_unsupported_object_is_acknowledged(self, client, db):
        response = client.post("/webhook", json=delivery(text_event(), object_type="whatsapp_business_account"))

        assert response.status_code == 200
        assert db.rows("conversations") == []

    def test_invalid_json(self, client):
        response = client.post(
            "/webhook", content=b"{not json", headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 400

    def test_non_object_body(self, client):
        response = client.post("/webhook", json=["not", "an", "object"])

        assert response.status_code == 400

    def test_echo_and_attachments_are_ignored(self, client, make_tenant, db, responder):
        make_tenant()
        echo = text_event("sent by the page")
        echo["message"]["is_echo"] = True
        image = text_event()
        image["message"] = {"mid": "m-img", "attachments": [{"type": "image", "payload": {"url": "x"}}]}
        read_receipt = {"sender": {"id": "c1"}, "recipient": {"id": "p1"}, "read": {"mid": "m-1"}}

        response = client.post("/webhook", json=delivery(echo, image, read_receipt))

        assert response.status_code == 200
        assert db.rows("conversations") == []
        assert responder.payloads == []


def test_extract_marks_ignore_reasons():
    echo = text_event()
    echo["message"]["is_echo"] = True
    blank = text_event("   ")

    events = extract_messaging_events(delivery(text_event(), echo, blank))

    assert [(e.should_ignore, e.ignore_reason) for e in events] == [
        (False, ""), (True, "echo"), (True, "empty text"),
    ]
    assert events[0].platform == "instagram"
    assert events[0].sent_at.year == 2024


@pytest.mark.asyncio
async def test_one_failing_event_does_not_block_others(ingestor, make_tenant, message_router, monkeypatch):
    make_tenant()
    original = message_router.route

    def flaky(event):
        if event.sender_id == "bad":
            raise RuntimeError("boom")
        return original(event)

    monkeypatch.setattr(message_router, "route", flaky)

    results = await ingestor.process(delivery(
        text_event("one", sender="c1"),
        text_event("two", sender="bad"),
        text_event("three", sender="c3"),
    ))

    assert isinstance(results[1], RuntimeError)
    assert [results[0].outcome, results[2].outcome] == [RouteOutcome.DISPATCHED, RouteOutcome.DISPATCHED]


@pytest.mark.asyncio
async def test_process_skips_ignored_events(ingestor, make_tenant):
    make_tenant()
    echo = text_event()
    echo["message"]["is_echo"] = True

    assert await ingestor.process(delivery(echo)) == []
    assert await ingestor.process({"object": "instagram", "entry": "garbage"}) == []
