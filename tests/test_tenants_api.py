import uuid
from datetime import datetime, timedelta, timezone

T0 = datetime(2026, 4, 2, 8, 0, tzinfo=timezone.utc)


def test_get_tenant(client, make_tenant):
    tenant = make_tenant()

    response = client.get(f"/tenants/{tenant.id}")

    assert response.status_code == 200
    body = response.json()
    assert body["id"] == tenant.id
    assert body["plan"] == "basic"
    assert body["business_name"] == "Shop p1"
    assert "page_access_token" not in body


def test_unknown_tenant(client):
    response = client.get(f"/tenants/{uuid.uuid4()}")

    assert response.status_code == 404
    assert response.json()["detail"] == {"error": "tenant_not_found", "message": "User not found"}


def test_platform_ai_toggle(client, make_tenant, tenants):
    tenant = make_tenant()

    response = client.patch(f"/tenants/{tenant.id}/platforms/instagram/toggle-ai", json={"isEnabled": False})

    assert response.status_code == 200
    assert response.json() == {"success": True, "isEnabled": False}
    assert client.get(f"/tenants/{tenant.id}/platforms/instagram/ai-status").json()["isEnabled"] is False
    assert client.get(f"/tenants/{tenant.id}/platforms/facebook/ai-status").json()["isEnabled"] is True
    assert tenants.get(tenant.id).ai_enabled_for("instagram") is False


def test_unknown_platform(client, make_tenant):
    tenant = make_tenant()

    response = client.get(f"/tenants/{tenant.id}/platforms/tiktok/ai-status")

    assert response.status_code == 400
    assert response.json()["detail"]["error"] == "unknown_platform"


def test_toggle_requires_flag(client, make_tenant):
    tenant = make_tenant()

    response = client.patch(f"/tenants/{tenant.id}/platforms/instagram/toggle-ai", json={})

    assert response.status_code == 422


def test_list_conversations_newest_first(client, make_tenant, conversations):
    tenant = make_tenant()
    conversations.create_if_absent(tenant.id, "instagram", "c-old", "Old", None, "a", T0)
    conversations.create_if_absent(tenant.id, "instagram", "c-new", "New", None, "b", T0 + timedelta(minutes=5))
    conversations.create_if_absent("other-tenant", "instagram", "c-x", "X", None, "c", T0)

    response = client.get(f"/tenants/{tenant.id}/conversations/instagram")

    assert response.status_code == 200
    assert [c["contact_id"] for c in response.json()] == ["c-new", "c-old"]


def test_conversation_ai_toggle(client, make_tenant, conversations):
    tenant = make_tenant()
    conversation = conversations.create_if_absent(tenant.id, "instagram", "c1", "Cust", None, "hi", T0)

    response = client.patch(
        f"/tenants/{tenant.id}/conversations/{conversation.id}/toggle-ai", json={"isEnabled": False},
    )

    assert response.status_code == 200
    assert response.json()["is_ai_enabled"] is False
    assert conversations.find(tenant.id, "instagram", "c1").is_ai_enabled is False


def test_conversation_toggle_of_other_tenant(client, make_tenant, conversations):
    tenant = make_tenant()
    other = make_tenant(email="other@x.com", page_id="p2")
    conversation = conversations.create_if_absent(other.id, "instagram", "c1", "Cust", None, "hi", T0)

    response = client.patch(
        f"/tenants/{tenant.id}/conversations/{conversation.id}/toggle-ai", json={"isEnabled": False},
    )

    assert response.status_code == 404
    assert response.json()["detail"]["error"] == "conversation_not_found"
    assert conversations.find(other.id, "instagram", "c1").is_ai_enabled is True


def test_resubscribe(client, make_tenant, graph):
    tenant = make_tenant()

    response = client.post(f"/tenants/{tenant.id}/resubscribe")

    assert response.status_code == 200
    assert response.json() == {"success": True, "pageId": "p1"}
    assert ("subscribe_page", "p1", "long-short1") in graph.calls


def test_resubscribe_failure(client, make_tenant, graph):
    tenant = make_tenant()
    graph.fail = {"subscribe_page"}

    response = client.post(f"/tenants/{tenant.id}/resubscribe")

    assert response.status_code == 502
    assert response.json()["detail"]["error"] == "webhook_registration_failed"
