"""HTTP surface over httpx ASGITransport; identity facts and engine are faked."""

from __future__ import annotations

import pytest

from conftest import (
    ADMIN_ID,
    BOUGHT_COURSE,
    BUYER_ID,
    NOBODY_ID,
    SUBSCRIBER_ID,
    TEST_ADMIN_KEY,
    bearer,
)


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert "X-Request-ID" in resp.headers


@pytest.mark.asyncio
async def test_ask_requires_token(client):
    resp = await client.post("/ai-sifu/ask", json={"question": "What is Qi?"})
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_ask_rejects_bad_token(client):
    resp = await client.post(
        "/ai-sifu/ask",
        json={"question": "What is Qi?"},
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_ask_then_cached(client):
    headers = bearer(SUBSCRIBER_ID)
    first = await client.post("/ai-sifu/ask", json={"question": "What is Qi?"}, headers=headers)
    assert first.status_code == 200
    body = first.json()
    assert body["cached"] is False
    assert body["response_text"] == "Sifu says: What is Qi?"
    assert body["terms_used"] == ["Qi"]
    assert set(body) >= {"sections_referenced", "classical_references", "response_time_ms", "cost_cents"}

    second = await client.post(
        "/ai-sifu/ask", json={"question_text": "what is QI"}, headers=headers,
    )
    assert second.status_code == 200
    assert second.json()["cached"] is True
    assert second.json()["cost_cents"] == 0


@pytest.mark.asyncio
async def test_ask_validates_question_length(client):
    resp = await client.post("/ai-sifu/ask", json={"question": "Qi?"}, headers=bearer(SUBSCRIBER_ID))
    assert resp.status_code == 422
    resp = await client.post(
        "/ai-sifu/ask", json={"question": "x" * 501}, headers=bearer(SUBSCRIBER_ID),
    )
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_ask_denied_body(client):
    resp = await client.post(
        "/ai-sifu/ask",
        json={"question": "What is Qi?", "course_id": BOUGHT_COURSE},
        headers=bearer(NOBODY_ID),
    )
    assert resp.status_code == 403
    body = resp.json()
    assert body["error"] == "Access denied"
    assert body["reason"] == "no_access"
    assert body["message"]


@pytest.mark.asyncio
async def test_ask_unknown_user(client):
    resp = await client.post("/ai-sifu/ask", json={"question": "What is Qi?"}, headers=bearer(999))
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_ask_generation_failure(client, fake_engine):
    fake_engine.fail = True
    resp = await client.post("/ai-sifu/ask", json={"question": "What is Qi?"}, headers=bearer(SUBSCRIBER_ID))
    assert resp.status_code == 500
    assert resp.json()["detail"]["code"] == "generation_failed"


@pytest.mark.asyncio
async def test_ask_without_engine_is_unavailable(client):
    from sifu.main import app

    app.state.answer_engine = None
    resp = await client.post("/ai-sifu/ask", json={"question": "What is Qi?"}, headers=bearer(SUBSCRIBER_ID))
    assert resp.status_code == 503


@pytest.mark.asyncio
async def test_usage_for_course_buyer(client):
    headers = bearer(BUYER_ID)
    await client.post(
        "/ai-sifu/ask",
        json={"question": "How do I hold the pole?", "course_id": BOUGHT_COURSE},
        headers=headers,
    )
    resp = await client.get("/ai-sifu/usage", headers=headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["is_admin"] is False
    assert body["subscription"] == {"used": 0, "limit": 100, "remaining": 100, "active": False}
    assert body["courses"] == [
        {"course_id": BOUGHT_COURSE, "used": 1, "limit": 10, "remaining": 9},
    ]
    assert body["total_cost_cents"] >= 1


@pytest.mark.asyncio
async def test_usage_before_first_question(client):
    resp = await client.get("/ai-sifu/usage", headers=bearer(SUBSCRIBER_ID))
    body = resp.json()
    assert body["subscription"]["active"] is True
    assert body["subscription"]["remaining"] == 100
    assert body["total_cost_cents"] == 0


@pytest.mark.asyncio
async def test_history(client):
    headers = bearer(SUBSCRIBER_ID)
    for q in ["What is Qi?", "What is Jing?"]:
        await client.post("/ai-sifu/ask", json={"question": q}, headers=headers)

    resp = await client.get("/ai-sifu/history", params={"limit": 1}, headers=headers)
    assert resp.status_code == 200
    questions = resp.json()["questions"]
    assert [q["question_text"] for q in questions] == ["What is Jing?"]

    resp = await client.get("/ai-sifu/history", params={"limit": 101}, headers=headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_admin_routes_reject_regular_user(client):
    resp = await client.get("/admin/ai-sifu/analytics", headers=bearer(SUBSCRIBER_ID))
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_routes_require_credentials(client):
    resp = await client.get("/admin/ai-sifu/analytics")
    assert resp.status_code == 401


@pytest.mark.asyncio
async def test_admin_analytics_with_admin_token(client):
    await client.post("/ai-sifu/ask", json={"question": "What is Qi?"}, headers=bearer(SUBSCRIBER_ID))
    await client.post("/ai-sifu/ask", json={"question": "What is Qi?"}, headers=bearer(SUBSCRIBER_ID))

    resp = await client.get("/admin/ai-sifu/analytics", headers=bearer(ADMIN_ID, is_admin=True))
    assert resp.status_code == 200
    body = resp.json()
    assert body["overview"]["total_questions"] == 2
    assert body["overview"]["cache_hit_rate"] == 0.5
    assert body["cache_stats"]["total_cached"] == 1
    assert body["popular_questions"][0]["ask_count"] == 2
    assert len(body["daily_costs"]) == 1


@pytest.mark.asyncio
async def test_admin_key_header(client):
    resp = await client.get(
        "/admin/ai-sifu/popular-questions", headers={"X-Admin-Key": TEST_ADMIN_KEY},
    )
    assert resp.status_code == 200
    assert resp.json() == {"questions": []}

    resp = await client.get("/admin/ai-sifu/popular-questions", headers={"X-Admin-Key": "wrong"})
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_admin_clean_cache(client):
    resp = await client.post("/admin/ai-sifu/clean-cache", headers={"X-Admin-Key": TEST_ADMIN_KEY})
    assert resp.status_code == 200
    assert resp.json() == {"message": "Cache cleaned successfully", "deleted_entries": 0}


@pytest.mark.asyncio
async def test_admin_warm_cache(client, fake_engine):
    for _ in range(2):
        await client.post(
            "/ai-sifu/ask", json={"question": "How do I train the poles?"}, headers=bearer(SUBSCRIBER_ID),
        )
    resp = await client.post("/admin/ai-sifu/warm-cache", headers={"X-Admin-Key": TEST_ADMIN_KEY})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total"] == 1
    assert body["skipped"] == 1
    assert len(fake_engine.calls) == 1


@pytest.mark.asyncio
async def test_admin_user_usage(client):
    await client.post("/ai-sifu/ask", json={"question": "What is Qi?"}, headers=bearer(SUBSCRIBER_ID))
    resp = await client.get(
        f"/admin/ai-sifu/user-usage/{SUBSCRIBER_ID}", headers={"X-Admin-Key": TEST_ADMIN_KEY},
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["usage"]["subscription"]["used"] == 1
    assert len(body["recent_questions"]) == 1

    resp = await client.get("/admin/ai-sifu/user-usage/999", headers={"X-Admin-Key": TEST_ADMIN_KEY})
    assert resp.status_code == 404
