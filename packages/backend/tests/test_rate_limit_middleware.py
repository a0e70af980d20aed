"""Bid rate-limit middleware tests.

Learn: The app under test shares the AdmissionController fixture, whose
clock is a FakeClock, so "61 seconds later" is clock.advance(61).
"""

import pytest


def bid_body(price: float = 100.0) -> dict:
    return {"price": price, "delivery_time": 14, "comments": "Can start Monday"}


async def submit_bid(client, tender_id, headers, price: float = 100.0):
    return await client.post(
        f"/api/v1/contractor/tenders/{tender_id}/bid",
        json=bid_body(price),
        headers=headers,
    )


@pytest.mark.asyncio
async def test_contractor_limited_after_five_bids(client, tender, auth_headers, clock):
    headers = auth_headers("c1", "contractor")

    for i in range(5):
        r = await submit_bid(client, tender["id"], headers, price=100.0 + i)
        assert r.status_code == 201
        assert r.headers["X-RateLimit-Limit"] == "5"
        assert r.headers["X-RateLimit-Remaining"] == str(4 - i)
        clock.advance(2)

    clock.advance(5)
    r = await submit_bid(client, tender["id"], headers)
    assert r.status_code == 429
    body = r.json()
    assert body["retry_after"] == int(clock.start + 60)
    assert 40 <= body["retry_after"] - clock.now <= 60
    assert r.headers["Retry-After"] == "45"
    assert r.headers["X-RateLimit-Remaining"] == "0"


@pytest.mark.asyncio
async def test_rejected_bid_is_not_created(client, tender, auth_headers):
    headers = auth_headers("c1", "contractor")
    for _ in range(6):
        await submit_bid(client, tender["id"], headers)

    r = await client.get("/api/v1/contractor/bids", headers=headers)
    assert r.status_code == 200
    assert len(r.json()) == 5


@pytest.mark.asyncio
async def test_limit_resets_after_window(client, tender, auth_headers, clock):
    headers = auth_headers("c1", "contractor")
    for _ in range(5):
        await submit_bid(client, tender["id"], headers)
    assert (await submit_bid(client, tender["id"], headers)).status_code == 429

    clock.now = clock.start + 61
    r = await submit_bid(client, tender["id"], headers)
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_contractors_limited_independently(client, tender, auth_headers):
    c1 = auth_headers("c1", "contractor")
    c2 = auth_headers("c2", "contractor")
    for _ in range(5):
        await submit_bid(client, tender["id"], c1)

    assert (await submit_bid(client, tender["id"], c1)).status_code == 429
    assert (await submit_bid(client, tender["id"], c2)).status_code == 201


@pytest.mark.asyncio
async def test_non_contractor_not_limited(client, tender, auth_headers, admission):
    headers = auth_headers("u1", "client")
    for _ in range(8):
        r = await submit_bid(client, tender["id"], headers)
        # Passes admission; the route itself refuses clients
        assert r.status_code == 403
    assert admission.window_for("u1") is None


@pytest.mark.asyncio
async def test_other_routes_not_limited(client, tender, auth_headers, admission):
    headers = auth_headers("c1", "contractor")
    for _ in range(10):
        r = await client.get("/api/v1/contractor/bids", headers=headers)
        assert r.status_code == 200
        assert "X-RateLimit-Limit" not in r.headers
    assert admission.window_for("c1") is None


@pytest.mark.asyncio
async def test_missing_token_rejected_before_admission(client, tender, admission):
    r = await client.post(
        f"/api/v1/contractor/tenders/{tender['id']}/bid", json=bid_body()
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "Missing token"
    assert len(admission) == 0


@pytest.mark.asyncio
async def test_invalid_token_rejected(client, tender, admission):
    r = await client.post(
        f"/api/v1/contractor/tenders/{tender['id']}/bid",
        json=bid_body(),
        headers={"Authorization": "Bearer not-a-jwt"},
    )
    assert r.status_code == 401
    assert len(admission) == 0


@pytest.mark.asyncio
async def test_token_without_role_rejected(client, tender, admission):
    import jwt

    from tenderhub.config import settings

    raw = jwt.encode({"sub": "c1"}, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    r = await client.post(
        f"/api/v1/contractor/tenders/{tender['id']}/bid",
        json=bid_body(),
        headers={"Authorization": f"Bearer {raw}"},
    )
    assert r.status_code == 401
    assert r.json()["detail"] == "role not found in token"
    assert len(admission) == 0


@pytest.mark.asyncio
async def test_bare_token_accepted(client, tender, token):
    r = await client.post(
        f"/api/v1/contractor/tenders/{tender['id']}/bid",
        json=bid_body(),
        headers={"Authorization": token("c1", "contractor")},
    )
    assert r.status_code == 201


@pytest.mark.asyncio
async def test_trailing_slash_redirect_counts_once(client, tender, auth_headers, admission):
    headers = auth_headers("c1", "contractor")
    r = await client.post(
        f"/api/v1/contractor/tenders/{tender['id']}/bid/", json=bid_body(), headers=headers
    )
    assert r.status_code == 307
    assert admission.window_for("c1") is None

    r = await client.post(r.headers["location"], json=bid_body(), headers=headers)
    assert r.status_code == 201
    assert admission.window_for("c1").count == 1
