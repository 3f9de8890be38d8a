"""Integration tests for listings_service endpoints."""

from datetime import timedelta
from decimal import Decimal

import pytest
from libs.common.datetime_utils import utc_now
from tests.conftest import make_user, override_auth
from tests.factories import ListingFactory, seed_listing


def _listing_payload(business_id, **overrides):
    now = utc_now()
    payload = {
        "business_id": str(business_id),
        "title": "Small chops tray",
        "listing_type": "individual",
        "original_price": "3000",
        "asking_price": "1500",
        "total_quantity": 6,
        "pickup_window_start": (now - timedelta(minutes=30)).isoformat(),
        "pickup_window_end": (now + timedelta(hours=10)).isoformat(),
    }
    payload.update(overrides)
    return payload


async def _register_business(client) -> dict:
    response = await client.post(
        "/businesses", json={"name": "Buka Express", "business_type": "restaurant"}
    )
    assert response.status_code == 201, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Businesses
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_register_business(listings_client, current_user):
    """POST /businesses - caller becomes the owner."""
    business = await _register_business(listings_client)

    assert business["owner_auth_id"] == current_user.user_id
    assert business["is_active"] is True

    response = await listings_client.get(f"/businesses/{business['id']}")
    assert response.status_code == 200
    assert response.json()["name"] == "Buka Express"


# ---------------------------------------------------------------------------
# Listing management
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_listing_prices_and_stocks(listings_client):
    business = await _register_business(listings_client)

    response = await listings_client.post(
        "/listings", json=_listing_payload(business["id"])
    )

    assert response.status_code == 201, response.text
    data = response.json()
    assert data["status"] == "active"
    assert data["available_quantity"] == 6
    assert Decimal(str(data["discounted_price"])) == Decimal("1500.00")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_listing_rejects_bad_prices(listings_client):
    business = await _register_business(listings_client)

    response = await listings_client.post(
        "/listings",
        json=_listing_payload(business["id"], asking_price="3500"),
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_listing"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_create_listing_for_someone_elses_business(listings_client, db_session):
    business, _ = await seed_listing(db_session)

    response = await listings_client.post("/listings", json=_listing_payload(business.id))

    assert response.status_code == 403
    assert response.json()["error"] == "not_authorized"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_update_and_cancel_listing(listings_client):
    business = await _register_business(listings_client)
    created = (
        await listings_client.post("/listings", json=_listing_payload(business["id"]))
    ).json()

    patched = await listings_client.patch(
        f"/listings/{created['id']}", json={"available_quantity": 0}
    )
    assert patched.status_code == 200, patched.text
    assert patched.json()["status"] == "sold_out"

    cancelled = await listings_client.post(f"/listings/{created['id']}/cancel")
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"

    # Still readable after cancellation
    fetched = await listings_client.get(f"/listings/{created['id']}")
    assert fetched.status_code == 200

    history = await listings_client.get(f"/businesses/{business['id']}/listings")
    assert [item["id"] for item in history.json()] == [created["id"]]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_stranger_cannot_edit_listing(listings_client, db_session):
    from services.listings_service.app.main import app

    _, listing = await seed_listing(db_session)

    with override_auth(app, make_user("stranger")):
        response = await listings_client.patch(
            f"/listings/{listing.id}", json={"title": "Mine now"}
        )

    assert response.status_code == 403


# ---------------------------------------------------------------------------
# Browsing
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.integration
async def test_browse_shows_only_active_listings(listings_client, db_session):
    business, visible = await seed_listing(db_session)
    now = utc_now()
    ended = ListingFactory.create(
        business.id,
        title="Yesterday's bread",
        pickup_window_start=now - timedelta(days=1, hours=2),
        pickup_window_end=now - timedelta(days=1),
    )
    db_session.add(ended)
    await db_session.commit()

    response = await listings_client.get("/listings")

    assert response.status_code == 200
    assert [item["id"] for item in response.json()] == [str(visible.id)]


@pytest.mark.asyncio
@pytest.mark.integration
async def test_quote_applies_bulk_discount(listings_client, db_session):
    _, listing = await seed_listing(
        db_session, bulk_threshold=3, bulk_discount_pct=Decimal("10")
    )

    single = await listings_client.get(f"/listings/{listing.id}/quote")
    bulk = await listings_client.get(
        f"/listings/{listing.id}/quote", params={"quantity": 3}
    )

    assert Decimal(str(single.json()["unit_price"])) == Decimal("1000.00")
    data = bulk.json()
    assert Decimal(str(data["unit_price"])) == Decimal("900.00")
    assert Decimal(str(data["line_total"])) == Decimal("2700.00")
    assert Decimal(str(data["savings"])) == Decimal("3300.00")


@pytest.mark.asyncio
@pytest.mark.integration
async def test_unknown_listing_is_404(listings_client):
    response = await listings_client.get(
        "/listings/00000000-0000-0000-0000-000000000000"
    )

    assert response.status_code == 404
    assert response.json()["error"] == "listing_not_found"


@pytest.mark.asyncio
@pytest.mark.integration
async def test_health(listings_client):
    response = await listings_client.get("/health")

    assert response.json() == {"status": "ok", "service": "listings"}
