"""Integration tests for API endpoints."""

from decimal import Decimal

import pytest


async def create_booking(client, payload, key="booking-key-1"):
    return await client.post("/v1/booking/create", json=payload, headers={"Idempotency-Key": key})


@pytest.mark.asyncio
async def test_create_booking_endpoint(test_client, seeded, sample_booking_data):
    """Test the booking creation endpoint."""
    response = await create_booking(test_client, sample_booking_data)

    assert response.status_code == 201
    data = response.json()
    assert data["room_number"] == "R101"
    assert Decimal(data["total_amount"]) == Decimal("2000.00")
    assert data["payment_required"] is True
    assert data["ledger"]["payment_status"] == "pending"
    assert "booking_id" in data


@pytest.mark.asyncio
async def test_create_booking_replays_with_same_key(test_client, seeded, sample_booking_data):
    """Test repeating a request with the same key returns the first response without a second booking."""
    first = await create_booking(test_client, sample_booking_data)
    second = await create_booking(test_client, sample_booking_data)

    assert second.status_code == 201
    assert second.json() == first.json()

    availability = await test_client.post("/v1/availability/room", json={
        "room_number": "R101", "check_in": "2024-03-01", "check_out": "2024-03-03",
    })
    assert len(availability.json()["conflicting_bookings"]) == 1


@pytest.mark.asyncio
async def test_create_booking_key_reused_with_other_body(test_client, seeded, sample_booking_data):
    """Test reusing a key for a different request is rejected."""
    await create_booking(test_client, sample_booking_data)

    other = dict(sample_booking_data, room_number="R102")
    response = await create_booking(test_client, other)

    assert response.status_code == 422
    assert response.json()["code"] == "IDEMPOTENCY_KEY_MISMATCH"


@pytest.mark.asyncio
async def test_create_booking_missing_idempotency_key(test_client, seeded, sample_booking_data):
    """Test booking creation without the Idempotency-Key header."""
    response = await test_client.post("/v1/booking/create", json=sample_booking_data)

    assert response.status_code == 422
    data = response.json()
    assert data["status"] == 422
    assert "violations" in data


@pytest.mark.asyncio
async def test_create_booking_invalid_data(test_client, seeded, sample_booking_data):
    """Test booking creation with a schema-invalid body."""
    invalid = dict(sample_booking_data, adults=0)

    response = await create_booking(test_client, invalid)

    assert response.status_code == 422
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert any("adults" in v["path"] for v in data["violations"])


@pytest.mark.asyncio
async def test_create_booking_conflict_returns_problem(test_client, seeded, sample_booking_data):
    """Test an overlapping booking gets a 409 problem listing the conflict."""
    first = await create_booking(test_client, sample_booking_data)

    overlapping = dict(sample_booking_data, check_in_date="2024-03-02", check_out_date="2024-03-04")
    response = await create_booking(test_client, overlapping, key="booking-key-2")

    assert response.status_code == 409
    assert response.headers["content-type"].startswith("application/problem+json")
    data = response.json()
    assert data["code"] == "ROOM_UNAVAILABLE"
    assert data["retryable"] is False
    assert data["conflicts"][0]["booking_reference"] == first.json()["booking_reference"]


@pytest.mark.asyncio
async def test_create_booking_service_validation_error(test_client, seeded, sample_booking_data):
    """Test cross-field validation done by the service returns a 400 problem."""
    invalid = dict(sample_booking_data, room_type_id=seeded.id)

    response = await create_booking(test_client, invalid)

    assert response.status_code == 400
    data = response.json()
    assert data["code"] == "VALIDATION_ERROR"
    assert "room" in data["errors"]


@pytest.mark.asyncio
async def test_room_availability_endpoint(test_client, seeded):
    """Test the room availability endpoint."""
    response = await test_client.post("/v1/availability/room", json={
        "room_number": "R201", "check_in": "2024-03-01", "check_out": "2024-03-03",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["available"] is True
    assert data["effective_status"] == "available"
    assert Decimal(data["effective_price"]) == Decimal("1500.00")


@pytest.mark.asyncio
async def test_room_availability_unknown_room(test_client, seeded):
    """Test the room availability endpoint for a missing room."""
    response = await test_client.post("/v1/availability/room", json={
        "room_number": "R999", "check_in": "2024-03-01", "check_out": "2024-03-03",
    })

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


@pytest.mark.asyncio
async def test_room_type_availability_endpoint(test_client, seeded, sample_booking_data):
    """Test the room type availability endpoint."""
    await create_booking(test_client, sample_booking_data)

    response = await test_client.post("/v1/availability/room-type", json={
        "room_type_id": seeded.id, "check_in": "2024-03-02", "check_out": "2024-03-04",
    })

    assert response.status_code == 200
    data = response.json()
    assert data["available_count"] == 2
    assert [r["room_number"] for r in data["rooms"] if not r["available"]] == ["R101"]


@pytest.mark.asyncio
async def test_record_payment_endpoint(test_client, seeded, sample_booking_data):
    """Test recording a payment returns a receipt with the new ledger."""
    booking = (await create_booking(test_client, sample_booking_data)).json()

    response = await test_client.post(
        "/v1/payment/record",
        json={"booking_id": booking["booking_id"], "amount": "500.00", "method": "upi"},
        headers={"Idempotency-Key": "payment-key-1"},
    )

    assert response.status_code == 201
    data = response.json()
    assert data["receipt_number"].startswith("RCPT-")
    assert data["ledger"]["payment_status"] == "partial"
    assert Decimal(data["ledger"]["remaining_amount"]) == Decimal("1500.00")


@pytest.mark.asyncio
async def test_record_payment_replay_does_not_double_count(test_client, seeded, sample_booking_data):
    """Test a retried payment request with the same key is not recorded twice."""
    booking = (await create_booking(test_client, sample_booking_data)).json()
    payload = {"booking_id": booking["booking_id"], "amount": "500.00"}

    first = await test_client.post("/v1/payment/record", json=payload, headers={"Idempotency-Key": "pay-1"})
    second = await test_client.post("/v1/payment/record", json=payload, headers={"Idempotency-Key": "pay-1"})

    assert first.json() == second.json()
    summary = await test_client.post("/v1/ledger/summary", json={"booking_id": booking["booking_id"]})
    assert Decimal(summary.json()["stored"]["paid_amount"]) == Decimal("500.00")


@pytest.mark.asyncio
async def test_record_payment_amount_mismatch(test_client, seeded, sample_booking_data):
    """Test overpaying returns a 422 problem."""
    booking = (await create_booking(test_client, sample_booking_data)).json()

    response = await test_client.post(
        "/v1/payment/record",
        json={"booking_id": booking["booking_id"], "amount": "2500.00"},
        headers={"Idempotency-Key": "payment-key-2"},
    )

    assert response.status_code == 422
    assert response.json()["code"] == "AMOUNT_MISMATCH"


@pytest.mark.asyncio
async def test_record_payment_bad_signature(test_client, seeded, sample_booking_data):
    """Test a gateway payment with a bad signature returns 402."""
    booking = (await create_booking(test_client, sample_booking_data)).json()

    response = await test_client.post(
        "/v1/payment/record",
        json={
            "booking_id": booking["booking_id"],
            "amount": "2000.00",
            "source": "invoice",
            "gateway_payment_id": "pay_1",
            "gateway_order_id": "order_1",
            "gateway_signature": "forged",
        },
        headers={"Idempotency-Key": "payment-key-3"},
    )

    assert response.status_code == 402
    assert response.json()["code"] == "SIGNATURE_VERIFICATION_FAILED"


@pytest.mark.asyncio
async def test_gateway_order_endpoint(test_client, seeded, sample_booking_data):
    """Test opening a gateway order for the remaining amount."""
    booking = (await create_booking(test_client, sample_booking_data)).json()

    response = await test_client.post("/v1/payment/order", json={"booking_id": booking["booking_id"]})

    assert response.status_code == 200
    data = response.json()
    assert data["order_id"] == "order_1"
    assert Decimal(data["amount"]) == Decimal("2000.00")


@pytest.mark.asyncio
async def test_ledger_endpoints(test_client, seeded, sample_booking_data):
    """Test reconcile, summary and the reconcile-all sweep."""
    booking = (await create_booking(test_client, sample_booking_data)).json()
    body = {"booking_id": booking["booking_id"]}

    reconcile = await test_client.post("/v1/ledger/reconcile", json=body)
    assert reconcile.status_code == 200
    assert reconcile.json()["payment_status"] == "pending"

    summary = await test_client.post("/v1/ledger/summary", json=body)
    assert summary.status_code == 200
    assert summary.json()["is_synced"] is True

    sweep = await test_client.post("/v1/ledger/reconcile-all")
    assert sweep.status_code == 200
    assert sweep.json() == {"checked": 1, "corrected": 0, "failed": 0, "failed_booking_ids": []}


@pytest.mark.asyncio
async def test_invoice_endpoint(test_client, seeded, sample_booking_data):
    """Test fetching the invoice issued with a booking."""
    booking = (await create_booking(test_client, sample_booking_data)).json()

    response = await test_client.post("/v1/invoice/get", json={"booking_id": booking["booking_id"]})

    assert response.status_code == 200
    data = response.json()
    assert data["invoice_number"] == f"INV-{booking['booking_reference']}"
    assert Decimal(data["total_amount"]) == Decimal("2000.00")
    assert data["items"][0]["kind"] == "room_charge"


@pytest.mark.asyncio
async def test_booking_lifecycle_endpoints(test_client, seeded, sample_booking_data):
    """Test get, early check-in rejection and cancellation."""
    booking = (await create_booking(test_client, sample_booking_data)).json()
    body = {"booking_id": booking["booking_id"]}

    fetched = await test_client.post("/v1/booking/get", json=body)
    assert fetched.status_code == 200
    assert fetched.json()["booking_reference"] == booking["booking_reference"]

    early = await test_client.post("/v1/booking/check-in", json=body)
    assert early.status_code == 409
    assert early.json()["code"] == "INVALID_TRANSITION"

    cancelled = await test_client.post("/v1/booking/cancel", json=body)
    assert cancelled.status_code == 200
    assert cancelled.json()["status"] == "cancelled"


@pytest.mark.asyncio
async def test_get_unknown_booking(test_client, seeded):
    """Test getting a booking that does not exist."""
    response = await test_client.post(
        "/v1/booking/get", json={"booking_id": "00000000-0000-0000-0000-000000000000"}
    )

    assert response.status_code == 404
    assert response.json()["resource_type"] == "booking"


@pytest.mark.asyncio
async def test_extend_stay_endpoint(test_client, seeded, sample_booking_data):
    """Test extending a stay reprices the booking and a colliding extension is a problem document."""
    booking = (await create_booking(test_client, sample_booking_data)).json()
    later = dict(sample_booking_data, check_in_date="2024-03-06", check_out_date="2024-03-08")
    await create_booking(test_client, later, key="booking-key-2")

    response = await test_client.post(
        "/v1/booking/extend",
        json={"booking_id": booking["booking_id"], "new_check_out_date": "2024-03-05"},
    )

    assert response.status_code == 200
    data = response.json()
    assert data["check_out_date"] == "2024-03-05"
    assert Decimal(data["total_amount"]) == Decimal("4000.00")
    assert Decimal(data["remaining_amount"]) == Decimal("4000.00")

    blocked = await test_client.post(
        "/v1/booking/extend",
        json={"booking_id": booking["booking_id"], "new_check_out_date": "2024-03-07"},
    )

    assert blocked.status_code == 409
    assert blocked.headers["content-type"].startswith("application/problem+json")
    assert blocked.json()["code"] == "ROOM_UNAVAILABLE"
