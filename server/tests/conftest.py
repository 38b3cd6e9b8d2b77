"""Test configuration and fixtures."""

from datetime import date
from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from stayledger.core.database import Base, get_db
from stayledger.core.dependencies import get_payment_gateway, get_today
from stayledger.models import *  # noqa: F403 - Import all models
from stayledger.models import Room, RoomType
from stayledger.services.gateway import HmacPaymentGateway

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# Business date every test runs on; stays in March 2024 are in the future
TODAY = date(2024, 1, 1)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session configured like the application's."""
    async_session = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def seeded(test_session):
    """A Standard room type (1000/night, 2 guests) with rooms R101, R102 and R201."""
    room_type = RoomType(name="Standard", base_price=Decimal("1000.00"), capacity=2)
    test_session.add(room_type)
    await test_session.flush()

    test_session.add_all([
        Room(room_number="R101", room_type_id=room_type.id, floor=1),
        Room(room_number="R102", room_type_id=room_type.id, floor=1),
        Room(room_number="R201", room_type_id=room_type.id, floor=2, price=Decimal("1500.00")),
    ])
    await test_session.commit()

    return room_type


@pytest.fixture
def today():
    return TODAY


@pytest_asyncio.fixture(scope="function")
async def gateway():
    """Real HMAC gateway client talking to a mocked gateway API."""
    orders = []

    def handler(request: httpx.Request) -> httpx.Response:
        orders.append(request)
        return httpx.Response(200, json={"id": f"order_{len(orders)}", "status": "created"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    gateway = HmacPaymentGateway(
        key_id="key_test",
        key_secret="secret_test",
        base_url="https://gateway.test/v1",
        client=client,
    )
    gateway.requests = orders

    yield gateway

    await client.aclose()


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session, gateway):
    """Create a test FastAPI application."""
    from fastapi import FastAPI
    from fastapi.exceptions import RequestValidationError

    from stayledger.core.exceptions import (
        ProblemDetailsException,
        generic_exception_handler,
        problem_details_handler,
        request_validation_handler,
    )
    from stayledger.routers import availability, booking, health, invoice, ledger, metrics, payment

    # Create a simplified test app without lifespan
    app = FastAPI(
        title="Stay Ledger API (Test)",
        description="Test version of the API",
        version="1.0.0-test",
    )

    # Register exception handlers
    app.add_exception_handler(ProblemDetailsException, problem_details_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, generic_exception_handler)

    # Add inline health endpoints (like in main app)
    @app.get("/health")
    async def health_check():
        return {
            "status": "healthy",
            "service": "stayledger-api",
            "version": "1.0.0",
            "environment": "test",
            "debug": True,
        }

    @app.get("/ready")
    async def readiness_check():
        return {
            "status": "ready",
            "service": "stayledger-api",
            "checks": {"database": "ok"},
        }

    @app.get("/info")
    async def service_info():
        return {
            "service": "stayledger-api",
            "version": "1.0.0",
            "description": "Room availability, booking and payment ledger service",
            "environment": "test",
            "debug": True,
            "features": {
                "idempotency": True,
                "tracing": False,
                "problem_details": True,
            },
        }

    # Register API routers
    app.include_router(health.router)
    app.include_router(availability.router)
    app.include_router(booking.router)
    app.include_router(payment.router)
    app.include_router(ledger.router)
    app.include_router(invoice.router)
    app.include_router(metrics.router)

    # Override database, clock and gateway dependencies
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_today] = lambda: TODAY
    app.dependency_overrides[get_payment_gateway] = lambda: gateway

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    from httpx import ASGITransport
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def sample_guest_data():
    """Sample guest details for testing."""
    return {
        "first_name": "Asha",
        "last_name": "Rao",
        "email": "asha.rao@example.com",
        "phone": "+919800000001",
    }


@pytest.fixture
def sample_booking_data(sample_guest_data):
    """Sample booking request: R101 for two nights at 1000."""
    return {
        "guest": sample_guest_data,
        "room_number": "R101",
        "check_in_date": "2024-03-01",
        "check_out_date": "2024-03-03",
        "nightly_rate": "1000.00",
    }
