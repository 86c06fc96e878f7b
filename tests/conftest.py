"""
Shared fixtures: in-memory SQLite database, analysis pipeline without an AI provider,
service instance, HTTP client and bearer tokens.
"""
import os
import sys
from pathlib import Path

# Settings are read once at import time
os.environ["TRACING_ENABLED"] = "false"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ANALYSIS_CACHE_BACKEND"] = "memory"
os.environ["AI_API_KEY"] = ""

# Add parent folder (project root) to sys.path so local modules can be imported
PROJECT_ROOT = Path(__file__).resolve().parents[1]
proj_root_str = str(PROJECT_ROOT)
if proj_root_str not in sys.path:
    sys.path.insert(0, proj_root_str)

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.cache.analysis_cache import InMemoryAnalysisCache
from app.core.auth import CurrentUser, create_access_token
from app.core.circuit_breaker import db_circuit_breaker
from app.database.database import get_db
from app.models.campaign import Base
from app.models.user import User
from app.schemas.campaign import CreateCampaignRequest
from app.services.analysis import AnalysisPipeline, get_analysis_pipeline
from app.services.campaign import CampaignService

CREATOR_WALLET = "0xc0ffee0000000000000000000000000000000001"
OTHER_WALLET = "0xbeef000000000000000000000000000000000002"
ADMIN_WALLET = "0xad000000000000000000000000000000000000ff"

test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture(autouse=True)
def reset_db_circuit_breaker():
    db_circuit_breaker.reset()
    yield
    db_circuit_breaker.reset()


@pytest.fixture
def db_session():
    """Fresh schema per test"""
    Base.metadata.create_all(bind=test_engine)
    session = TestSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def analysis_cache():
    return InMemoryAnalysisCache()


@pytest.fixture
def pipeline(analysis_cache):
    """Rule-based only pipeline"""
    return AnalysisPipeline(cache=analysis_cache)


@pytest.fixture
def service(db_session, pipeline):
    return CampaignService(db=db_session, pipeline=pipeline)


@pytest.fixture
def creator():
    return CurrentUser(wallet_address=CREATOR_WALLET, role="user", user_type="creator")


@pytest.fixture
def other_creator():
    return CurrentUser(wallet_address=OTHER_WALLET, role="user", user_type="creator")


@pytest.fixture
def donor():
    return CurrentUser(wallet_address=OTHER_WALLET, role="user", user_type="donor")


@pytest.fixture
def admin():
    return CurrentUser(wallet_address=ADMIN_WALLET, role="admin", user_type="donor")


@pytest.fixture
def creator_account(db_session):
    """Users row for the creator, with a complete profile"""
    user = User(
        wallet_address=CREATOR_WALLET,
        role="user",
        user_type="creator",
        email="garden@example.org",
        creator_name="Green Street Collective",
        creator_bio="We are a group of neighbours who have run three community planting "
                    "projects in the last five years, all funded by small donations.",
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture
def campaign_payload():
    return {
        "title": "Community Garden Beds",
        "description": (
            "Our team plans to build twelve raised garden beds on the empty lot behind the "
            "library. Phase one covers lumber and soil, phase two covers irrigation. "
            "Every milestone will be documented with photos and receipts."
        ),
        "target": 4.5,
        "deadline": "2099-12-31",
        "image": "https://example.org/garden.png",
    }


@pytest.fixture
def make_campaign(service, creator, campaign_payload):
    """Submit a campaign as the creator and return its response"""
    async def _make(user=None, **overrides):
        payload = dict(campaign_payload)
        payload.update(overrides)
        result = await service.create_campaign(user or creator, CreateCampaignRequest(**payload))
        return result.campaign

    return _make


@pytest.fixture
def auth_headers():
    def _headers(wallet_address: str, role: str = "user", user_type: str = "creator") -> dict:
        token = create_access_token({"walletAddress": wallet_address, "role": role, "userType": user_type})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def client(db_session, pipeline):
    """HTTP client bound to the test database and pipeline"""
    from app.main import app

    app.dependency_overrides[get_db] = lambda: db_session
    app.dependency_overrides[get_analysis_pipeline] = lambda: pipeline
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
