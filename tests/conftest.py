import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from famsplit.core.db import get_db
from famsplit.main import app
from famsplit.models.base import Base
from famsplit.models import entities  # noqa: F401


engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

ALICE = {"X-Dev-User": "alice@example.com"}
BOB = {"X-Dev-User": "bob@example.com"}
CAROL = {"X-Dev-User": "carol@example.com"}
DAVE = {"X-Dev-User": "dave@example.com"}


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def db_session():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Dev-mode auth headers for each test user.
@pytest.fixture
def as_alice():
    return ALICE


@pytest.fixture
def as_bob():
    return BOB


@pytest.fixture
def as_carol():
    return CAROL


@pytest.fixture
def as_dave():
    return DAVE


@pytest.fixture
def household(client):
    """
    Alice (admin) with Bob and Carol as active members, plus Dave who has signed
    in but belongs to no family.
    """
    for headers in (BOB, CAROL, DAVE):
        assert client.get("/v1/me", headers=headers).status_code == 200

    created = client.post("/v1/families", json={"name": "Household"}, headers=ALICE)
    assert created.status_code == 201
    family_id = created.json()["family"]["id"]
    members = {"alice": created.json()["member"]["id"]}

    for name, headers in (("bob", BOB), ("carol", CAROL)):
        invite = client.post(
            f"/v1/families/{family_id}/members/invite",
            json={"email": f"{name}@example.com"},
            headers=ALICE,
        )
        assert invite.status_code == 201
        member_id = invite.json()["id"]
        accepted = client.post(f"/v1/families/members/{member_id}/accept", headers=headers)
        assert accepted.status_code == 200
        members[name] = member_id

    return {"family_id": family_id, "members": members}
