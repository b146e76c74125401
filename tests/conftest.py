import pytest
from fastapi.testclient import TestClient

from votechain.config import Settings
from votechain.ledger import create_blockchain
from votechain.main import create_app
from votechain.models.vote_model import VotePayload

ADMIN_KEY = "test-admin-key"


@pytest.fixture
def chain():
    return create_blockchain()


@pytest.fixture
def filled_chain(chain):
    for tag, candidate in [("A**", "Alice"), ("B**", "Bob"), ("C**", "Alice"), ("D**", "Bob")]:
        chain.append(VotePayload(voter_tag=tag, candidate=candidate))
    return chain


@pytest.fixture
def settings():
    return Settings(
        admin_key=ADMIN_KEY,
        secret_key="test-secret",
        general_rate_limit=10_000,
        vote_rate_limit=10_000,
    )


@pytest.fixture
def client(settings):
    with TestClient(create_app(settings)) as c:
        yield c


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture
def election(client, admin_headers):
    resp = client.post(
        "/create-election",
        json={"title": "Class President", "candidates": ["Alice", "Bob"]},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    return resp.json()["election"]
