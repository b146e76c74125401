"""
API tests.

Tests for the FastAPI endpoints: election lifecycle, voting, results,
health and admin checks.
"""

from fastapi.testclient import TestClient

from votechain.main import create_app


def cast(client, voter_id, candidate):
    return client.post("/cast-vote", json={"voterId": voter_id, "candidate": candidate})


class TestRoot:
    def test_root(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert "VoteChain" in resp.json()["message"]

    def test_unknown_path(self, client):
        assert client.get("/nope").status_code == 404


class TestElection:
    def test_candidates_before_election(self, client):
        resp = client.get("/candidates")
        assert resp.json() == {"title": "", "candidates": [], "active": False}

    def test_create_requires_admin(self, client):
        resp = client.post("/create-election", json={"title": "T", "candidates": ["Alice", "Bob"]})
        assert resp.status_code == 401
        assert resp.json()["detail"] == "Unauthorized access"

    def test_create_with_wrong_key(self, client):
        resp = client.post(
            "/create-election",
            json={"title": "T", "candidates": ["Alice", "Bob"]},
            headers={"X-Admin-Key": "wrong"},
        )
        assert resp.status_code == 401

    def test_create_election(self, client, election):
        assert election["title"] == "Class President"
        assert election["candidates"] == ["Alice", "Bob"]
        assert election["active"] is True
        assert election["created"]

        resp = client.get("/candidates")
        assert resp.json() == {"title": "Class President", "candidates": ["Alice", "Bob"], "active": True}

    def test_create_two_field_form(self, client, admin_headers):
        resp = client.post(
            "/create-election",
            json={"title": "Mayor", "candidate1": "Carol", "candidate2": "Dave"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json()["election"]["candidates"] == ["Carol", "Dave"]

    def test_create_rejects_same_candidates(self, client, admin_headers):
        resp = client.post(
            "/create-election",
            json={"title": "T", "candidates": ["Alice", "Alice"]},
            headers=admin_headers,
        )
        assert resp.status_code == 422

    def test_new_election_starts_fresh_ledger(self, client, admin_headers, election):
        assert cast(client, "VOTER123", "Alice").status_code == 200
        client.post("/create-election", json={"title": "Rerun", "candidates": ["Alice", "Bob"]},
                    headers=admin_headers)

        results = client.get("/results").json()
        assert results["election"]["title"] == "Rerun"
        assert results["totalVotes"] == 0
        assert results["blockchain"]["totalBlocks"] == 1
        # Same voter may vote in the new election
        assert cast(client, "VOTER123", "Bob").status_code == 200

    def test_end_election(self, client, admin_headers, election):
        resp = client.post("/end-election", headers=admin_headers)
        assert resp.status_code == 200
        assert resp.json()["election"]["active"] is False

        resp = cast(client, "VOTER123", "Alice")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "No active election"

    def test_end_without_election(self, client, admin_headers):
        assert client.post("/end-election", headers=admin_headers).status_code == 400

    def test_end_requires_admin(self, client, election):
        assert client.post("/end-election").status_code == 401


class TestVoting:
    def test_vote_without_election(self, client):
        resp = cast(client, "VOTER123", "Alice")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "No active election"

    def test_cast_vote(self, client, election):
        resp = cast(client, "VOTER123", "Alice")
        assert resp.status_code == 200
        body = resp.json()
        assert body["message"] == "Vote cast successfully"
        assert body["blockIndex"] == 1
        assert body["timestamp"]

        assert cast(client, "VOTER456", "Bob").json()["blockIndex"] == 2

    def test_invalid_candidate(self, client, election):
        resp = cast(client, "VOTER123", "Mallory")
        assert resp.status_code == 400
        assert resp.json()["detail"] == "Invalid candidate"

    def test_double_vote(self, client, election):
        cast(client, "VOTER123", "Alice")
        resp = cast(client, "VOTER123", "Bob")
        assert resp.status_code == 403
        assert resp.json()["detail"] == "You have already voted"

    def test_malformed_vote(self, client, election):
        assert client.post("/cast-vote", json={"candidate": "Alice"}).status_code == 422
        assert cast(client, "   ", "Alice").status_code == 422

    def test_tampered_ledger_blocks_votes(self, client, election):
        cast(client, "VOTER123", "Alice")
        session = client.app.state.sessions.current()
        block = session.ledger.blocks[1]
        object.__setattr__(block, "hash", "f" * 64)

        resp = cast(client, "VOTER456", "Bob")
        assert resp.status_code == 500
        assert resp.json()["detail"] == "System integrity error"


class TestResults:
    def test_results_without_election(self, client):
        body = client.get("/results").json()
        assert body["election"]["title"] == "No election created"
        assert body["results"] == []
        assert body["totalVotes"] == 0
        assert body["blockchain"] is None

    def test_results(self, client, election):
        cast(client, "VOTER123", "Alice")
        cast(client, "VOTER456", "Alice")
        cast(client, "VOTER789", "Bob")

        body = client.get("/results").json()
        assert body["results"] == [{"candidate": "Alice", "votes": 2}, {"candidate": "Bob", "votes": 1}]
        assert body["totalVotes"] == 3

        chain = body["blockchain"]
        assert chain["totalBlocks"] == 4
        assert chain["isValid"] is True
        assert chain["violations"] == []
        assert [b["index"] for b in chain["blocks"]] == [0, 1, 2, 3]
        assert chain["blocks"][1]["payload"] == {"voterTag": "VOT*****", "candidate": "Alice"}
        for block in chain["blocks"]:
            assert len(block["hash"]) == 19
            assert block["hash"].endswith("...")
            assert block["previousHash"].endswith("...")

    def test_results_report_tampering(self, client, election):
        cast(client, "VOTER123", "Alice")
        cast(client, "VOTER456", "Bob")
        session = client.app.state.sessions.current()
        block = session.ledger.blocks[1]
        object.__setattr__(block, "timestamp", "1999-01-01T00:00:00+00:00")

        chain = client.get("/results").json()["blockchain"]
        assert chain["isValid"] is False
        assert {"index": 1, "kind": "digest_mismatch", "detail": "stored hash does not match block contents"} \
            in chain["violations"]


class TestHealth:
    def test_health_uninitialized(self, client):
        body = client.get("/health").json()
        assert body["status"] == "OK"
        assert body["blockchain"] == "Uninitialized"
        assert body["timestamp"]

    def test_health_valid_then_invalid(self, client, election):
        cast(client, "VOTER123", "Alice")
        assert client.get("/health").json()["blockchain"] == "Valid"

        session = client.app.state.sessions.current()
        object.__setattr__(session.ledger.blocks[1], "hash", "0" * 64)
        assert client.get("/health").json()["blockchain"] == "Invalid"


    def test_health_and_results_with_retyped_field(self, client, election):
        cast(client, "VOTER123", "Alice")
        session = client.app.state.sessions.current()
        object.__setattr__(session.ledger.blocks[1], "timestamp", None)

        assert client.get("/health").json()["blockchain"] == "Invalid"
        chain = client.get("/results").json()["blockchain"]
        assert chain["isValid"] is False
        assert 1 in [v["index"] for v in chain["violations"]]
        assert cast(client, "VOTER456", "Bob").status_code == 500


class TestSecurityHeaders:
    EXPECTED = {
        "x-content-type-options": "nosniff",
        "x-frame-options": "DENY",
        "referrer-policy": "no-referrer",
    }

    def test_headers_on_health(self, client):
        resp = client.get("/health")
        for header, value in self.EXPECTED.items():
            assert resp.headers[header] == value
        assert "default-src 'none'" in resp.headers["content-security-policy"]

    def test_headers_on_rate_limited_response(self, settings):
        settings = settings.model_copy(update={"general_rate_limit": 1})
        with TestClient(create_app(settings)) as c:
            c.get("/health")
            resp = c.get("/health")
            assert resp.status_code == 429
            assert resp.headers["x-frame-options"] == "DENY"


class TestAdminLogin:
    def test_login_and_use_token(self, client):
        resp = client.post("/admin/login", json={"adminKey": "test-admin-key"})
        assert resp.status_code == 200
        token = resp.json()["access_token"]
        assert resp.json()["token_type"] == "bearer"

        resp = client.post(
            "/create-election",
            json={"title": "T", "candidates": ["Alice", "Bob"]},
            headers={"Authorization": f"Bearer {token}"},
        )
        assert resp.status_code == 200

    def test_login_wrong_key(self, client):
        assert client.post("/admin/login", json={"adminKey": "nope"}).status_code == 401

    def test_garbage_token(self, client):
        resp = client.post(
            "/create-election",
            json={"title": "T", "candidates": ["Alice", "Bob"]},
            headers={"Authorization": "Bearer not-a-jwt"},
        )
        assert resp.status_code == 401

    def test_no_admin_key_configured(self, settings):
        settings = settings.model_copy(update={"admin_key": None})
        with TestClient(create_app(settings)) as c:
            assert c.post("/admin/login", json={"adminKey": "test-admin-key"}).status_code == 401
            resp = c.post(
                "/create-election",
                json={"title": "T", "candidates": ["Alice", "Bob"]},
                headers={"X-Admin-Key": "test-admin-key"},
            )
            assert resp.status_code == 401


class TestRateLimits:
    def test_vote_rate_limit(self, settings, admin_headers):
        settings = settings.model_copy(update={"vote_rate_limit": 1})
        with TestClient(create_app(settings)) as c:
            c.post("/create-election", json={"title": "T", "candidates": ["Alice", "Bob"]},
                   headers=admin_headers)
            assert cast(c, "VOTER123", "Alice").status_code == 200
            resp = cast(c, "VOTER456", "Alice")
            assert resp.status_code == 429
            assert resp.json()["detail"] == "Too many vote attempts. Please wait."
            assert resp.headers["Retry-After"] == "60"
            assert c.get("/results").json()["totalVotes"] == 1

    def test_general_rate_limit(self, settings):
        settings = settings.model_copy(update={"general_rate_limit": 3})
        with TestClient(create_app(settings)) as c:
            for _ in range(3):
                assert c.get("/health").status_code == 200
            resp = c.get("/health")
            assert resp.status_code == 429
            assert resp.headers["Retry-After"] == str(15 * 60)
