"""
Tests for the decision API.
"""

import pytest
from fastapi.testclient import TestClient

from conftest import ALICE, CHAIN_ID, make_gate, sign_proof
from tokengate.main import create_app


@pytest.fixture
def client(gate):
    return TestClient(create_app(gate))


class TestHealth:
    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "ok"
        assert body["service"] == "tokengate"
        assert body["chain_id"] == CHAIN_ID
        assert body["protected_operations"] == 1


class TestAuthorize:
    """POST /v1/authorize"""

    def test_granted(self, client, reader):
        reader.balances[(ALICE, 1)] = 1

        response = client.post(
            "/v1/authorize", json={"operation": "generate_report", "proof": sign_proof()}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["decision"] == "granted"
        assert body["signer_address"] == ALICE
        assert body["satisfied_requirement"]["token_id"] == 1
        assert body["error_code"] is None

    def test_payment_required(self, client):
        response = client.post(
            "/v1/authorize", json={"operation": "generate_report", "proof": sign_proof()}
        )

        assert response.status_code == 200
        body = response.json()
        assert body["decision"] == "denied"
        assert body["error_code"] == "PaymentRequired"
        assert body["stage"] == "tier_check"
        assert body["remediation"]["action"] == "acquire_tokens"
        assert body["remediation"]["http_status"] == 402
        assert body["requirements"] == [
            {"operation": "generate_report", "tier": "basic", "token_id": 1, "min_quantity": 1}
        ]

    def test_proof_missing(self, client):
        response = client.post("/v1/authorize", json={"operation": "generate_report"})

        body = response.json()
        assert body["error_code"] == "ProofMissing"
        assert body["remediation"]["action"] == "obtain_proof"

    def test_malformed_proof(self, client):
        response = client.post(
            "/v1/authorize", json={"operation": "generate_report", "proof": "garbage"}
        )

        body = response.json()
        assert body["error_code"] == "MalformedProof"
        assert body["stage"] == "parsing"

    def test_oracle_unavailable_is_retryable(self, client, reader):
        reader.failing = True

        response = client.post(
            "/v1/authorize", json={"operation": "generate_report", "proof": sign_proof()}
        )

        body = response.json()
        assert body["error_code"] == "OracleUnavailable"
        assert body["remediation"]["retryable"] is True

    def test_unprotected_operation(self, client):
        response = client.post("/v1/authorize", json={"operation": "list_files"})

        body = response.json()
        assert body["decision"] == "granted"
        assert body["signer_address"] is None

    def test_missing_operation_is_rejected(self, client):
        response = client.post("/v1/authorize", json={"proof": sign_proof()})
        assert response.status_code == 422


class TestOperationsAndOracle:
    """Read-only policy view and cache management."""

    def test_list_operations(self, client):
        body = client.get("/v1/operations").json()

        assert list(body["operations"]) == ["generate_report"]
        assert body["operations"]["generate_report"][0]["token_id"] == 1

    def test_oracle_stats_and_invalidate(self, client, reader):
        reader.balances[(ALICE, 1)] = 1
        client.post("/v1/authorize", json={"operation": "generate_report", "proof": sign_proof()})

        stats = client.get("/api/v1/gate/oracle/stats").json()
        assert stats["entries"] == 1
        assert stats["rpc_calls"] == 1

        response = client.delete("/api/v1/gate/oracle/cache", params={"address": ALICE})
        assert response.json() == {"invalidated": 1}
        assert client.get("/api/v1/gate/oracle/stats").json()["entries"] == 0

    def test_invalidate_everything(self, reader, clock):
        gate = make_gate(
            reader,
            clock,
            operations={"a": [{"token_id": 1}], "b": [{"token_id": 2}]},
        )
        client = TestClient(create_app(gate))
        proof = sign_proof()

        client.post("/v1/authorize", json={"operation": "a", "proof": proof})
        client.post("/v1/authorize", json={"operation": "b", "proof": proof})

        assert client.delete("/api/v1/gate/oracle/cache").json() == {"invalidated": 2}
