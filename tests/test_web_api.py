"""
Tests for the JSON API.

Tests cover:
- Bearer token resolution
- Ingestion endpoint status codes and bodies
- Bank account linking actions
- Ledger summary
"""

import json
import os

import pytest

# Set Django settings before importing Django components
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "giftbook.web.settings")

import django  # noqa: E402

django.setup()

from django.test import Client, override_settings  # noqa: E402

from giftbook.config import AuthConfig, load_config  # noqa: E402
from giftbook.errors import Unauthorized  # noqa: E402
from giftbook.web.auth import issue_token, verify_token  # noqa: E402


@pytest.fixture
def api(tmp_path, temp_db, seeded, monkeypatch):
    """Client bound to the seeded store, plus a token helper."""
    for name in ("GIFTBOOK_STATE_DB", "GIFTBOOK_SECRET_KEY", "GIFTBOOK_TOKEN_MAX_AGE"):
        monkeypatch.delenv(name, raising=False)

    config_path = tmp_path / "config.yaml"
    config_path.write_text('auth:\n  secret_key: "api-test-key"\n')
    auth = load_config(config_path).auth

    with override_settings(GIFTBOOK_CONFIG_PATH=str(config_path), STATE_DB_PATH=str(temp_db)):
        client = Client()
        client.token_for = lambda user_id: {"HTTP_AUTHORIZATION": f"Bearer {issue_token(user_id, auth)}"}
        yield client


def _post(client, url, body, user_id=None, raw=None):
    headers = client.token_for(user_id) if user_id else {}
    data = raw if raw is not None else json.dumps(body)
    return client.post(url, data=data, content_type="application/json", **headers)


class TestBearerTokens:
    """Tests for signed bearer credentials."""

    def test_round_trip(self):
        auth = AuthConfig(secret_key="k")
        assert verify_token(issue_token("u1", auth), auth) == "u1"

    def test_wrong_key(self):
        token = issue_token("u1", AuthConfig(secret_key="k"))
        with pytest.raises(Unauthorized):
            verify_token(token, AuthConfig(secret_key="other"))

    def test_expired(self):
        auth = AuthConfig(secret_key="k", token_max_age_seconds=-1)
        with pytest.raises(Unauthorized):
            verify_token(issue_token("u1", auth), auth)

    def test_garbage(self):
        with pytest.raises(Unauthorized):
            verify_token("not-a-token", AuthConfig(secret_key="k"))


class TestHealth:
    def test_health(self, api):
        response = api.get("/health/")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}


class TestScrapeTransactionsEndpoint:
    """Tests for POST /api/scrape-transactions/."""

    URL = "/api/scrape-transactions/"

    @pytest.fixture(autouse=True)
    def open_event(self, store, seeded):
        store.set_event_settings(seeded["event_id"], "2099-01-01", "12:00", "18:00")

    def _body(self, seeded, **overrides):
        body = {
            "eventId": seeded["event_id"],
            "scrapeAccountId": seeded["account_id"],
            "startDate": "2025-05-10",
            "endDate": "2025-05-10",
        }
        body.update(overrides)
        return body

    def test_success(self, api, seeded, sample_provider_output):
        response = _post(
            api, self.URL, self._body(seeded, cooconOutput=sample_provider_output), seeded["user_id"]
        )
        assert response.status_code == 200
        data = response.json()
        assert data["ok"] is True
        assert data["insertedTx"] == 3
        assert data["reflectedLedgerNew"] == 2
        assert data["reflectedLedgerTotal"] == 2

    def test_resubmission(self, api, seeded, sample_provider_output):
        body = self._body(seeded, providerOutput=sample_provider_output)
        _post(api, self.URL, body, seeded["user_id"])
        data = _post(api, self.URL, body, seeded["user_id"]).json()
        assert (data["insertedTx"], data["reflectedLedgerNew"], data["reflectedLedgerTotal"]) == (0, 0, 2)

    def test_missing_token(self, api, seeded):
        response = _post(api, self.URL, self._body(seeded))
        assert response.status_code == 401
        assert response.json()["error"] == "unauthorized"

    def test_invalid_json(self, api, seeded):
        response = _post(api, self.URL, None, seeded["user_id"], raw="{not json")
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_body"

    def test_missing_fields(self, api, seeded):
        response = _post(api, self.URL, {"eventId": seeded["event_id"]}, seeded["user_id"])
        assert response.status_code == 400
        body = response.json()
        assert body["error"] == "missing_fields"
        assert "scrapeAccountId" in body["fields"]

    def test_invalid_date(self, api, seeded):
        response = _post(api, self.URL, self._body(seeded, endDate="2025-02-30"), seeded["user_id"])
        assert response.status_code == 400
        assert response.json()["error"] == "invalid_date"

    def test_non_member(self, api, seeded):
        response = _post(api, self.URL, self._body(seeded), "stranger")
        assert response.status_code == 403
        assert response.json()["error"] == "forbidden"

    def test_account_mismatch(self, api, seeded):
        response = _post(api, self.URL, self._body(seeded), seeded["other_user_id"])
        assert response.status_code == 403
        assert response.json()["error"] == "account_mismatch"

    def test_locked(self, api, store, seeded, sample_provider_output):
        store.set_event_settings(seeded["event_id"], "2020-01-01", "12:00", "18:00")
        response = _post(
            api, self.URL, self._body(seeded, providerOutput=sample_provider_output), seeded["user_id"]
        )
        assert response.status_code == 423
        body = response.json()
        assert body["error"] == "locked"
        assert body["cutoff"] == "2020-01-01T18:00:00+09:00"
        assert store.get_stats()["transactions_total"] == 0

    def test_get_not_allowed(self, api):
        assert api.get(self.URL).status_code == 405


class TestConnectEndpoint:
    """Tests for POST /api/scrape-accounts/connect/."""

    URL = "/api/scrape-accounts/connect/"

    def test_start_then_finish(self, api, seeded):
        user = seeded["other_user_id"]
        started = _post(api, self.URL, {"action": "start", "eventId": seeded["event_id"]}, user)
        assert started.status_code == 200
        start_body = started.json()
        assert start_body["reused"] is False
        assert start_body["status"] == "pending"

        finished = _post(
            api,
            self.URL,
            {
                "action": "finish",
                "eventId": seeded["event_id"],
                "scrapeAccountId": start_body["scrapeAccountId"],
                "bankCode": "088",
                "accountMasked": "110-***-789",
                "bankName": "신한은행",
            },
            user,
        )
        assert finished.status_code == 200
        assert finished.json()["status"] == "connected"
        assert finished.json()["verifiedAt"]

    def test_fail(self, api, seeded):
        response = _post(
            api,
            self.URL,
            {"action": "fail", "eventId": seeded["event_id"], "scrapeAccountId": seeded["account_id"]},
            seeded["user_id"],
        )
        assert response.json()["status"] == "failed"

    def test_unknown_action(self, api, seeded):
        response = _post(api, self.URL, {"action": "delete", "eventId": seeded["event_id"]}, seeded["user_id"])
        assert response.status_code == 400

    def test_finish_missing_fields(self, api, seeded):
        response = _post(
            api,
            self.URL,
            {"action": "finish", "eventId": seeded["event_id"], "scrapeAccountId": seeded["account_id"]},
            seeded["user_id"],
        )
        assert response.status_code == 400
        assert response.json()["fields"] == ["bankCode", "accountMasked"]


class TestLedgerSummaryEndpoint:
    """Tests for GET /api/events/<event_id>/ledger/summary/."""

    def test_member_sees_totals(self, api, store, seeded):
        store.set_event_settings(seeded["event_id"], "2099-01-01", "12:00", "18:00")
        _post(
            api,
            "/api/scrape-transactions/",
            {
                "eventId": seeded["event_id"],
                "scrapeAccountId": seeded["account_id"],
                "startDate": "2025-05-10",
                "endDate": "2025-05-10",
                "transactions": [{"date": "2025-05-10", "amount": "50000"}],
            },
            seeded["user_id"],
        )

        response = api.get(
            f"/api/events/{seeded['event_id']}/ledger/summary/",
            **api.token_for(seeded["other_user_id"]),
        )
        assert response.status_code == 200
        data = response.json()
        assert data["totalAmount"] == "50000.00"
        assert data["reconciledEntries"] == 1

    def test_non_member_forbidden(self, api, seeded):
        response = api.get(
            f"/api/events/{seeded['event_id']}/ledger/summary/", **api.token_for("stranger")
        )
        assert response.status_code == 403
