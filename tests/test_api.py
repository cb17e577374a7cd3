"""Tests for the JSON API."""

import httpx
import pytest
from fastapi.testclient import TestClient

from fund_valuation.api import create_app
from fund_valuation.pricing.client import CoinMarketCapClient


@pytest.fixture
def client(config, tmp_path, upstream):
    http = httpx.Client(transport=httpx.MockTransport(upstream))
    price_client = CoinMarketCapClient(config, http_client=http)
    app = create_app(config, db_path=tmp_path / "api.db", price_client=price_client)
    with TestClient(app) as test_client:
        yield test_client
    price_client.close()


def seed(client):
    client.post("/api/investors", json={"month": "2024-01", "client": "Alice", "kind": "LP", "amount": 100000})
    client.post("/api/investors", json={"month": "2024-01", "client": "Gen", "kind": "GP", "amount": 50000})
    client.post("/api/trades", json={"token": "btc", "units": 2, "total": 100000, "date": "2024-01-05"})
    client.post(
        "/api/perf-tracker",
        json={"month": "2024-01", "fund_expenses": 3000, "mgmt_fees": 1500, "setup_costs": 500},
    )


class TestLedgerEndpoints:
    def test_trade_crud(self, client):
        response = client.post(
            "/api/trades",
            json={"token": "eth", "units": 2, "kind": "Buy", "avg_price": 2500, "date": "2024-02-01"},
        )
        assert response.status_code == 201
        created = response.json()
        assert created["token"] == "ETH"
        assert created["total"] == 5000

        trade_id = created["id"]
        response = client.put(
            f"/api/trades/{trade_id}",
            json={"token": "ETH", "units": 3, "kind": "Sell", "total": 9000},
        )
        assert response.status_code == 200
        assert response.json()["kind"] == "Sell"

        assert client.delete(f"/api/trades/{trade_id}").json() == {"success": True}
        assert client.delete(f"/api/trades/{trade_id}").status_code == 404
        assert client.get("/api/trades").json() == []

    def test_update_missing_trade(self, client):
        response = client.put("/api/trades/42", json={"token": "BTC", "units": 1, "total": 1})
        assert response.status_code == 404

    def test_invalid_trade_rejected(self, client):
        response = client.post("/api/trades", json={"token": "BTC", "units": 0, "total": 10})
        assert response.status_code == 422
        assert "units" in response.json()["error"]

    def test_invalid_investor_kind(self, client):
        response = client.post(
            "/api/investors", json={"month": "2024-01", "client": "Alice", "kind": "XP", "amount": 1}
        )
        assert response.status_code == 422

    def test_clear_investors(self, client):
        seed(client)
        assert client.delete("/api/investors").json() == {"success": True, "deleted": 2}

    def test_exits(self, client):
        response = client.post("/api/exits", json={"token": "luna", "cost_basis": 3000})
        assert response.status_code == 201
        exit_id = response.json()["id"]
        assert client.get("/api/exits").json()[0]["token"] == "LUNA"
        assert client.delete(f"/api/exits/{exit_id}").status_code == 200
        assert client.delete(f"/api/exits/{exit_id}").status_code == 404

        client.post("/api/exits", json={"token": "FTT", "cost_basis": 10})
        assert client.delete("/api/exits").json() == {"success": True, "deleted": 1}


class TestValuationEndpoints:
    def test_cash_balance(self, client):
        seed(client)
        assert client.get("/api/cash-balance").json() == {
            "total_subscriptions": 150000,
            "total_cost_basis": 100000,
            "total_expenses": 5000,
            "exits_cost_basis": 0,
            "usdc_balance": 45000,
        }

    def test_valuation(self, client, upstream):
        seed(client)
        data = client.get("/api/valuation").json()
        assert data["total_value"] == 165000
        assert [h["token"] for h in data["holdings"]] == ["BTC", "USDC"]
        assert data["holdings"][0]["has_live_quote"] is True
        assert data["cash"]["usdc_balance"] == 45000
        assert "BTC" in upstream.requests[0].url.params["symbol"]

    def test_manual_price_fills_gap(self, client):
        client.post("/api/trades", json={"token": "KNTQ", "units": 100, "total": 50})
        assert client.put("/api/manual-price", json={"token": "kntq", "price": 2}).status_code == 200
        assert client.get("/api/manual-prices").json() == {"KNTQ": 2.0}

        holding = client.get("/api/valuation").json()["holdings"][0]
        assert holding["token"] == "KNTQ"
        assert holding["market_value"] == 200
        assert holding["is_manual"] is True

        assert client.delete("/api/manual-price/KNTQ").status_code == 200
        assert client.delete("/api/manual-price/KNTQ").status_code == 404

    def test_negative_manual_price_rejected(self, client):
        assert client.put("/api/manual-price", json={"token": "X", "price": -1}).status_code == 422

    def test_feed_down_still_values(self, client, upstream):
        upstream.failing = True
        seed(client)
        data = client.get("/api/valuation").json()
        btc = data["holdings"][0]
        assert btc["market_value"] == 0
        assert data["total_value"] == 45000

    def test_reconciliation(self, client):
        seed(client)
        client.post("/api/trades", json={"token": "XYZ", "units": 1, "total": 10})
        data = client.get("/api/reconciliation").json()
        assert [f["type"] for f in data["flags"]] == ["missing_price"]
        assert data["calculations"]["usdc_balance"] == 44990

        detail = client.get("/api/reconciliation/token/btc").json()
        assert detail["net_units"] == 2
        assert len(detail["trades"]) == 1

    def test_summary_and_perf(self, client):
        seed(client)
        summary = client.get("/api/summary").json()
        assert summary["subscriptions"]["total"] == 150000
        assert summary["expenses"]["total"] == 5000
        assert summary["latest_perf"]["month"] == "2024-01"

        [row] = client.get("/api/perf-tracker").json()
        assert row["gp_subs"] == 50000
        assert row["initial_value"] == 145000


class TestUploads:
    def test_upload_trades(self, client):
        content = b"Token,Units,Total Bot\nBTC,1,30000\n,2,10\n"
        response = client.post(
            "/api/upload/trades", files={"file": ("trades.csv", content, "text/csv")}
        )
        assert response.status_code == 200
        data = response.json()
        assert data["imported"] == 1
        assert data["skip_reasons"] == {"no_token": 1}
        assert data["skipped_rows"] == [{"row": 3, "reason": "no_token", "token": None}]

        stats = client.get("/api/upload/stats").json()
        assert stats["trades"] == 1

    def test_upload_bad_type(self, client):
        response = client.post(
            "/api/upload/investors", files={"file": ("notes.txt", b"hello", "text/plain")}
        )
        assert response.status_code == 422
        assert "Excel and CSV" in response.json()["error"]
