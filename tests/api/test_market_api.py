"""
Tests for the /market endpoints, served against the mock upstream.
"""

from conftest import chart


def seed_prices(upstream):
    upstream.add_coin("bitcoin", price=43000, volume=2e10, market_cap=8e11, change=2.5, rank=1)
    upstream.add_coin("ethereum", price=2300, volume=1e10, market_cap=2.8e11, change=-1.0, rank=2)


class TestPrices:
    def test_returns_data_and_missing(self, api_client, upstream):
        seed_prices(upstream)
        upstream.failing_ids.add("solana")

        response = api_client.get("/market/prices", params={"coins": "Bitcoin,ethereum,solana"})

        assert response.status_code == 200
        body = response.json()
        assert body["currency"] == "usd"
        assert set(body["data"]) == {"bitcoin", "ethereum"}
        assert body["data"]["bitcoin"]["price"] == 43000
        assert body["data"]["bitcoin"]["change_24h"] == 2.5
        assert body["missing"] == ["solana"]

    def test_requires_coins(self, api_client):
        response = api_client.get("/market/prices", params={"coins": " , "})
        assert response.status_code == 400

    def test_request_id_header(self, api_client, upstream):
        seed_prices(upstream)
        response = api_client.get(
            "/market/prices",
            params={"coins": "bitcoin"},
            headers={"x-request-id": "abc123"},
        )
        assert response.headers["x-request-id"] == "abc123"

    def test_upstream_calls_carry_their_request_id(self, api_client, upstream):
        seed_prices(upstream)

        api_client.get("/market/prices", params={"coins": "bitcoin"}, headers={"x-request-id": "first-req"})
        api_client.get("/market/prices", params={"coins": "ethereum"}, headers={"x-request-id": "second-req"})

        assert upstream.request_ids == ["first-req", "second-req"]

    def test_unsafe_request_id_is_replaced(self, api_client, upstream):
        seed_prices(upstream)

        response = api_client.get(
            "/market/prices",
            params={"coins": "bitcoin"},
            headers={"x-request-id": "bad id\"with quotes"},
        )

        request_id = response.headers["x-request-id"]
        assert request_id != "bad id\"with quotes"
        assert len(request_id) == 8
        assert upstream.request_ids == [request_id]


class TestHistory:
    def test_series_aligned_with_request(self, api_client, upstream):
        upstream.charts["bitcoin"] = chart([1, 2, 3])
        upstream.failing_ids.add("ethereum")

        response = api_client.get("/market/history", params={"coins": "bitcoin,ethereum", "window": "7d"})

        assert response.status_code == 200
        body = response.json()
        assert (body["window"], body["days"], body["interval"]) == ("7d", "7", "hour")
        assert [s["coin_id"] for s in body["series"]] == ["bitcoin", "ethereum"]
        assert body["series"][0]["available"] is True
        assert [p[1] for p in body["series"][0]["points"]] == [1, 2, 3]
        assert body["series"][1] == {"coin_id": "ethereum", "available": False, "points": []}

    def test_invalid_window(self, api_client, upstream):
        response = api_client.get("/market/history", params={"coins": "bitcoin", "window": "1y"})

        assert response.status_code == 400
        assert upstream.requests == []


class TestSearch:
    def test_search(self, api_client, upstream):
        upstream.search_results["eth"] = [{"id": "ethereum", "symbol": "eth", "name": "Ethereum"}]

        response = api_client.get("/market/search", params={"q": "eth"})

        assert response.status_code == 200
        assert response.json() == [{"id": "ethereum", "symbol": "ETH", "name": "Ethereum"}]

    def test_rate_limit_exhaustion_maps_to_429(self, api_client, upstream):
        upstream.script("/search", 429, 429, 429, 429)

        response = api_client.get("/market/search", params={"q": "eth"})

        assert response.status_code == 429
        assert response.json()["detail"] == "Rate limit exceeded"

    def test_upstream_error_maps_to_502(self, api_client, upstream):
        upstream.script("/search", 500, 500, 500, 500)

        response = api_client.get("/market/search", params={"q": "eth"})

        assert response.status_code == 502


class TestCorrelations:
    def test_group_correlation(self, api_client, upstream):
        upstream.charts["bitcoin"] = chart([100, 120, 110, 150])
        upstream.charts["ethereum"] = chart([10, 12, 11, 15])
        upstream.charts["tether"] = chart([1, 1, 1, 1])

        response = api_client.get(
            "/market/correlations",
            params={"coins": "bitcoin,ethereum,tether", "window": "24h"},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["main"] == "bitcoin"
        assert abs(body["correlations"]["ethereum"] - 1.0) < 1e-9
        assert body["correlations"]["tether"] == 0.0

    def test_needs_two_coins(self, api_client):
        response = api_client.get("/market/correlations", params={"coins": "bitcoin"})
        assert response.status_code == 400


def test_currencies(api_client):
    response = api_client.get("/market/currencies")

    assert response.status_code == 200
    codes = [c["code"] for c in response.json()]
    assert codes == ["usd", "eur", "gbp", "jpy", "aud", "cad"]
