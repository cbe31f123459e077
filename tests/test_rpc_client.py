"""
Tests for the resilient RPC client: failover order, timeouts and sentinels.
"""

import asyncio
import math

import aiohttp
import pytest

from claimbot.core.exceptions import RpcError
from claimbot.services.rpc_client import ResilientRpcClient, _error_message


ENDPOINTS = ("https://a.example", "https://b.example", "https://c.example", "https://d.example")


def scripted_transport(responses):
    """
    Build a fake _post_json that answers per endpoint.

    `responses` maps endpoint -> value or exception instance; an endpoint
    mapped to a float sleeps that many seconds before answering.
    """
    attempted = []

    async def fake_post_json(endpoint, path, payload):
        attempted.append(endpoint)
        response = responses[endpoint]
        if isinstance(response, BaseException):
            raise response
        if isinstance(response, float):
            await asyncio.sleep(response)
            return {"rows": [{"slow": True}]}
        return response

    return fake_post_json, attempted


@pytest.fixture
def client():
    return ResilientRpcClient(timeout=0.05, user_agent="test-agent")


class TestTableRowFailover:

    @pytest.mark.asyncio
    async def test_first_healthy_endpoint_wins(self, client, monkeypatch):
        rows = [{"account": "tester.wam", "limit": 10_000, "extended_at": 0}]
        fake, attempted = scripted_transport({
            ENDPOINTS[0]: aiohttp.ClientConnectionError("refused"),
            ENDPOINTS[1]: RpcError("Internal Service Error"),
            ENDPOINTS[2]: {"rows": rows, "more": False},
            ENDPOINTS[3]: {"rows": [{"wrong": True}]},
        })
        monkeypatch.setattr(client, "_post_json", fake)

        result = await client.get_table_rows(
            ENDPOINTS, code="s.rplanet", table="claimlimits", scope="s.rplanet",
            bounds="tester.wam", index_position=1
        )

        assert result == rows
        assert attempted == list(ENDPOINTS[:3])

    @pytest.mark.asyncio
    async def test_slow_endpoint_counts_as_failure(self, client, monkeypatch):
        fake, attempted = scripted_transport({
            ENDPOINTS[0]: 1.0,
            ENDPOINTS[1]: {"rows": [{"fast": True}]},
        })
        monkeypatch.setattr(client, "_post_json", fake)

        result = await client.get_table_rows(
            ENDPOINTS[:2], code="s.rplanet", table="claimlimits", scope="s.rplanet",
            bounds="tester.wam", index_position=1
        )

        assert result == [{"fast": True}]
        assert attempted == list(ENDPOINTS[:2])
        assert client.stats_by_endpoint[ENDPOINTS[0]].errors_by_type == {"TimeoutError": 1}

    @pytest.mark.asyncio
    async def test_malformed_response_advances(self, client, monkeypatch):
        fake, attempted = scripted_transport({
            ENDPOINTS[0]: {"unexpected": True},
            ENDPOINTS[1]: {"rows": []},
        })
        monkeypatch.setattr(client, "_post_json", fake)

        result = await client.get_table_rows(
            ENDPOINTS[:2], code="s.rplanet", table="claimlimits", scope="s.rplanet",
            bounds="tester.wam", index_position=1
        )

        assert result == []
        assert attempted == list(ENDPOINTS[:2])

    @pytest.mark.asyncio
    async def test_all_failing_returns_empty_rows(self, client, monkeypatch):
        fake, attempted = scripted_transport({
            endpoint: aiohttp.ClientConnectionError("down") for endpoint in ENDPOINTS
        })
        monkeypatch.setattr(client, "_post_json", fake)

        result = await client.get_table_rows(
            ENDPOINTS, code="s.rplanet", table="claimlimits", scope="s.rplanet",
            bounds="tester.wam", index_position=1
        )

        assert result == []
        assert attempted == list(ENDPOINTS)
        assert client.global_stats.failed_requests == len(ENDPOINTS)

    @pytest.mark.asyncio
    async def test_request_payload(self, client, monkeypatch):
        payloads = []

        async def fake(endpoint, path, payload):
            payloads.append((path, payload))
            return {"rows": []}

        monkeypatch.setattr(client, "_post_json", fake)

        await client.get_table_rows(
            ENDPOINTS[:1], code="s.rplanet", table="claimlimits", scope="s.rplanet",
            bounds="tester.wam", index_position=1
        )

        path, payload = payloads[0]
        assert path == "/v1/chain/get_table_rows"
        assert payload["lower_bound"] == payload["upper_bound"] == "tester.wam"
        assert payload["index_position"] == 1
        assert payload["key_type"] == "i64"
        assert payload["limit"] == 100
        assert payload["json"] is True


class TestCurrencyBalance:

    @pytest.mark.asyncio
    async def test_parses_asset_string(self, client, monkeypatch):
        fake, _ = scripted_transport({ENDPOINTS[0]: ["123.4567 AETHER"]})
        monkeypatch.setattr(client, "_post_json", fake)

        balance = await client.get_currency_balance(
            ENDPOINTS[:1], code="e.rplanet", account="tester.wam", symbol="AETHER"
        )

        assert balance == pytest.approx(123.4567)

    @pytest.mark.asyncio
    async def test_no_balance_row_is_nan(self, client, monkeypatch):
        fake, attempted = scripted_transport({ENDPOINTS[0]: [], ENDPOINTS[1]: ["1.0000 AETHER"]})
        monkeypatch.setattr(client, "_post_json", fake)

        balance = await client.get_currency_balance(
            ENDPOINTS[:2], code="e.rplanet", account="tester.wam", symbol="AETHER"
        )

        assert math.isnan(balance)
        assert attempted == [ENDPOINTS[0]]

    @pytest.mark.asyncio
    async def test_all_failing_returns_nan(self, client, monkeypatch):
        fake, attempted = scripted_transport({
            endpoint: asyncio.TimeoutError() for endpoint in ENDPOINTS
        })
        monkeypatch.setattr(client, "_post_json", fake)

        balance = await client.get_currency_balance(
            ENDPOINTS, code="e.rplanet", account="tester.wam", symbol="AETHER"
        )

        assert math.isnan(balance)
        assert attempted == list(ENDPOINTS)


class TestSingleEndpointCalls:

    @pytest.mark.asyncio
    async def test_get_info_raises(self, client, monkeypatch):
        fake, _ = scripted_transport({ENDPOINTS[0]: aiohttp.ClientConnectionError("down")})
        monkeypatch.setattr(client, "_post_json", fake)

        with pytest.raises(aiohttp.ClientError):
            await client.get_info(ENDPOINTS[0])

    @pytest.mark.asyncio
    async def test_push_transaction_payload(self, client, monkeypatch):
        seen = []

        async def fake(endpoint, path, payload):
            seen.append((endpoint, path, payload))
            return {"transaction_id": "ff" * 32}

        monkeypatch.setattr(client, "_post_json", fake)

        response = await client.push_transaction(ENDPOINTS[2], ["SIG_K1_x"], b"\x01\x02")

        assert response["transaction_id"] == "ff" * 32
        endpoint, path, payload = seen[0]
        assert endpoint == ENDPOINTS[2]
        assert path == "/v1/chain/push_transaction"
        assert payload == {
            "signatures": ["SIG_K1_x"],
            "compression": 0,
            "packed_context_free_data": "",
            "packed_trx": "0102",
        }


class TestErrorMessage:

    def test_prefers_assertion_details(self):
        body = {
            "code": 500,
            "message": "Internal Service Error",
            "error": {
                "what": "eosio_assert_message assertion failure",
                "details": [{"message": "assertion failure with message: nothing to claim"}],
            },
        }
        assert _error_message(body, 500) == "assertion failure with message: nothing to claim"

    def test_falls_back_to_status(self):
        assert _error_message("<html>", 502) == "HTTP 502"


class TestTableRowFailureValue:

    @pytest.mark.asyncio
    async def test_custom_failure_value_when_exhausted(self, client, monkeypatch):
        fake, attempted = scripted_transport({
            endpoint: aiohttp.ClientConnectionError("down") for endpoint in ENDPOINTS[:2]
        })
        monkeypatch.setattr(client, "_post_json", fake)

        result = await client.get_table_rows(
            ENDPOINTS[:2], code="s.rplanet", table="claimlimits", scope="s.rplanet",
            bounds="tester.wam", index_position=1, on_failure=lambda: None
        )

        assert result is None
        assert attempted == list(ENDPOINTS[:2])

    @pytest.mark.asyncio
    async def test_empty_rows_are_not_a_failure(self, client, monkeypatch):
        fake, _ = scripted_transport({ENDPOINTS[0]: {"rows": []}})
        monkeypatch.setattr(client, "_post_json", fake)

        result = await client.get_table_rows(
            ENDPOINTS[:1], code="s.rplanet", table="claimlimits", scope="s.rplanet",
            bounds="tester.wam", index_position=1, on_failure=lambda: None
        )

        assert result == []
