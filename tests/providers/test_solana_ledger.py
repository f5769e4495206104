"""
Tests for balance and history lookups over a fake JSON-RPC node.
"""

import json
from datetime import datetime, timezone
from decimal import Decimal

import httpx
import pytest
from unittest.mock import AsyncMock

from chatwallet.core.execution import ResilientRpcClient
from chatwallet.core.recovery import RetryPolicy
from chatwallet.providers.solana import SolanaLedger

OWNER = "4Nd1mBQtrMJVYVfKf2PJy9NZUZdTAsp7D4xWLs4gDB4T"
OTHER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


def make_ledger(handlers) -> SolanaLedger:
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        fn = handlers.get(body["method"])
        if fn is None:
            return httpx.Response(503, text="unavailable")
        result = fn(body["params"])
        if isinstance(result, httpx.Response):
            return result
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": result})

    rpc = ResilientRpcClient(
        ["https://rpc.test"],
        policy=RetryPolicy(max_attempts=1, sleep=AsyncMock()),
        http_client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    return SolanaLedger(rpc)


def transaction(keys, pre, post, err=None, loaded=None):
    meta = {"err": err, "preBalances": pre, "postBalances": post}
    if loaded:
        meta["loadedAddresses"] = loaded
    return {"blockTime": 1_700_000_000, "meta": meta, "transaction": {"message": {"accountKeys": keys}}}


class TestSolanaLedger:
    """Tests for SolanaLedger."""

    @pytest.mark.asyncio
    async def test_balance(self):
        ledger = make_ledger({"getBalance": lambda params: {"context": {"slot": 1}, "value": 2_500_000_000}})
        assert await ledger.get_balance(OWNER) == 2_500_000_000

    @pytest.mark.asyncio
    async def test_history_directions(self):
        txs = {
            "sig-in": transaction([OTHER, OWNER], [5_000_000_000, 1_000_000_000], [3_999_995_000, 2_000_000_000]),
            "sig-out": transaction([OWNER, OTHER], [2_000_000_000, 0], [1_499_995_000, 500_000_000]),
            "sig-fail": transaction([OWNER], [100, 0], [95, 0], err={"InstructionError": [0, "Custom"]}),
        }
        seen_limit = {}

        def signatures(params):
            seen_limit["limit"] = params[1]["limit"]
            return [
                {"signature": "sig-in", "blockTime": 1_700_000_000, "err": None},
                {"signature": "sig-out", "blockTime": None, "err": None},
                {"signature": "sig-fail", "blockTime": None, "err": {"InstructionError": [0, "Custom"]}},
            ]

        ledger = make_ledger({
            "getSignaturesForAddress": signatures,
            "getTransaction": lambda params: txs[params[0]],
        })

        entries = await ledger.get_history(OWNER, limit=3)

        assert seen_limit["limit"] == 3
        assert [entry.direction for entry in entries] == ["in", "out", "out"]
        assert entries[0].amount_change == Decimal("1")
        assert entries[0].timestamp == datetime.fromtimestamp(1_700_000_000, tz=timezone.utc)
        assert entries[1].amount_change == Decimal("-0.500005")
        assert entries[1].timestamp is not None
        assert entries[2].status == "failed"
        assert entries[0].status == "confirmed"

    @pytest.mark.asyncio
    async def test_owner_in_loaded_addresses(self):
        tx = transaction([OTHER], [10, 0], [5, 5], loaded={"writable": [OWNER], "readonly": []})
        ledger = make_ledger({
            "getSignaturesForAddress": lambda params: [{"signature": "sig-alt", "err": None}],
            "getTransaction": lambda params: tx,
        })

        entries = await ledger.get_history(OWNER)
        assert entries[0].direction == "in"
        assert entries[0].amount_change == Decimal("5") / Decimal(1_000_000_000)

    @pytest.mark.asyncio
    async def test_unloadable_transaction_is_kept(self):
        def get_transaction(params):
            return httpx.Response(503, text="unavailable")

        ledger = make_ledger({
            "getSignaturesForAddress": lambda params: [{"signature": "sig-1", "blockTime": 1_700_000_000, "err": None}],
            "getTransaction": get_transaction,
        })

        entries = await ledger.get_history(OWNER)
        assert len(entries) == 1
        assert entries[0].signature == "sig-1"
        assert entries[0].direction == "other"
        assert entries[0].amount_change is None

    @pytest.mark.asyncio
    async def test_empty_history(self):
        ledger = make_ledger({"getSignaturesForAddress": lambda params: []})
        assert await ledger.get_history(OWNER) == []

    @pytest.mark.asyncio
    async def test_health(self):
        healthy = make_ledger({"getHealth": lambda params: "ok"})
        down = make_ledger({})

        assert (await healthy.health_check())["status"] == "healthy"
        report = await down.health_check()
        assert report["status"] == "error"
        assert report["endpoints"] == 1
