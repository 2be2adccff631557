"""
Tests for HttpLedgerClient (Solana JSON-RPC over httpx), using httpx.MockTransport.
"""

from __future__ import annotations

import asyncio
import base64
import json

import httpx
import pytest

from nosana_autostake.core.exceptions import LedgerRpcError
from nosana_autostake.ledger.client import HttpLedgerClient

RPC_URL = "https://rpc.test/"


def _client(handler) -> HttpLedgerClient:
    return HttpLedgerClient(RPC_URL, transport=httpx.MockTransport(handler))


def _rpc_result(result):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": body["id"], "result": result})

    return handler


def _run(client, coro_fn):
    async def go():
        async with client:
            return await coro_fn(client)

    return asyncio.run(go())


def test_get_transaction_request_shape():
    """getTransaction is sent jsonParsed at confirmed commitment."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(json.loads(request.content))
        seen["host"] = request.url.host
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": {"slot": 7}})

    tx = _run(_client(handler), lambda c: c.get_transaction("sigX"))
    assert tx == {"slot": 7}
    assert seen["host"] == "rpc.test"
    assert seen["method"] == "getTransaction"
    assert seen["params"][0] == "sigX"
    assert seen["params"][1]["encoding"] == "jsonParsed"
    assert seen["params"][1]["commitment"] == "confirmed"
    assert seen["params"][1]["maxSupportedTransactionVersion"] == 0


def test_get_transaction_not_found_is_none():
    assert _run(_client(_rpc_result(None)), lambda c: c.get_transaction("sigX")) is None


def test_rpc_error_raises():
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32005, "message": "Node is behind"}})

    with pytest.raises(LedgerRpcError) as exc:
        _run(_client(handler), lambda c: c.get_latest_blockhash())
    assert exc.value.code == -32005


def test_http_error_raises():
    with pytest.raises(LedgerRpcError):
        _run(_client(lambda request: httpx.Response(503)), lambda c: c.get_transaction("sigX"))


def test_get_account_info_value():
    value = {"data": ["AAAA", "base64"], "owner": "Prog", "lamports": 1}
    result = _run(_client(_rpc_result({"context": {"slot": 1}, "value": value})), lambda c: c.get_account_info("addr"))
    assert result == value


def test_token_balance_missing_account_is_none():
    def handler(request):
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "error": {"code": -32602, "message": "Invalid param: could not find account"}})

    assert _run(_client(handler), lambda c: c.get_token_account_balance("ata")) is None


def test_token_balance_value():
    value = {"amount": "12500000", "decimals": 6, "uiAmountString": "12.5"}
    result = _run(_client(_rpc_result({"context": {"slot": 1}, "value": value})), lambda c: c.get_token_account_balance("ata"))
    assert result == value


def test_latest_blockhash():
    result = _run(
        _client(_rpc_result({"context": {"slot": 1}, "value": {"blockhash": "Hash111", "lastValidBlockHeight": 5}})),
        lambda c: c.get_latest_blockhash(),
    )
    assert result == "Hash111"


def test_send_transaction_base64():
    seen = {}

    def handler(request):
        seen.update(json.loads(request.content))
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": 1, "result": "SentSig"})

    sig = _run(_client(handler), lambda c: c.send_transaction(b"\x01\x02\x03"))
    assert sig == "SentSig"
    assert seen["params"][0] == base64.b64encode(b"\x01\x02\x03").decode()
    assert seen["params"][1] == {"encoding": "base64", "preflightCommitment": "confirmed"}


def test_signature_statuses():
    statuses = [{"slot": 3, "err": None, "confirmationStatus": "confirmed"}, None]
    result = _run(
        _client(_rpc_result({"context": {"slot": 3}, "value": statuses})),
        lambda c: c.get_signature_statuses(["a", "b"]),
    )
    assert result == statuses


def test_empty_rpc_url_rejected():
    with pytest.raises(ValueError):
        HttpLedgerClient("  ")
