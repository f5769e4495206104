"""
Tests for Solana to EVM bridging.
"""

import base64
from decimal import Decimal

import pytest
from unittest.mock import AsyncMock, MagicMock
from solders.keypair import Keypair
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from chatwallet.core.errors import NetworkFailed, NoRoute, ValidationFailed
from chatwallet.core.execution import BridgeExecutor
from chatwallet.core.execution.bridge import shorten_address
from chatwallet.core.execution.transactions import TransactionBuildError
from chatwallet.core.tokens import NATIVE_PLACEHOLDER, USDC_MINT
from chatwallet.providers.bungee import BungeeError

EVM_ADDRESS = "0x1234567890abcdef1234567890ABCDEF12345678"
BASE_USDC = "0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913"


def quote_payload(**result):
    return {"success": True, "result": result or {"autoRoute": {"quoteId": "q-auto", "estimatedTime": 180}}}


@pytest.fixture
def keypair():
    return Keypair()


@pytest.fixture
def bungee(keypair, unsigned_tx):
    provider = MagicMock()
    provider.quote = AsyncMock(return_value=quote_payload())
    provider.build_tx = AsyncMock(return_value={"success": True, "result": {"txData": unsigned_tx(keypair)}})
    provider.bridge_status = AsyncMock(return_value={"success": True, "result": [{"bridgeTxId": "bungee-123"}]})
    return provider


def make_executor(rpc, bungee):
    return BridgeExecutor(rpc, bungee, min_amount_sol=Decimal("0.05"), fee_reserve_lamports=5000)


def params(**overrides):
    values = {"from_chain": "solana", "to_chain": "base", "to_address": EVM_ADDRESS, "amount": "0.1"}
    values.update(overrides)
    return values


# =============================================================================
# Validation
# =============================================================================

class TestBridgeValidation:
    """Input checks that happen before any network call."""

    @pytest.mark.asyncio
    async def test_unknown_destination_chain(self, fake_rpc, bungee, keypair):
        with pytest.raises(ValidationFailed) as exc_info:
            await make_executor(fake_rpc(), bungee).execute(keypair, params(to_chain="narnia"))
        assert exc_info.value.param == "to_chain"

    @pytest.mark.asyncio
    async def test_only_solana_to_evm(self, fake_rpc, bungee, keypair):
        with pytest.raises(ValidationFailed):
            await make_executor(fake_rpc(), bungee).execute(keypair, params(from_chain="base", to_chain="solana"))

    @pytest.mark.asyncio
    async def test_invalid_destination_address(self, fake_rpc, bungee, keypair):
        with pytest.raises(ValidationFailed) as exc_info:
            await make_executor(fake_rpc(), bungee).execute(keypair, params(to_address="0x123"))
        assert exc_info.value.param == "to_address"

    @pytest.mark.asyncio
    async def test_unsupported_token(self, fake_rpc, bungee, keypair):
        with pytest.raises(ValidationFailed) as exc_info:
            await make_executor(fake_rpc(), bungee).execute(keypair, params(token="WSOL"))
        assert exc_info.value.param == "token"

    @pytest.mark.asyncio
    async def test_below_minimum_before_network(self, fake_rpc, bungee, keypair):
        rpc = fake_rpc()
        with pytest.raises(NoRoute) as exc_info:
            await make_executor(rpc, bungee).execute(keypair, params(amount="0.01"))

        assert "0.05" in exc_info.value.message
        rpc.get_balance.assert_not_awaited()
        bungee.quote.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_percentage_below_minimum(self, fake_rpc, bungee, keypair):
        rpc = fake_rpc(balance=100_000_000)
        with pytest.raises(NoRoute):
            await make_executor(rpc, bungee).execute(keypair, params(amount=None, percentage="10"))
        bungee.quote.assert_not_awaited()

    def test_shorten_address(self):
        assert shorten_address(EVM_ADDRESS) == "0x123456...12345678"
        assert shorten_address("0xabc") == "0xabc"


# =============================================================================
# Quote and submission
# =============================================================================

class TestBridgeExecute:
    """Tests for BridgeExecutor.execute."""

    @pytest.mark.asyncio
    async def test_native_sol_to_base(self, fake_rpc, bungee, keypair):
        rpc = fake_rpc(balance=1_000_000_000)
        result = await make_executor(rpc, bungee).execute(keypair, params())

        assert result.succeeded
        assert result.data["amount"] == "0.1"
        assert result.data["token"] == "SOL"
        assert result.data["to_chain"] == "base"
        assert result.data["destination"] == "0x123456...12345678"
        assert result.data["output_token"] == "native"
        assert result.data["estimated_time"] == "~3 minutes"
        assert result.data["tracking_id"] == "bungee-123"
        assert rpc.built[0].last_valid_block_height == 777

        sent = bungee.quote.await_args.args[0]
        assert sent["originChainId"] == 89999
        assert sent["destinationChainId"] == 8453
        assert sent["inputToken"] == NATIVE_PLACEHOLDER
        assert sent["inputAmount"] == "100000000"
        assert sent["receiverAddress"] == EVM_ADDRESS
        bungee.build_tx.assert_awaited_once_with("q-auto")

    @pytest.mark.asyncio
    async def test_usdc_to_base_usdc(self, fake_rpc, bungee, keypair):
        rpc = fake_rpc(token_balance=50_000_000)
        result = await make_executor(rpc, bungee).execute(
            keypair, params(token="USDC", to_token="USDC", amount="20")
        )

        sent = bungee.quote.await_args.args[0]
        assert sent["inputToken"] == USDC_MINT
        assert sent["outputToken"] == BASE_USDC
        assert sent["inputAmount"] == "20000000"
        assert result.data["output_token"] == BASE_USDC
        rpc.get_balance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_best_manual_route(self, fake_rpc, bungee, keypair):
        bungee.quote.return_value = quote_payload(manualRoutes=[
            {"quoteId": "m-low", "name": "Slow", "output": {"effectiveReceivedInUsd": 9.0}},
            {"quoteId": "m-high", "name": "Fast", "output": {"effectiveReceivedInUsd": 9.8}},
        ])
        result = await make_executor(fake_rpc(), bungee).execute(keypair, params())

        bungee.build_tx.assert_awaited_once_with("m-high")
        assert result.data["route"] == "Fast"
        assert result.data["estimated_time"] == "3-5 minutes"

    @pytest.mark.asyncio
    async def test_no_routes(self, fake_rpc, bungee, keypair):
        bungee.quote.return_value = {"success": True, "result": {"manualRoutes": []}}
        with pytest.raises(NoRoute) as exc_info:
            await make_executor(fake_rpc(), bungee).execute(keypair, params())
        assert "USDC on base" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_unrecognized_quote_shape(self, fake_rpc, bungee, keypair):
        bungee.quote.return_value = {"weird": True}
        with pytest.raises(NoRoute):
            await make_executor(fake_rpc(), bungee).execute(keypair, params())

    @pytest.mark.asyncio
    async def test_quote_rejected_by_provider(self, fake_rpc, bungee, keypair):
        bungee.quote.side_effect = BungeeError("Bungee API error (400)", status_code=400, body="amount too low")
        with pytest.raises(NoRoute) as exc_info:
            await make_executor(fake_rpc(), bungee).execute(keypair, params())
        assert "amount too low" in exc_info.value.message

    @pytest.mark.asyncio
    async def test_provider_unreachable(self, fake_rpc, bungee, keypair):
        bungee.quote.side_effect = BungeeError("All Bungee hosts failed")
        with pytest.raises(NetworkFailed):
            await make_executor(fake_rpc(), bungee).execute(keypair, params())

    @pytest.mark.asyncio
    async def test_instruction_payload(self, fake_rpc, bungee, keypair):
        ix = transfer(TransferParams(from_pubkey=keypair.pubkey(), to_pubkey=Keypair().pubkey(), lamports=10))
        bungee.build_tx.return_value = {"result": {"txData": {
            "instructions": [{
                "programId": str(SYSTEM_PROGRAM_ID),
                "keys": [{"pubkey": str(meta.pubkey), "isSigner": meta.is_signer, "isWritable": meta.is_writable}
                         for meta in ix.accounts],
                "data": base64.b64encode(bytes(ix.data)).decode(),
            }],
            "lookupTables": ["9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"],
        }}}
        rpc = fake_rpc()

        result = await make_executor(rpc, bungee).execute(keypair, params())

        tx = VersionedTransaction.from_bytes(rpc.built[0].raw)
        assert tx.message.account_keys[0] == keypair.pubkey()
        assert result.succeeded
        rpc.session_double.get_account_data.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_missing_transaction(self, fake_rpc, bungee, keypair):
        bungee.build_tx.return_value = {"result": {}}
        with pytest.raises(TransactionBuildError):
            await make_executor(fake_rpc(), bungee).execute(keypair, params())

    @pytest.mark.asyncio
    async def test_status_lookup_failure_is_ignored(self, fake_rpc, bungee, keypair):
        bungee.bridge_status.side_effect = BungeeError("Bungee API error (500)", status_code=500)
        rpc = fake_rpc()
        result = await make_executor(rpc, bungee).execute(keypair, params())

        assert result.succeeded
        assert result.data["tracking_id"] is None

    @pytest.mark.asyncio
    async def test_status_without_id_uses_signature(self, fake_rpc, bungee, keypair):
        bungee.bridge_status.return_value = {"success": True, "result": []}
        result = await make_executor(fake_rpc(), bungee).execute(keypair, params())
        assert result.data["tracking_id"] == result.transaction_id
