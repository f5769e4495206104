"""
Tests for native SOL transfers.
"""

import pytest
from unittest.mock import AsyncMock, MagicMock
from solders.hash import Hash
from solders.keypair import Keypair
from solders.transaction import Transaction

from chatwallet.core.errors import ExecutionStatus, InsufficientFunds, RecipientNotFound, ValidationFailed
from chatwallet.core.execution import SubmissionResult, TransferExecutor
from chatwallet.core.recipient import RecipientForm, ResolvedRecipient

RECIPIENT = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"


def make_rpc(balance: int = 2_000_000_000):
    """RPC double whose submit() runs the build callback against a fake session."""
    rpc = MagicMock()
    rpc.get_balance = AsyncMock(return_value=balance)
    rpc.built = []

    session = MagicMock()
    session.get_latest_blockhash = AsyncMock(return_value=(str(Hash.default()), 321))

    async def submit(build, *, label="transaction"):
        signed = await build(session)
        rpc.built.append(signed)
        return SubmissionResult(signature=signed.signature, endpoint="https://rpc.test", slot=9)

    rpc.submit = AsyncMock(side_effect=submit)
    return rpc


def make_recipients(resolved: ResolvedRecipient = None, error: Exception = None):
    recipients = MagicMock()
    if error is not None:
        recipients.resolve = AsyncMock(side_effect=error)
    else:
        recipients.resolve = AsyncMock(
            return_value=resolved or ResolvedRecipient(RECIPIENT, RecipientForm.ADDRESS, original=RECIPIENT)
        )
    return recipients


class TestTransferExecutor:
    """Tests for TransferExecutor.execute."""

    @pytest.mark.asyncio
    async def test_literal_amount(self):
        rpc = make_rpc()
        executor = TransferExecutor(rpc, make_recipients())

        result = await executor.execute(Keypair(), {"amount": "0.5", "recipient": RECIPIENT})

        assert result.status == ExecutionStatus.SUCCESS
        assert result.data["lamports"] == 500_000_000
        assert result.data["amount"] == "0.5"
        assert result.data["recipient"] == RECIPIENT
        assert result.data["handle_owner_id"] is None
        assert result.transaction_id == rpc.built[0].signature
        assert rpc.built[0].last_valid_block_height == 321
        rpc.submit.assert_awaited_once()
        assert rpc.submit.await_args.kwargs["label"] == "transfer"

    @pytest.mark.asyncio
    async def test_signed_transaction_pays_recipient(self):
        rpc = make_rpc()
        sender = Keypair()
        await TransferExecutor(rpc, make_recipients()).execute(sender, {"amount": "1", "recipient": RECIPIENT})

        tx = Transaction.from_bytes(rpc.built[0].raw)
        keys = [str(key) for key in tx.message.account_keys]
        assert keys[0] == str(sender.pubkey())
        assert RECIPIENT in keys

    @pytest.mark.asyncio
    async def test_all_keeps_fee_reserve(self):
        rpc = make_rpc(balance=1_000_000_000)
        executor = TransferExecutor(rpc, make_recipients(), fee_reserve_lamports=5000)

        result = await executor.execute(Keypair(), {"amount": "all", "recipient": RECIPIENT})

        assert result.data["lamports"] == 999_995_000

    @pytest.mark.asyncio
    async def test_percentage(self):
        rpc = make_rpc(balance=1_000_000_000)
        result = await TransferExecutor(rpc, make_recipients()).execute(
            Keypair(), {"percentage": "25", "recipient": RECIPIENT}
        )
        assert result.data["lamports"] == 250_000_000

    @pytest.mark.asyncio
    async def test_handle_recipient_is_reported(self):
        resolved = ResolvedRecipient(RECIPIENT, RecipientForm.HANDLE, handle_owner_id=42, original="@bob")
        result = await TransferExecutor(make_rpc(), make_recipients(resolved)).execute(
            Keypair(), {"amount": "0.1", "recipient": "@bob"}
        )
        assert result.data["recipient"] == "@bob"
        assert result.data["handle_owner_id"] == 42
        assert result.data["recipient_form"] == "handle"

    @pytest.mark.asyncio
    async def test_insufficient_balance_never_submits(self):
        rpc = make_rpc(balance=100_000_000)
        with pytest.raises(InsufficientFunds):
            await TransferExecutor(rpc, make_recipients()).execute(Keypair(), {"amount": "1", "recipient": RECIPIENT})
        rpc.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_absurd_amount_is_rejected_before_balance(self):
        rpc = make_rpc()

        with pytest.raises(ValidationFailed) as exc_info:
            await TransferExecutor(rpc, make_recipients()).execute(
                Keypair(), {"amount": "100000000000000000000", "recipient": RECIPIENT}
            )
        assert exc_info.value.param == "amount"
        rpc.get_balance.assert_not_awaited()
        rpc.submit.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unknown_recipient_skips_balance(self):
        rpc = make_rpc()
        recipients = make_recipients(error=RecipientNotFound("@ghost"))
        with pytest.raises(RecipientNotFound):
            await TransferExecutor(rpc, recipients).execute(Keypair(), {"amount": "1", "recipient": "@ghost"})
        rpc.get_balance.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_send_to_self_rejected(self):
        sender = Keypair()
        own = str(sender.pubkey())
        recipients = make_recipients(ResolvedRecipient(own, RecipientForm.ADDRESS, original=own))
        with pytest.raises(ValidationFailed) as exc_info:
            await TransferExecutor(make_rpc(), recipients).execute(sender, {"amount": "1", "recipient": own})
        assert exc_info.value.param == "recipient"

    @pytest.mark.asyncio
    async def test_only_sol(self):
        with pytest.raises(ValidationFailed) as exc_info:
            await TransferExecutor(make_rpc(), make_recipients()).execute(
                Keypair(), {"amount": "1", "recipient": RECIPIENT, "token": "usdc"}
            )
        assert exc_info.value.param == "token"

    @pytest.mark.asyncio
    async def test_invalid_amount(self):
        rpc = make_rpc()
        with pytest.raises(ValidationFailed):
            await TransferExecutor(rpc, make_recipients()).execute(Keypair(), {"amount": "lots", "recipient": RECIPIENT})
        rpc.submit.assert_not_awaited()
