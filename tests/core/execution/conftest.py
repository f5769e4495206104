import base64

import pytest
from unittest.mock import AsyncMock, MagicMock
from solders.hash import Hash
from solders.keypair import Keypair
from solders.message import MessageV0
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import VersionedTransaction

from chatwallet.core.execution import SubmissionResult


@pytest.fixture
def unsigned_tx():
    """Factory for a base64 v0 transaction paid by ``payer`` with empty signature slots."""

    def build(payer: Keypair) -> str:
        ix = transfer(TransferParams(from_pubkey=payer.pubkey(), to_pubkey=Keypair().pubkey(), lamports=1))
        message = MessageV0.try_compile(payer.pubkey(), [ix], [], Hash.default())
        tx = VersionedTransaction.populate(message, [Signature.default()] * message.header.num_required_signatures)
        return base64.b64encode(bytes(tx)).decode()

    return build


@pytest.fixture
def fake_rpc():
    """Factory for an RPC double whose submit() runs the build callback once."""

    def build(balance: int = 2_000_000_000, token_balance: int = 0):
        rpc = MagicMock()
        rpc.get_balance = AsyncMock(return_value=balance)
        rpc.get_token_balance = AsyncMock(return_value=token_balance)
        rpc.get_token_decimals = AsyncMock(return_value=6)
        rpc.built = []

        session = MagicMock()
        session.get_latest_blockhash = AsyncMock(return_value=(str(Hash.default()), 777))
        session.get_account_data = AsyncMock(return_value=None)
        rpc.session_double = session

        async def submit(build_fn, *, label="transaction"):
            signed = await build_fn(session)
            rpc.built.append(signed)
            return SubmissionResult(signature=signed.signature, endpoint="https://rpc.test", slot=9)

        rpc.submit = AsyncMock(side_effect=submit)
        return rpc

    return build
