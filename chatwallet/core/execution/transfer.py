"""Native SOL transfers."""

from __future__ import annotations

import logging
from typing import Any, Dict

from solders.keypair import Keypair

from ..amounts import SOL_DECIMALS, format_decimal, from_base_units, parse_amount, resolve_amount
from ..errors import ValidationFailed
from ..intent.models import ActionKind
from ..recipient import RecipientForm, RecipientResolver
from .models import ExecutionResult
from .rpc import ResilientRpcClient, RpcSession, SignedTransaction
from .transactions import build_transfer, parse_pubkey

logger = logging.getLogger(__name__)


class TransferExecutor:
    def __init__(
        self,
        rpc: ResilientRpcClient,
        recipients: RecipientResolver,
        *,
        fee_reserve_lamports: int = 5000,
    ):
        self.rpc = rpc
        self.recipients = recipients
        self.fee_reserve_lamports = fee_reserve_lamports

    async def execute(self, keypair: Keypair, params: Dict[str, Any]) -> ExecutionResult:
        token = str(params.get("token") or "SOL").strip().upper()
        if token != "SOL":
            raise ValidationFailed(
                f"Only SOL can be sent directly. To move {token}, swap it to SOL first.",
                param="token",
                suggestion="Try \"swap all USDC to SOL\" and then send the SOL.",
            )

        spec = parse_amount(params.get("amount"), params.get("percentage"))
        sender = str(keypair.pubkey())

        # Resolve before converting so a bad recipient never costs an RPC balance call
        recipient = await self.recipients.resolve(str(params.get("recipient", "")))
        if recipient.canonical_address == sender:
            raise ValidationFailed(
                "You can't send SOL to your own wallet.",
                param="recipient",
            )
        to_pubkey = parse_pubkey(recipient.canonical_address)

        balance = await self.rpc.get_balance(sender)
        lamports = resolve_amount(
            spec,
            balance,
            SOL_DECIMALS,
            reserve=self.fee_reserve_lamports,
            symbol="SOL",
        )

        async def build(session: RpcSession) -> SignedTransaction:
            blockhash, last_valid = await session.get_latest_blockhash()
            return build_transfer(keypair, to_pubkey, lamports, blockhash, last_valid)

        logger.info("Transferring %d lamports from %s to %s", lamports, sender, recipient.canonical_address)
        submission = await self.rpc.submit(build, label="transfer")

        return ExecutionResult.success(
            ActionKind.TRANSFER,
            submission.signature,
            amount=format_decimal(from_base_units(lamports, SOL_DECIMALS), 9),
            lamports=lamports,
            token="SOL",
            recipient=recipient.display,
            recipient_address=recipient.canonical_address,
            recipient_form=recipient.source_form.value,
            handle_owner_id=recipient.handle_owner_id if recipient.source_form == RecipientForm.HANDLE else None,
            endpoint=submission.endpoint,
        )
