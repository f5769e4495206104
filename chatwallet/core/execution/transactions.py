"""
Solana transaction construction and signing.

Three shapes are produced:
- native SOL transfers built locally
- serialized transactions returned by an aggregator (signed in place)
- instruction lists returned by an aggregator (compiled to a v0 message)
"""

from __future__ import annotations

import base64
import binascii
from typing import Any, Dict, Iterable, List, Optional, Sequence, Union

from solders.address_lookup_table_account import AddressLookupTable, AddressLookupTableAccount
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message, MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction, VersionedTransaction

from ..errors import ValidationFailed
from .rpc import SignedTransaction


class TransactionBuildError(ValidationFailed):
    """Aggregator payload could not be turned into a signed transaction."""


def parse_pubkey(value: str) -> Pubkey:
    try:
        return Pubkey.from_string(value.strip())
    except ValueError as exc:
        raise ValidationFailed(f"Invalid Solana address: {value}", param="recipient") from exc


def build_transfer(
    keypair: Keypair,
    recipient: Pubkey,
    lamports: int,
    blockhash: str,
    last_valid_block_height: Optional[int] = None,
) -> SignedTransaction:
    """System-program transfer from ``keypair`` to ``recipient``."""
    instruction = transfer(
        TransferParams(from_pubkey=keypair.pubkey(), to_pubkey=recipient, lamports=lamports)
    )
    tx = Transaction.new_signed_with_payer(
        [instruction],
        keypair.pubkey(),
        [keypair],
        Hash.from_string(blockhash),
    )
    return SignedTransaction(
        raw=bytes(tx),
        signature=str(tx.signatures[0]),
        blockhash=blockhash,
        last_valid_block_height=last_valid_block_height,
    )


def sign_serialized(
    encoded: str,
    signers: Sequence[Keypair],
    last_valid_block_height: Optional[int] = None,
) -> SignedTransaction:
    """Sign a base64 serialized versioned transaction produced elsewhere."""
    try:
        unsigned = VersionedTransaction.from_bytes(base64.b64decode(encoded))
    except (binascii.Error, ValueError) as exc:
        raise TransactionBuildError(f"Malformed transaction payload: {exc}") from exc

    tx = _sign_message(unsigned.message, signers, list(unsigned.signatures))
    return SignedTransaction(
        raw=bytes(tx),
        signature=str(tx.signatures[0]),
        blockhash=str(unsigned.message.recent_blockhash),
        last_valid_block_height=last_valid_block_height,
    )


def parse_instructions(raw_instructions: Iterable[Dict[str, Any]]) -> List[Instruction]:
    instructions: List[Instruction] = []
    try:
        for raw in raw_instructions:
            accounts = [
                AccountMeta(
                    Pubkey.from_string(key["pubkey"]),
                    bool(key.get("isSigner")),
                    bool(key.get("isWritable")),
                )
                for key in raw.get("keys", [])
            ]
            instructions.append(
                Instruction(
                    Pubkey.from_string(raw["programId"]),
                    base64.b64decode(raw.get("data") or ""),
                    accounts,
                )
            )
    except (KeyError, TypeError, ValueError, binascii.Error) as exc:
        raise TransactionBuildError(f"Malformed instruction in payload: {exc}") from exc
    return instructions


def parse_lookup_table(address: str, data: bytes) -> AddressLookupTableAccount:
    table = AddressLookupTable.deserialize(data)
    return AddressLookupTableAccount(Pubkey.from_string(address), list(table.addresses))


def keypairs_from_secrets(secrets: Iterable[Sequence[int]]) -> List[Keypair]:
    try:
        return [Keypair.from_bytes(bytes(secret)) for secret in secrets]
    except (TypeError, ValueError) as exc:
        raise TransactionBuildError(f"Malformed signer in payload: {exc}") from exc


def compile_instructions(
    payer: Keypair,
    instructions: Sequence[Instruction],
    lookup_tables: Sequence[AddressLookupTableAccount],
    blockhash: str,
    extra_signers: Sequence[Keypair] = (),
    last_valid_block_height: Optional[int] = None,
) -> SignedTransaction:
    """Compile a v0 message paid by ``payer`` and sign it."""
    try:
        message = MessageV0.try_compile(
            payer.pubkey(),
            list(instructions),
            list(lookup_tables),
            Hash.from_string(blockhash),
        )
    except Exception as exc:
        raise TransactionBuildError(f"Could not compile transaction: {exc}") from exc

    tx = _sign_message(message, [payer, *extra_signers])
    return SignedTransaction(
        raw=bytes(tx),
        signature=str(tx.signatures[0]),
        blockhash=blockhash,
        last_valid_block_height=last_valid_block_height,
    )


def _sign_message(
    message: Union[Message, MessageV0],
    signers: Sequence[Keypair],
    existing: Optional[List[Signature]] = None,
) -> VersionedTransaction:
    """Place each signer's signature at its required-signer slot."""
    required = message.header.num_required_signatures
    signer_keys = list(message.account_keys[:required])
    signatures = list(existing or [])[:required]
    signatures.extend([Signature.default()] * (required - len(signatures)))

    payload = to_bytes_versioned(message)
    for signer in signers:
        pubkey = signer.pubkey()
        if pubkey in signer_keys:
            signatures[signer_keys.index(pubkey)] = signer.sign_message(payload)

    missing = [str(key) for key, sig in zip(signer_keys, signatures) if sig == Signature.default()]
    if missing:
        raise TransactionBuildError(f"Transaction requires signatures from: {', '.join(missing)}")

    return VersionedTransaction.populate(message, signatures)
