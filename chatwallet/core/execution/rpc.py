"""
Resilient Solana RPC client.

One pooled HTTP client, an ordered list of endpoints and one shared retry
policy. Reads fall back endpoint by endpoint; submissions rebuild the
transaction for every endpoint attempt and never broadcast a second
transaction while an earlier one could still land.
"""

from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import httpx

from ..errors import InsufficientFunds, NetworkFailed, OnChainFailed, ValidationFailed, WalletOperationError
from ..recovery import (
    ErrorCategory,
    ErrorContext,
    RecoverableError,
    RetryPolicy,
    RpcError,
    UnrecoverableError,
    to_recovery_error,
)

logger = logging.getLogger(__name__)

TOKEN_PROGRAM_ID = "TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA"
LANDED_STATUSES = ("confirmed", "finalized")


@dataclass
class SignedTransaction:
    """A fully signed transaction ready for broadcast."""
    raw: bytes
    signature: str
    blockhash: str
    last_valid_block_height: Optional[int] = None

    @property
    def encoded(self) -> str:
        return base64.b64encode(self.raw).decode()


@dataclass
class SubmissionResult:
    """Where and how a transaction landed."""
    signature: str
    endpoint: str
    slot: Optional[int] = None
    attempts: int = 1


BuildFn = Callable[["RpcSession"], Awaitable[SignedTransaction]]


class RpcSession:
    """JSON-RPC calls pinned to a single endpoint."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str,
        policy: RetryPolicy,
        commitment: str = "confirmed",
    ):
        self._client = client
        self.url = url
        self.policy = policy
        self.commitment = commitment

    async def request(self, method: str, params: List[Any]) -> Any:
        """Single attempt; errors come back classified."""
        payload = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        try:
            response = await self._client.post(
                self.url,
                json=payload,
                headers={"Content-Type": "application/json"},
            )
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            error = to_recovery_error(
                RpcError(status, f"HTTP {status}: {exc.response.text[:200]}"), self.url
            )
            # A 4xx means the node refused the request; a 5xx may come from a proxy after forwarding it
            error.context.ambiguous = status >= 500
            raise error from exc
        except httpx.TimeoutException as exc:
            raise RecoverableError(
                f"{method} timed out",
                category=ErrorCategory.TIMEOUT,
                context=ErrorContext(
                    category=ErrorCategory.TIMEOUT,
                    endpoint=self.url,
                    ambiguous=not isinstance(exc, (httpx.ConnectTimeout, httpx.PoolTimeout)),
                ),
            ) from exc
        except httpx.RequestError as exc:
            raise RecoverableError(
                f"connection error: {exc}",
                category=ErrorCategory.NETWORK,
                context=ErrorContext(
                    category=ErrorCategory.NETWORK,
                    endpoint=self.url,
                    ambiguous=not isinstance(exc, httpx.ConnectError),
                ),
            ) from exc
        except ValueError as exc:
            raise RecoverableError(
                f"{method} returned a non-JSON body",
                category=ErrorCategory.UNKNOWN,
                context=ErrorContext(endpoint=self.url, ambiguous=True),
            ) from exc

        error = data.get("error") if isinstance(data, dict) else None
        if error:
            if isinstance(error, dict):
                raw = RpcError(error.get("code"), error.get("message", str(error)), error.get("data"))
            else:
                raw = RpcError(None, str(error))
            raise to_recovery_error(raw, self.url)
        return data.get("result") if isinstance(data, dict) else None

    async def call(self, method: str, params: List[Any]) -> Any:
        return await self.policy.run(
            lambda: self.request(method, params),
            label=method,
            endpoint=self.url,
            logger=logger,
        )

    async def get_latest_blockhash(self) -> Tuple[str, Optional[int]]:
        result = await self.call("getLatestBlockhash", [{"commitment": self.commitment}])
        value = (result or {}).get("value") or {}
        blockhash = value.get("blockhash")
        if not blockhash:
            raise RecoverableError("getLatestBlockhash returned no blockhash", category=ErrorCategory.UNKNOWN)
        return blockhash, value.get("lastValidBlockHeight")

    async def get_block_height(self) -> int:
        result = await self.call("getBlockHeight", [{"commitment": self.commitment}])
        return int(result or 0)

    async def is_blockhash_valid(self, blockhash: str) -> bool:
        result = await self.call("isBlockhashValid", [blockhash, {"commitment": self.commitment}])
        return bool((result or {}).get("value"))

    async def get_signature_statuses(self, signatures: Sequence[str]) -> List[Optional[Dict[str, Any]]]:
        result = await self.call(
            "getSignatureStatuses",
            [list(signatures), {"searchTransactionHistory": True}],
        )
        values = list((result or {}).get("value") or [])
        values.extend([None] * (len(signatures) - len(values)))
        return values

    async def get_account_data(self, address: str) -> Optional[bytes]:
        result = await self.call("getAccountInfo", [address, {"encoding": "base64"}])
        value = (result or {}).get("value")
        if not value:
            return None
        data = value.get("data") or []
        return base64.b64decode(data[0]) if data else None

    async def send_transaction(self, signed: SignedTransaction) -> str:
        """Broadcast ``signed``; transient failures resend the identical bytes.

        The final error is marked ambiguous when any try may have reached
        the node, since an earlier copy of the same bytes can still land.
        """
        in_flight = False
        params = [
            signed.encoded,
            {
                "encoding": "base64",
                "skipPreflight": False,
                "preflightCommitment": self.commitment,
                "maxRetries": 0,
            },
        ]

        async def send() -> str:
            nonlocal in_flight
            try:
                return await self.request("sendTransaction", params) or signed.signature
            except (RecoverableError, UnrecoverableError) as exc:
                if "already been processed" in exc.message.lower():
                    return signed.signature
                in_flight = in_flight or exc.context.ambiguous
                raise

        try:
            return await self.policy.run(send, label="sendTransaction", endpoint=self.url, logger=logger)
        except (RecoverableError, UnrecoverableError) as exc:
            exc.context.ambiguous = exc.context.ambiguous or in_flight
            raise


class ResilientRpcClient:
    """
    Solana RPC access with endpoint fallback.

    Usage:
        client = ResilientRpcClient(["https://primary", "https://fallback"])
        balance = await client.get_balance(address)
        result = await client.submit(build_transfer)
    """

    def __init__(
        self,
        endpoints: Sequence[str],
        *,
        policy: Optional[RetryPolicy] = None,
        commitment: str = "confirmed",
        timeout_s: float = 30.0,
        confirm_timeout_s: float = 60.0,
        poll_interval_s: float = 1.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        ordered: List[str] = []
        for url in endpoints:
            cleaned = (url or "").strip().rstrip("/")
            if cleaned and cleaned not in ordered:
                ordered.append(cleaned)
        if not ordered:
            raise ValueError("At least one RPC endpoint is required")

        self.endpoints = ordered
        self.policy = policy or RetryPolicy()
        self.commitment = commitment
        self.confirm_timeout_s = confirm_timeout_s
        self.poll_interval_s = poll_interval_s
        self._client = http_client or httpx.AsyncClient(timeout=timeout_s)

    def session(self, url: str) -> RpcSession:
        return RpcSession(self._client, url, self.policy, self.commitment)

    async def close(self) -> None:
        await self._client.aclose()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def call(self, method: str, params: List[Any]) -> Any:
        """Call ``method``, falling back through endpoints on transient failure."""
        last_error: Optional[Exception] = None
        for url in self.endpoints:
            try:
                return await self.session(url).call(method, params)
            except RecoverableError as exc:
                last_error = exc
                logger.warning("RPC %s failed on %s: %s; trying next endpoint", method, url, exc)
            except UnrecoverableError as exc:
                raise self._terminal(exc) from exc

        raise NetworkFailed(
            "The Solana network is not responding right now. Please try again in a moment.",
            details={"method": method, "last_error": str(last_error) if last_error else None},
        )

    async def with_session(self, operation: Callable[[RpcSession], Awaitable[Any]], label: str) -> Any:
        """Run a multi-call read against one endpoint at a time."""
        last_error: Optional[Exception] = None
        for url in self.endpoints:
            try:
                return await operation(self.session(url))
            except RecoverableError as exc:
                last_error = exc
                logger.warning("%s failed on %s: %s; trying next endpoint", label, url, exc)
            except UnrecoverableError as exc:
                raise self._terminal(exc) from exc
        raise NetworkFailed(
            "The Solana network is not responding right now. Please try again in a moment.",
            details={"operation": label, "last_error": str(last_error) if last_error else None},
        )

    async def get_balance(self, address: str) -> int:
        """Balance in lamports."""
        result = await self.call("getBalance", [address, {"commitment": self.commitment}])
        return int((result or {}).get("value", 0))

    async def get_token_accounts(self, owner: str, mint: Optional[str] = None) -> List[Dict[str, Any]]:
        filter_option = {"mint": mint} if mint else {"programId": TOKEN_PROGRAM_ID}
        result = await self.call(
            "getTokenAccountsByOwner",
            [owner, filter_option, {"encoding": "jsonParsed", "commitment": self.commitment}],
        )

        accounts = []
        for item in (result or {}).get("value", []):
            parsed = item.get("account", {}).get("data", {}).get("parsed", {})
            info = parsed.get("info", {})
            token_amount = info.get("tokenAmount", {})
            accounts.append({
                "address": item.get("pubkey"),
                "mint": info.get("mint"),
                "owner": info.get("owner"),
                "amount": int(token_amount.get("amount", 0)),
                "decimals": token_amount.get("decimals", 0),
            })
        return accounts

    async def get_token_balance(self, owner: str, mint: str) -> int:
        """Total balance of ``mint`` across the owner's token accounts, in base units."""
        accounts = await self.get_token_accounts(owner, mint)
        return sum(account["amount"] for account in accounts)

    async def get_token_decimals(self, mint: str) -> int:
        result = await self.call("getTokenSupply", [mint, {"commitment": self.commitment}])
        value = (result or {}).get("value") or {}
        if "decimals" not in value:
            raise ValidationFailed(f"Unknown token mint: {mint}", param="token")
        return int(value["decimals"])

    async def get_signatures_for_address(self, address: str, limit: int = 10) -> List[Dict[str, Any]]:
        result = await self.call(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": self.commitment}],
        )
        return list(result or [])

    async def get_transaction(self, signature: str) -> Optional[Dict[str, Any]]:
        return await self.call(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "json",
                    "commitment": self.commitment,
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(self, build: BuildFn, *, label: str = "transaction") -> SubmissionResult:
        """Build, sign, broadcast and confirm, falling back through endpoints.

        ``build`` is invoked once per endpoint attempt with a session bound to
        that endpoint so it can fetch a fresh blockhash there. Before any
        fallback attempt every earlier signature that may have reached a node
        is looked up; a landed one is returned as-is and a still-valid one is
        waited on until it lands or expires. Broadcasts the node refused
        outright are forgotten. If that check cannot be completed the
        endpoint is skipped.
        """
        attempts: List[SignedTransaction] = []
        last_error: Optional[Exception] = None

        for url in self.endpoints:
            session = self.session(url)
            try:
                if attempts:
                    landed = await self._wait_for_landing(session, attempts)
                    if landed is not None:
                        return landed

                signed = await build(session)
                try:
                    await session.send_transaction(signed)
                except RecoverableError as exc:
                    # Only a send that may have reached the node is waited on later
                    if exc.context.ambiguous:
                        attempts.append(signed)
                    raise
                attempts.append(signed)
                logger.info("%s broadcast via %s: %s", label, url, signed.signature)

                landed = await self._wait_for_landing(session, attempts)
                if landed is not None:
                    return landed
                last_error = RecoverableError(
                    "blockhash expired before confirmation",
                    category=ErrorCategory.BLOCKHASH_EXPIRED,
                )
                logger.warning("%s expired unconfirmed on %s; trying next endpoint", label, url)
            except RecoverableError as exc:
                last_error = exc
                logger.warning("%s failed on %s: %s; trying next endpoint", label, url, exc)
            except UnrecoverableError as exc:
                raise self._terminal(exc) from exc

        pending = attempts[-1].signature if attempts else None
        if pending and isinstance(last_error, RecoverableError) and last_error.category == ErrorCategory.TIMEOUT:
            message = (
                "The transaction was submitted but not confirmed in time. "
                "Check the explorer before trying again."
            )
        else:
            message = "The Solana network is not responding right now. Nothing was sent; please try again."
        raise NetworkFailed(
            message,
            transaction_id=pending,
            details={"last_error": str(last_error) if last_error else None, "attempts": len(attempts)},
        )

    async def _wait_for_landing(
        self,
        session: RpcSession,
        attempts: Sequence[SignedTransaction],
    ) -> Optional[SubmissionResult]:
        """Poll until one attempt lands (returned) or all have expired (None).

        Raises RecoverableError(TIMEOUT) if an attempt is still live when the
        confirmation window closes.
        """
        deadline = time.monotonic() + self.confirm_timeout_s
        interval = self.poll_interval_s

        while True:
            landed = await self._find_landed(session, attempts)
            if landed is not None:
                return landed

            live = [signed for signed in attempts if not await self._is_expired(session, signed)]
            if not live:
                # One more look: a transaction can land right before its blockhash expires.
                return await self._find_landed(session, attempts)

            if time.monotonic() >= deadline:
                raise RecoverableError(
                    f"confirmation timed out for {live[-1].signature}",
                    category=ErrorCategory.TIMEOUT,
                    context=ErrorContext(
                        category=ErrorCategory.TIMEOUT,
                        endpoint=session.url,
                        signature=live[-1].signature,
                    ),
                )

            await self.policy.sleep(interval)
            interval = min(interval * 1.5, 5.0)

    async def _find_landed(
        self,
        session: RpcSession,
        attempts: Sequence[SignedTransaction],
    ) -> Optional[SubmissionResult]:
        statuses = await session.get_signature_statuses([signed.signature for signed in attempts])
        for signed, status in zip(attempts, statuses):
            if not status or status.get("confirmationStatus") not in LANDED_STATUSES:
                continue
            if status.get("err") is not None:
                raise OnChainFailed(
                    f"Transaction failed on-chain: {status['err']}",
                    transaction_id=signed.signature,
                    details={"err": status["err"], "slot": status.get("slot")},
                )
            return SubmissionResult(
                signature=signed.signature,
                endpoint=session.url,
                slot=status.get("slot"),
                attempts=len(attempts),
            )
        return None

    async def _is_expired(self, session: RpcSession, signed: SignedTransaction) -> bool:
        if signed.last_valid_block_height is not None:
            return await session.get_block_height() > signed.last_valid_block_height
        return not await session.is_blockhash_valid(signed.blockhash)

    def _terminal(self, exc: UnrecoverableError) -> WalletOperationError:
        if exc.category == ErrorCategory.INSUFFICIENT_FUNDS:
            return InsufficientFunds("Insufficient balance for this transaction, including network fees.")
        if exc.category == ErrorCategory.VALIDATION:
            return ValidationFailed(f"The network rejected the request: {exc.message}")
        return OnChainFailed(
            f"Transaction rejected: {exc.message}",
            details=dict(exc.context.details),
        )
