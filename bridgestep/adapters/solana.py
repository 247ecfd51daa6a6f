"""Solana chain-family adapter."""

from __future__ import annotations

import base64
import json
import logging
from pathlib import Path
from typing import Optional, Protocol, Union

from solana.rpc.async_api import AsyncClient
from solana.rpc.commitment import Commitment, Confirmed, Processed
from solana.rpc.types import TxOpts
from solders.keypair import Keypair
from solders.message import to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from ..constants import DEFAULT_BROADCAST_MAX_RETRIES
from ..errors import ErrorCode, TransactionError
from .base import ChainAdapter, ConfirmationResult

logger = logging.getLogger(__name__)


class SolanaSigner(Protocol):
    """Signing agent able to sign and broadcast versioned transactions."""

    @property
    def public_key(self) -> Pubkey:
        ...

    async def send_transaction(
        self,
        transaction: VersionedTransaction,
        client: AsyncClient,
        max_retries: Optional[int] = None,
        skip_preflight: bool = False,
    ) -> str:
        ...


class KeypairSigner:
    """Signs with a local keypair and broadcasts through the RPC client."""

    def __init__(self, keypair: Keypair) -> None:
        self._keypair = keypair

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "KeypairSigner":
        """Load a Solana CLI keypair file (a JSON array of 64 bytes)."""
        raw = json.loads(Path(path).expanduser().read_text())
        return cls(Keypair.from_bytes(bytes(raw)))

    @property
    def public_key(self) -> Pubkey:
        return self._keypair.pubkey()

    def sign(self, transaction: VersionedTransaction) -> VersionedTransaction:
        """Fill in this keypair's signature, keeping co-signer signatures."""
        message = transaction.message
        required = message.header.num_required_signatures
        signer_keys = list(message.account_keys[:required])
        pubkey = self._keypair.pubkey()
        if pubkey not in signer_keys:
            raise TransactionError(
                ErrorCode.TRANSACTION_UNPREPARED,
                f"Transaction does not require a signature from {pubkey}",
            )

        signatures = list(transaction.signatures)
        signatures += [Signature.default()] * (required - len(signatures))
        signatures[signer_keys.index(pubkey)] = self._keypair.sign_message(
            to_bytes_versioned(message)
        )
        return VersionedTransaction.populate(message, signatures)

    async def send_transaction(
        self,
        transaction: VersionedTransaction,
        client: AsyncClient,
        max_retries: Optional[int] = None,
        skip_preflight: bool = False,
    ) -> str:
        signed = self.sign(transaction)
        resp = await client.send_transaction(
            signed,
            opts=TxOpts(skip_preflight=skip_preflight, max_retries=max_retries),
        )
        return str(resp.value)


class SolanaAdapter(ChainAdapter[VersionedTransaction]):
    """Broadcasts base64 encoded versioned transactions.

    Solana has no notion of a replaced transaction, so ``supports_replacement``
    stays off.
    """

    family = "solana"

    def __init__(
        self,
        signer: SolanaSigner,
        client: AsyncClient,
        commitment: Commitment = Confirmed,
        max_retries: int = DEFAULT_BROADCAST_MAX_RETRIES,
        skip_preflight: bool = True,
    ) -> None:
        self._signer = signer
        self._client = client
        self._commitment = commitment
        self._max_retries = max_retries
        self._skip_preflight = skip_preflight

    @property
    def owner_address(self) -> str:
        return str(self._signer.public_key)

    def decode(self, payload: str) -> VersionedTransaction:
        try:
            return VersionedTransaction.from_bytes(base64.b64decode(payload))
        except Exception as exc:
            raise TransactionError(
                ErrorCode.TRANSACTION_UNPREPARED,
                f"Unable to decode transaction payload: {exc}",
                cause=exc,
            ) from exc

    async def send(self, transaction: VersionedTransaction) -> str:
        tx_id = await self._signer.send_transaction(
            transaction,
            self._client,
            max_retries=self._max_retries,
            skip_preflight=self._skip_preflight,
        )
        logger.info(f"Broadcast Solana transaction {tx_id}")
        return tx_id

    async def confirm(self, tx_id: str) -> ConfirmationResult:
        signature = Signature.from_string(tx_id)
        resp = await self._client.confirm_transaction(
            signature, commitment=self._commitment
        )
        status = resp.value[0] if resp.value else None
        error = status.err if status is not None else None
        if error:
            return ConfirmationResult(tx_id=tx_id, error=str(error))
        return ConfirmationResult(tx_id=tx_id, gas_amount=await self._fetch_fee(signature))

    async def _fetch_fee(self, signature: Signature) -> Optional[str]:
        if self._commitment == Processed:
            return None
        resp = await self._client.get_transaction(
            signature,
            commitment=self._commitment,
            max_supported_transaction_version=0,
        )
        if resp.value is None or resp.value.transaction.meta is None:
            return None
        return str(resp.value.transaction.meta.fee)

    async def close(self) -> None:
        await self._client.close()
