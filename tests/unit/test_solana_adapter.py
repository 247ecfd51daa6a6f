"""Solana adapter tests against fake RPC clients."""

import base64
import json
from types import SimpleNamespace

import pytest
from solana.rpc.commitment import Confirmed, Processed
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import MessageV0, to_bytes_versioned
from solders.pubkey import Pubkey
from solders.signature import Signature
from solders.transaction import VersionedTransaction

from bridgestep.adapters import SolanaAdapter, get_adapter
from bridgestep.adapters.solana import KeypairSigner
from bridgestep.config import BridgestepConfig
from bridgestep.errors import ErrorCode, TransactionError


def _transaction(payer: Keypair) -> VersionedTransaction:
    message = MessageV0.try_compile(payer.pubkey(), [], [], Hash.default())
    return VersionedTransaction(message, [payer])


class FakeRpcClient:
    def __init__(self, err=None, fee=5000):
        self.err = err
        self.fee = fee
        self.sent = []
        self.confirm_calls = []
        self.get_transaction_calls = []
        self.closed = False

    async def send_transaction(self, transaction, opts=None):
        self.sent.append((transaction, opts))
        return SimpleNamespace(value=transaction.signatures[0])

    async def confirm_transaction(self, signature, commitment=None):
        self.confirm_calls.append((signature, commitment))
        return SimpleNamespace(value=[SimpleNamespace(err=self.err)])

    async def get_transaction(self, signature, commitment=None, max_supported_transaction_version=None):
        self.get_transaction_calls.append(max_supported_transaction_version)
        meta = SimpleNamespace(fee=self.fee)
        return SimpleNamespace(value=SimpleNamespace(transaction=SimpleNamespace(meta=meta)))

    async def close(self):
        self.closed = True


def test_decode_round_trips_wire_payload():
    payer = Keypair()
    transaction = _transaction(payer)
    adapter = SolanaAdapter(KeypairSigner(payer), FakeRpcClient())

    decoded = adapter.decode(base64.b64encode(bytes(transaction)).decode())

    assert decoded.message == transaction.message


def test_decode_rejects_garbage():
    adapter = SolanaAdapter(KeypairSigner(Keypair()), FakeRpcClient())

    with pytest.raises(TransactionError) as exc_info:
        adapter.decode(base64.b64encode(b"not a transaction").decode())

    assert exc_info.value.code == ErrorCode.TRANSACTION_UNPREPARED


@pytest.mark.asyncio
async def test_send_signs_with_keypair():
    payer = Keypair()
    client = FakeRpcClient()
    adapter = SolanaAdapter(KeypairSigner(payer), client, max_retries=3, skip_preflight=True)

    tx_id = await adapter.send(_transaction(payer))

    signed, opts = client.sent[0]
    assert tx_id == str(signed.signatures[0])
    assert opts.max_retries == 3
    assert opts.skip_preflight is True
    assert adapter.owner_address == str(payer.pubkey())


@pytest.mark.asyncio
async def test_confirm_reads_fee():
    client = FakeRpcClient(fee=5000)
    adapter = SolanaAdapter(KeypairSigner(Keypair()), client, commitment=Confirmed)
    tx_id = str(Signature.default())

    result = await adapter.confirm(tx_id)

    assert result.ok
    assert result.gas_amount == "5000"
    assert client.confirm_calls[0] == (Signature.default(), Confirmed)
    assert client.get_transaction_calls == [0]


@pytest.mark.asyncio
async def test_confirm_reports_on_chain_error():
    client = FakeRpcClient(err="InstructionError(0, Custom(1))")
    adapter = SolanaAdapter(KeypairSigner(Keypair()), client)

    result = await adapter.confirm(str(Signature.default()))

    assert not result.ok
    assert "Custom(1)" in result.error
    assert client.get_transaction_calls == []


@pytest.mark.asyncio
async def test_processed_commitment_skips_fee_lookup():
    client = FakeRpcClient()
    adapter = SolanaAdapter(KeypairSigner(Keypair()), client, commitment=Processed)

    result = await adapter.confirm(str(Signature.default()))

    assert result.ok
    assert result.gas_amount is None
    assert client.get_transaction_calls == []


@pytest.mark.asyncio
async def test_get_adapter_uses_config_and_shared_client():
    client = FakeRpcClient()
    config = BridgestepConfig.model_validate({"solana": {"max_retries": 7}})

    adapter = get_adapter(KeypairSigner(Keypair()), "Solana", config=config, client=client)
    await adapter.close()

    assert isinstance(adapter, SolanaAdapter)
    assert adapter._max_retries == 7
    assert client.closed


def test_get_adapter_rejects_unknown_family():
    with pytest.raises(ValueError):
        get_adapter(KeypairSigner(Keypair()), "evm", config=BridgestepConfig())


def test_keypair_signer_from_file(tmp_path):
    keypair = Keypair()
    path = tmp_path / "id.json"
    path.write_text(json.dumps(list(bytes(keypair))))

    signer = KeypairSigner.from_file(path)

    assert signer.public_key == keypair.pubkey()


def _co_signed_message(payer: Keypair, co_signer: Keypair) -> MessageV0:
    instruction = Instruction(
        Pubkey.new_unique(), b"", [AccountMeta(co_signer.pubkey(), True, False)]
    )
    return MessageV0.try_compile(payer.pubkey(), [instruction], [], Hash.default())


def test_sign_keeps_co_signer_signature():
    payer, co_signer = Keypair(), Keypair()
    message = _co_signed_message(payer, co_signer)
    co_signature = co_signer.sign_message(to_bytes_versioned(message))
    partially_signed = VersionedTransaction.populate(message, [Signature.default(), co_signature])

    signed = KeypairSigner(payer).sign(partially_signed)

    assert signed.signatures[0] == payer.sign_message(to_bytes_versioned(message))
    assert signed.signatures[1] == co_signature


def test_sign_rejects_foreign_transaction():
    payer = Keypair()

    with pytest.raises(TransactionError) as exc_info:
        KeypairSigner(Keypair()).sign(_transaction(payer))

    assert exc_info.value.code == ErrorCode.TRANSACTION_UNPREPARED
