import itertools

import pytest
from cfx_account.messages import encode_defunct as cfx_encode_defunct
from eth_account.messages import encode_defunct as eth_encode_defunct

from w3gw.config.schema import ConfluxConfig
from w3gw.providers.conflux import ConfluxProvider
from w3gw.utils.exceptions import GasPriceExceededError, NoSigningKeyError, UnsupportedFilterError
from w3gw.wallets.conflux import ConfluxWallet, derive_conflux_accounts

ALICE = "cfx:aak2rra2njvd77ezwjvx04kkds9fzagfe6ku8scz91"
BOB = "cfx:aaejuaaaaaaaaaaaaaaaaaaaaaaaaaaaaj1ut1v9d5"
EST = {"gasLimit": "0x5208", "gasUsed": "0x5208", "storageCollateralized": "0x40"}


class _Signed:
    def __init__(self, raw: bytes = b"", signature: bytes = b""):
        self.raw_transaction = raw
        self.signature = signature


class _FakeCfxAccount:
    def __init__(self, address):
        self.address = address
        self.signed = []
        self.messages = []

    def sign_transaction(self, tx):
        self.signed.append(tx)
        return _Signed(raw=b"\x01\x02")

    def sign_message(self, message):
        self.messages.append(message)
        return _Signed(signature=b"\xaa\xbb")


def _node(fake_upstream, **extra):
    responses = {
        "cfx_epochNumber": "0x64",
        "cfx_getNextNonce": "0x2",
        "cfx_gasPrice": "0x1",
        "cfx_estimateGasAndCollateral": EST,
        "cfx_sendRawTransaction": "0xfeed",
        "cfx_call": "0x",
    }
    responses.update(extra)
    return fake_upstream(responses)


def _wallet(node, **config):
    provider = ConfluxProvider("http://cfx.invalid", transport=node.transport)
    accounts = [_FakeCfxAccount(ALICE), _FakeCfxAccount(BOB)]
    return ConfluxWallet(provider, accounts, ConfluxConfig(**config))


@pytest.mark.asyncio
async def test_compose_fills_storage_limit_and_epoch_height(fake_upstream):
    node = _node(fake_upstream)
    wallet = _wallet(node)
    tx = await wallet.compose({"to": BOB})
    assert tx.from_ == ALICE
    assert tx.nonce == 2
    assert tx.gas_price == 1_000_000_000
    assert tx.gas_limit == 21000
    assert tx.storage_limit == 64
    assert tx.epoch_height == 99
    assert tx.chain_id == 1029


@pytest.mark.asyncio
async def test_supplied_gas_and_storage_skip_estimation(fake_upstream):
    node = _node(fake_upstream)
    wallet = _wallet(node)
    tx = await wallet.compose({"to": BOB, "gas": "0x7530", "storageLimit": "0x0"})
    assert tx.gas_limit == 30000
    assert tx.storage_limit == 0
    assert "cfx_estimateGasAndCollateral" not in node.methods()


@pytest.mark.asyncio
async def test_estimation_failure_falls_back_to_defaults(fake_upstream, rpc_fault):
    node = _node(fake_upstream, cfx_estimateGasAndCollateral=rpc_fault(-32015, "vm reverted", "0x00"))
    wallet = _wallet(node)
    tx = await wallet.compose({"to": BOB})
    assert tx.gas_limit == 6_721_975
    assert tx.storage_limit == 0


@pytest.mark.asyncio
async def test_send_transaction_signs_with_conflux_fields(fake_upstream):
    node = _node(fake_upstream)
    wallet = _wallet(node)
    assert await wallet.process_transaction({"from": BOB, "to": ALICE, "value": "0x10"}) == "0xfeed"
    signed = wallet.accounts[1].signed[-1]
    assert signed["storageLimit"] == 64
    assert signed["epochHeight"] == 99
    assert signed["chainId"] == 1029
    assert signed["value"] == 16
    assert node.params_of("cfx_sendRawTransaction") == ["0x0102"]


@pytest.mark.asyncio
async def test_unknown_sender_rejected_before_node_calls(fake_upstream):
    node = _node(fake_upstream)
    wallet = _wallet(node)
    with pytest.raises(NoSigningKeyError):
        await wallet.process_transaction({"from": "cfx:unknown", "to": ALICE})
    assert node.calls == []


@pytest.mark.asyncio
async def test_estimated_price_above_default_is_rejected(fake_upstream):
    node = _node(fake_upstream, cfx_gasPrice=hex(1_000_000_001))
    wallet = _wallet(node, estimate_gas_price=True)
    with pytest.raises(GasPriceExceededError):
        await wallet.process_transaction({"to": BOB})
    assert "cfx_sendRawTransaction" not in node.methods()


@pytest.mark.asyncio
async def test_estimated_price_is_scaled(fake_upstream):
    node = _node(fake_upstream, cfx_gasPrice="0x3e8")
    wallet = _wallet(node, estimate_gas_price=True, gas_price_factor=10.0)
    tx = await wallet.compose({"to": BOB})
    assert tx.gas_price == 10_000


@pytest.mark.asyncio
async def test_call_runs_on_lagging_epoch(fake_upstream):
    node = _node(fake_upstream)
    wallet = _wallet(node, interleave_epochs=5)
    await wallet.call({"to": BOB, "data": "0x01"})
    tx, epoch = node.params_of("cfx_call")
    assert epoch == "0x5f"
    assert tx["from"] == ALICE


@pytest.mark.asyncio
async def test_rollbacks_tracked_on_every_read(fake_upstream):
    epochs = itertools.chain(["0x64", "0x60", "0x5e"], itertools.repeat("0x5e"))
    node = _node(fake_upstream, cfx_epochNumber=lambda params: next(epochs))
    wallet = _wallet(node, interleave_epochs=5)
    await wallet.check_rollbacks()
    await wallet.check_rollbacks()
    assert wallet.rollback.last_known_epoch == 96
    await wallet.call({"to": BOB})
    assert wallet.rollback.last_known_epoch == 94
    assert node.params_of("cfx_call")[1] == "0x59"


@pytest.mark.asyncio
async def test_epoch_label_is_configurable(fake_upstream):
    node = _node(fake_upstream)
    wallet = _wallet(node, epoch_label="latest_finalized")
    await wallet.check_rollbacks()
    assert node.params_of("cfx_epochNumber") == ["latest_finalized"]


@pytest.mark.asyncio
async def test_filter_changes_return_hex_epoch(fake_upstream):
    wallet = _wallet(_node(fake_upstream))
    assert await wallet.create_block_filter() == "0x1"
    assert await wallet.get_filter_changes("0x1") == "0x64"
    with pytest.raises(UnsupportedFilterError):
        await wallet.get_filter_changes("0x7")


@pytest.mark.asyncio
async def test_syncing_status_from_node_status(fake_upstream):
    node = _node(
        fake_upstream,
        cfx_getStatus={"latestCheckpoint": "0x10", "latestConfirmed": "0x20", "epochNumber": "0x30"},
    )
    wallet = _wallet(node)
    assert await wallet.get_syncing_status() == {
        "startingBlock": "0x10",
        "currentBlock": "0x20",
        "highestBlock": "0x30",
    }
    assert await _wallet(node, always_synced=True).get_syncing_status() is False


@pytest.mark.asyncio
async def test_chain_identity_and_signing(fake_upstream):
    wallet = _wallet(_node(fake_upstream), network_id=1)
    assert await wallet.chain_id() == "0x46"
    assert await wallet.net_version() == "1"
    assert await wallet.process_eth_sign_message(ALICE, "hello") == "0xaabb"
    signed_message = wallet.accounts[0].messages[0]
    assert signed_message == cfx_encode_defunct(primitive=b"hello")
    assert signed_message != eth_encode_defunct(primitive=b"hello")
    assert set(wallet.rpc_methods()) >= {"eth_chainId", "net_version", "eth_newBlockFilter", "eth_call"}


@pytest.mark.asyncio
async def test_chain_id_reports_network_id_off_mainnet(fake_upstream):
    wallet = _wallet(_node(fake_upstream), network_id=1029)
    assert await wallet.chain_id() == "0x405"
    assert await wallet.net_version() == "1029"


@pytest.mark.asyncio
async def test_eth_sign_uses_conflux_message_prefix(fake_upstream):
    mnemonic = "test test test test test test test test test test test junk"
    provider = ConfluxProvider("http://cfx.invalid", transport=_node(fake_upstream).transport)
    wallet = ConfluxWallet.from_seed(provider, mnemonic, 1, ConfluxConfig(network_id=1029))
    account = derive_conflux_accounts(mnemonic, 1, 1029)[0]
    expected = account.sign_message(cfx_encode_defunct(text="hello"))
    signature = await wallet.process_eth_sign_message(str(account.address), "hello")
    assert signature == "0x" + bytes(expected.signature).hex()
