import pytest

from w3gw.utils.exceptions import GasPriceExceededError, InvalidParamsError, NoSigningKeyError
from w3gw.wallets.base import WalletBackend
from w3gw.wallets.composer import GasPolicy, TransactionRequest, compose_transaction

ALICE = "0x00000000000000000000000000000000000000A1"
BOB = "0x00000000000000000000000000000000000000B0"


class _Backend(WalletBackend):
    """Backend stub counting every estimation / nonce lookup."""

    def __init__(self, gas_price=100, gas=21000, nonce=7):
        super().__init__(None)
        self.calls = []
        self._gas_price = gas_price
        self._gas = gas
        self._nonce = nonce

    def get_accounts(self, socket=None):
        return [ALICE, BOB]

    async def next_nonce(self, address):
        self.calls.append(("nonce", address))
        return self._nonce

    async def estimate_gas_int(self, tx, socket=None):
        self.calls.append(("gas", tx.from_))
        return self._gas

    async def estimate_gas_price_int(self, socket=None):
        self.calls.append(("gas_price", None))
        return self._gas_price

    async def compose(self, params, socket=None):
        raise NotImplementedError

    async def submit(self, tx, socket=None):
        raise NotImplementedError

    async def process_eth_sign_message(self, address, message, socket=None):
        raise NotImplementedError

    async def query_syncing_status(self, socket=None):
        return False

    async def latest_block_number(self, socket=None):
        return 0


def test_from_params_normalizes_aliases_and_quantities():
    tx = TransactionRequest.from_params({"from": ALICE, "gas": "0x5208", "input": "0xabcd", "value": "10"})
    assert tx.gas_limit == 21000
    assert tx.data == "0xabcd"
    assert tx.value == 10


def test_from_params_prefers_data_over_input():
    tx = TransactionRequest.from_params({"data": "0x01", "input": "0x02"})
    assert tx.data == "0x01"


def test_from_params_rejects_non_object_and_bad_quantity():
    with pytest.raises(InvalidParamsError):
        TransactionRequest.from_params(["not", "an", "object"])
    with pytest.raises(InvalidParamsError):
        TransactionRequest.from_params({"value": "0xnope"})


def test_to_wire_hex_encodes_and_omits_unset():
    wire = TransactionRequest(from_=ALICE, value=0, gas_limit=21000, storage_limit=64).to_wire()
    assert wire == {"from": ALICE, "value": "0x0", "gasLimit": "0x5208", "storageLimit": "0x40"}


@pytest.mark.asyncio
async def test_fills_defaults_without_estimation():
    backend = _Backend()
    policy = GasPolicy(default_gas_price=5, default_gas_limit=90000)
    tx = await compose_transaction(backend, {"to": BOB}, policy)
    assert tx.from_ == ALICE
    assert tx.gas_price == 5
    assert tx.gas_limit == 90000
    assert tx.nonce == 7
    assert backend.calls == [("nonce", ALICE)]
    assert tx.is_complete()


@pytest.mark.asyncio
async def test_estimates_and_applies_factors():
    backend = _Backend(gas_price=100, gas=21000)
    policy = GasPolicy(
        default_gas_price=5,
        default_gas_limit=90000,
        estimate_gas_price=True,
        estimate_gas_limit=True,
        gas_price_factor=1.5,
        gas_limit_factor=2.0,
    )
    tx = await compose_transaction(backend, {"from": BOB.lower(), "to": ALICE}, policy)
    assert tx.from_ == BOB
    assert tx.gas_price == 150
    assert tx.gas_limit == 42000


@pytest.mark.asyncio
async def test_ceiling_checked_on_raw_estimate():
    backend = _Backend(gas_price=101)
    policy = GasPolicy(default_gas_price=1, default_gas_limit=1, estimate_gas_price=True, gas_price_max=100)
    with pytest.raises(GasPriceExceededError):
        await compose_transaction(backend, {"to": BOB}, policy)

    ok = _Backend(gas_price=100)
    policy = GasPolicy(
        default_gas_price=1, default_gas_limit=1, estimate_gas_price=True, gas_price_factor=2.0, gas_price_max=100
    )
    tx = await compose_transaction(ok, {"to": BOB}, policy)
    assert tx.gas_price == 200


@pytest.mark.asyncio
async def test_caller_values_are_never_overwritten():
    backend = _Backend()
    policy = GasPolicy(default_gas_price=5, default_gas_limit=90000, estimate_gas_price=True, estimate_gas_limit=True)
    params = {"from": ALICE, "to": BOB, "nonce": "0x2", "gas": "0x7530", "gasPrice": "0x9"}
    tx = await compose_transaction(backend, params, policy)
    assert (tx.nonce, tx.gas_limit, tx.gas_price) == (2, 30000, 9)
    assert backend.calls == []


@pytest.mark.asyncio
async def test_composing_a_complete_transaction_is_idempotent():
    backend = _Backend()
    policy = GasPolicy(default_gas_price=5, default_gas_limit=90000)
    first = await compose_transaction(backend, {"to": BOB}, policy)
    backend.calls.clear()
    second = await compose_transaction(backend, first, policy)
    assert second == first
    assert backend.calls == []


@pytest.mark.asyncio
async def test_unknown_sender_fails_before_any_backend_call():
    backend = _Backend()
    policy = GasPolicy(default_gas_price=5, default_gas_limit=90000, estimate_gas_price=True, estimate_gas_limit=True)
    with pytest.raises(NoSigningKeyError):
        await compose_transaction(backend, {"from": "0x" + "cc" * 20, "to": BOB}, policy)
    assert backend.calls == []


@pytest.mark.asyncio
async def test_sequencer_is_shared_per_address():
    backend = _Backend()
    assert backend.sequencer(ALICE) is backend.sequencer(ALICE.lower())
    assert backend.sequencer(ALICE) is not backend.sequencer(BOB)
