"""Transaction composition and gas policy shared by all wallet backends."""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from typing import TYPE_CHECKING, Any

from loguru import logger

from w3gw.api.rpc.request_context import SocketContext
from w3gw.utils.exceptions import GasPriceExceededError, InvalidParamsError
from w3gw.utils.helpers import from_quantity, scale, to_quantity

if TYPE_CHECKING:
    from w3gw.wallets.base import WalletBackend

# Inbound key -> canonical field. Wallets send either `gas` or `gasLimit`, `data` or `input`.
_ALIASES = {
    "from": "from_",
    "to": "to",
    "value": "value",
    "data": "data",
    "input": "data",
    "nonce": "nonce",
    "gas": "gas_limit",
    "gasLimit": "gas_limit",
    "gasPrice": "gas_price",
    "storageLimit": "storage_limit",
    "epochHeight": "epoch_height",
    "chainId": "chain_id",
}
_QUANTITIES = ("value", "nonce", "gas_limit", "gas_price", "storage_limit", "epoch_height", "chain_id")
_WIRE_NAMES = {
    "from_": "from",
    "to": "to",
    "value": "value",
    "data": "data",
    "nonce": "nonce",
    "gas_limit": "gasLimit",
    "gas_price": "gasPrice",
    "storage_limit": "storageLimit",
    "epoch_height": "epochHeight",
    "chain_id": "chainId",
}


@dataclass(frozen=True)
class TransactionRequest:
    """Canonical transaction: numeric fields are ints, wire encoding is hex."""

    from_: str | None = None
    to: str | None = None
    value: int | None = None
    data: str | None = None
    nonce: int | None = None
    gas_limit: int | None = None
    gas_price: int | None = None
    storage_limit: int | None = None
    epoch_height: int | None = None
    chain_id: int | None = None

    @classmethod
    def from_params(cls, params: Any) -> "TransactionRequest":
        """Normalize an inbound `eth_sendTransaction`-style object."""
        if isinstance(params, TransactionRequest):
            return params
        if not isinstance(params, dict):
            raise InvalidParamsError("eth_sendTransaction", "transaction object expected")
        values: dict[str, Any] = {}
        for key, raw in params.items():
            name = _ALIASES.get(key)
            if name is None or raw is None:
                continue
            if name in _QUANTITIES:
                try:
                    values[name] = from_quantity(raw)
                except ValueError as e:
                    raise InvalidParamsError("eth_sendTransaction", f"{key}: {e}") from e
            elif name not in values:
                values[name] = raw
        return cls(**values)

    def with_(self, **changes: Any) -> "TransactionRequest":
        return replace(self, **changes)

    def is_complete(self, *, needs_storage_limit: bool = False) -> bool:
        required = [self.from_, self.nonce, self.gas_limit, self.gas_price]
        if needs_storage_limit:
            required.append(self.storage_limit)
        return all(v is not None for v in required)

    def to_wire(self) -> dict[str, Any]:
        """Hex-encode for the wire, omitting unset fields."""
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            out[_WIRE_NAMES[f.name]] = to_quantity(value) if f.name in _QUANTITIES else value
        return out


@dataclass(frozen=True)
class GasPolicy:
    """How missing gas price / gas limit are filled."""

    default_gas_price: int
    default_gas_limit: int
    estimate_gas_price: bool = False
    estimate_gas_limit: bool = False
    gas_price_factor: float = 1.0
    gas_limit_factor: float = 1.0
    gas_price_max: int | None = None

    def bounded_price(self, estimated: int) -> int:
        """Apply the price factor to an oracle estimate, enforcing the ceiling on the raw estimate."""
        if self.gas_price_max is not None and estimated > self.gas_price_max:
            raise GasPriceExceededError(estimated, self.gas_price_max)
        return scale(estimated, self.gas_price_factor)


def trace_transaction(socket: SocketContext | None, tx: TransactionRequest) -> None:
    """Log the composed fields at debug level."""
    logger.debug("{} > From:      {}", socket, tx.from_)
    logger.debug("{} > To:        {}", socket, tx.to or "(deploy)")
    logger.debug("{} > Data:      {}", socket, f"{tx.data[:10]}..." if tx.data else "(transfer)")
    logger.debug("{} > Value:     {} wei", socket, tx.value or 0)
    logger.debug("{} > Nonce:     {}", socket, tx.nonce)
    logger.debug("{} > Gas price: {}", socket, tx.gas_price)
    logger.debug("{} > Gas limit: {}", socket, tx.gas_limit)
    if tx.storage_limit is not None:
        logger.debug("{} > Storage:   {}", socket, tx.storage_limit)
    if tx.chain_id is not None:
        logger.debug("{} > Chain id:  {}", socket, tx.chain_id)


async def compose_transaction(
    backend: "WalletBackend",
    params: Any,
    policy: GasPolicy,
    socket: SocketContext | None = None,
) -> TransactionRequest:
    """
    Fill `from`, `nonce`, `gasPrice` and `gasLimit` on a possibly partial transaction.

    Caller-supplied values are never overwritten, so composing an already complete
    transaction returns it unchanged. The signer is resolved before any estimation, so an
    unknown `from` fails without touching the backend.
    """
    tx = TransactionRequest.from_params(params)
    if tx.from_ is None:
        tx = tx.with_(from_=backend.get_accounts()[0])
    tx = tx.with_(from_=backend.resolve_account(tx.from_))

    if tx.gas_price is None:
        if policy.estimate_gas_price:
            tx = tx.with_(gas_price=policy.bounded_price(await backend.estimate_gas_price_int(socket)))
        else:
            tx = tx.with_(gas_price=policy.default_gas_price)

    if tx.nonce is None:
        tx = tx.with_(nonce=await backend.next_nonce(tx.from_))

    if tx.gas_limit is None:
        if policy.estimate_gas_limit:
            estimated = await backend.estimate_gas_int(tx, socket)
            tx = tx.with_(gas_limit=scale(estimated, policy.gas_limit_factor))
        else:
            tx = tx.with_(gas_limit=policy.default_gas_limit)

    trace_transaction(socket, tx)
    return tx
