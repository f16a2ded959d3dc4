"""Wallet backend capability set shared by every chain family."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable

from loguru import logger

from w3gw.api.rpc.request_context import SocketContext
from w3gw.providers.jsonrpc import JsonRpcProvider
from w3gw.utils.exceptions import MethodNotFoundError, NoSigningKeyError, UnsupportedFilterError
from w3gw.utils.helpers import to_quantity, truncate
from w3gw.wallets.composer import TransactionRequest

MOCK_FILTER_ID = "0x1"

RpcHandler = Callable[..., Awaitable[Any]]


def message_bytes(message: Any) -> bytes:
    """Interpret an `eth_sign` payload: 0x-hex is raw bytes, anything else is UTF-8 text."""
    if isinstance(message, (bytes, bytearray)):
        return bytes(message)
    text = str(message)
    if text.startswith("0x"):
        try:
            return bytes.fromhex(text[2:])
        except ValueError:
            pass
    return text.encode("utf-8")


class WalletBackend(ABC):
    """
    One chain family's wallet: a fixed set of derived accounts plus the intercepted
    JSON-RPC methods served with them.

    Capabilities a chain cannot honour answer with fixed mock values instead of failing.
    """

    name: str = "wallet"

    def __init__(self, provider: JsonRpcProvider | None, *, always_synced: bool = False):
        self.provider = provider
        self.always_synced = always_synced
        self._locks: dict[str, asyncio.Lock] = {}

    async def setup(self) -> None:
        """Async initialization run once before serving."""

    async def close(self) -> None:
        if self.provider is not None:
            await self.provider.close()

    # -- accounts ---------------------------------------------------------

    @abstractmethod
    def get_accounts(self, socket: SocketContext | None = None) -> list[str]:
        """Fixed, ordered list of derived addresses."""

    def resolve_account(self, address: str | None) -> str:
        """Return the locally held address matching `address` (case-insensitive)."""
        if address:
            wanted = str(address).lower()
            for known in self.get_accounts():
                if known.lower() == wanted:
                    return known
        raise NoSigningKeyError(address)

    def sequencer(self, address: str) -> asyncio.Lock:
        """Per-address lock serializing nonce fetch + sign + submit."""
        key = address.lower()
        lock = self._locks.get(key)
        if lock is None:
            lock = self._locks[key] = asyncio.Lock()
        return lock

    def _sender_of(self, params: Any) -> str:
        sender = params.get("from") if isinstance(params, dict) else getattr(params, "from_", None)
        if not sender:
            sender = self.get_accounts()[0]
        return self.resolve_account(sender)

    # -- transactions -----------------------------------------------------

    @abstractmethod
    async def compose(self, params: Any, socket: SocketContext | None = None) -> TransactionRequest:
        """Produce a complete transaction from partial params."""

    @abstractmethod
    async def submit(self, tx: TransactionRequest, socket: SocketContext | None = None) -> str:
        """Sign and submit a complete transaction, returning its hash."""

    @abstractmethod
    async def next_nonce(self, address: str) -> int:
        """Next nonce per the backend, including pending transactions."""

    async def process_transaction(self, params: Any, socket: SocketContext | None = None) -> str:
        sender = self._sender_of(params)
        async with self.sequencer(sender):
            tx = await self.compose(params, socket)
            tx_hash = await self.submit(tx, socket)
        logger.debug("{} <= {}", socket, tx_hash)
        return tx_hash

    @abstractmethod
    async def process_eth_sign_message(self, address: str, message: Any, socket: SocketContext | None = None) -> str:
        """Sign arbitrary bytes with the key held for `address`."""

    async def process_personal_sign(self, message: Any, address: str, socket: SocketContext | None = None) -> str:
        return await self.process_eth_sign_message(address, message, socket)

    # -- estimation -------------------------------------------------------

    @abstractmethod
    async def estimate_gas_int(self, tx: TransactionRequest, socket: SocketContext | None = None) -> int:
        ...

    @abstractmethod
    async def estimate_gas_price_int(self, socket: SocketContext | None = None) -> int:
        ...

    async def estimate_gas(self, params: Any, block_tag: Any = None, socket: SocketContext | None = None) -> str:
        tx = TransactionRequest.from_params(params or {})
        if tx.from_ is None:
            tx = tx.with_(from_=self.get_accounts()[0])
        return to_quantity(await self.estimate_gas_int(tx, socket))

    async def estimate_gas_price(self, socket: SocketContext | None = None) -> str:
        return to_quantity(await self.estimate_gas_price_int(socket))

    # -- compatibility shims ---------------------------------------------

    @abstractmethod
    async def query_syncing_status(self, socket: SocketContext | None = None) -> Any:
        """Ask the node for its sync progress."""

    async def get_syncing_status(self, socket: SocketContext | None = None) -> Any:
        if self.always_synced:
            return False
        try:
            status = await self.query_syncing_status(socket)
        except Exception as e:
            logger.debug("{} sync status unavailable: {}", socket, e)
            return False
        logger.debug("{} <<< {}", socket, truncate(status))
        return status

    @abstractmethod
    async def latest_block_number(self, socket: SocketContext | None = None) -> int:
        """Latest known block (or epoch) number."""

    async def filter_changes(self, socket: SocketContext | None = None) -> Any:
        return [to_quantity(await self.latest_block_number(socket))]

    async def create_block_filter(self, socket: SocketContext | None = None) -> str:
        return MOCK_FILTER_ID

    async def get_filter_changes(self, filter_id: Any, socket: SocketContext | None = None) -> Any:
        logger.debug("{} > Filter id: {}", socket, filter_id)
        if filter_id != MOCK_FILTER_ID:
            raise UnsupportedFilterError(filter_id)
        return await self.filter_changes(socket)

    async def uninstall_filter(self, filter_id: Any, socket: SocketContext | None = None) -> bool:
        logger.debug("{} > Filter id: {}", socket, filter_id)
        return True

    # -- routing ----------------------------------------------------------

    async def forward(self, method: str, params: list[Any]) -> Any:
        if self.provider is None:
            raise MethodNotFoundError(method)
        return await self.provider.send(method, params)

    async def _accounts(self, socket: SocketContext | None = None) -> list[str]:
        return list(self.get_accounts())

    def rpc_methods(self) -> dict[str, RpcHandler]:
        """Intercepted JSON-RPC methods; anything else is forwarded."""
        return {
            "eth_accounts": self._accounts,
            "eth_sendTransaction": self.process_transaction,
            "eth_sign": self.process_eth_sign_message,
            "personal_sign": self.process_personal_sign,
            "eth_estimateGas": self.estimate_gas,
            "eth_syncing": self.get_syncing_status,
        }

    def filter_methods(self) -> dict[str, RpcHandler]:
        return {
            "eth_newBlockFilter": self.create_block_filter,
            "eth_getFilterChanges": self.get_filter_changes,
            "eth_uninstallFilter": self.uninstall_filter,
        }
