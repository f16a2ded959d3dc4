"""Conflux wallet: epoch-indexed chain with rollback tracking and storage collateral."""

from __future__ import annotations

from typing import Any

import httpx
from cfx_account import Account as CfxAccount
from cfx_account.messages import encode_defunct
from loguru import logger

from w3gw.api.rpc.request_context import SocketContext
from w3gw.config.schema import ConfluxConfig
from w3gw.providers.conflux import ConfluxProvider
from w3gw.utils.exceptions import GatewayError
from w3gw.utils.helpers import from_quantity, to_quantity
from w3gw.wallets.base import RpcHandler, WalletBackend, message_bytes
from w3gw.wallets.composer import GasPolicy, TransactionRequest, compose_transaction
from w3gw.wallets.ethers import derive_accounts, raw_transaction_hex
from w3gw.wallets.rollback import RollbackDetector

CFX_DERIVATION_PATH = "m/44'/503'/0'/0/{index}"


def derive_conflux_accounts(seed_phrase: str, count: int, network_id: int) -> list[Any]:
    """Derive Conflux core-space accounts (base32 addresses) from a mnemonic."""
    keys = derive_accounts(seed_phrase, count, CFX_DERIVATION_PATH)
    return [CfxAccount.from_key(k.key, network_id) for k in keys]


class ConfluxWallet(WalletBackend):
    """Wallet for a Conflux node."""

    name = "conflux"

    def __init__(
        self,
        provider: ConfluxProvider,
        accounts: list[Any],
        config: ConfluxConfig | None = None,
    ):
        """
        Args:
            provider: cfx_* JSON-RPC client
            accounts: signing accounts exposing `address`, `sign_transaction` and `sign_message`
            config: gas / epoch settings
        """
        self.config = config or ConfluxConfig()
        super().__init__(provider, always_synced=self.config.always_synced)
        self.provider: ConfluxProvider = provider
        self.accounts = list(accounts)
        self._addresses = [str(a.address) for a in self.accounts]
        self._by_address = {addr.lower(): a for addr, a in zip(self._addresses, self.accounts)}
        self.rollback = RollbackDetector(self.config.interleave_epochs)
        self.policy = GasPolicy(
            default_gas_price=self.config.default_gas_price,
            default_gas_limit=self.config.default_gas,
            estimate_gas_price=self.config.estimate_gas_price,
            gas_price_factor=self.config.gas_price_factor,
            gas_price_max=self.config.default_gas_price,
        )

    @classmethod
    def from_seed(
        cls,
        provider: ConfluxProvider,
        seed_phrase: str,
        num_addresses: int,
        config: ConfluxConfig | None = None,
    ) -> "ConfluxWallet":
        config = config or ConfluxConfig()
        return cls(provider, derive_conflux_accounts(seed_phrase, num_addresses, config.network_id), config)

    async def setup(self) -> None:
        epoch = await self.check_rollbacks()
        logger.info("Network id: {} (epoch {})", self.config.network_id, epoch)
        for index, address in enumerate(self._addresses):
            logger.info("Wallet #{}: {}", index, address)

    def get_accounts(self, socket: SocketContext | None = None) -> list[str]:
        return self._addresses

    async def check_rollbacks(self, socket: SocketContext | None = None) -> int:
        """Re-read the current epoch and feed it to the rollback detector."""
        epoch = await self.provider.get_epoch_number(self.config.epoch_label)
        self.rollback.observe(epoch, socket)
        return epoch

    async def next_nonce(self, address: str) -> int:
        return await self.provider.get_next_nonce(address)

    async def latest_block_number(self, socket: SocketContext | None = None) -> int:
        return await self.provider.get_epoch_number("latest_state")

    async def filter_changes(self, socket: SocketContext | None = None) -> Any:
        return to_quantity(await self.latest_block_number(socket))

    async def estimate_gas_int(self, tx: TransactionRequest, socket: SocketContext | None = None) -> int:
        await self.check_rollbacks(socket)
        res = await self.provider.estimate_gas_and_collateral(tx.to_wire())
        return res["gasLimit"]

    async def estimate_gas_price_int(self, socket: SocketContext | None = None) -> int:
        return await self.provider.get_gas_price()

    async def call(self, tx: Any, epoch: Any = None, socket: SocketContext | None = None) -> Any:
        """`eth_call` on the epoch lagging the last observed one by the interleave window."""
        await self.check_rollbacks(socket)
        target = max(self.rollback.call_epoch, 0)
        if self.rollback.interleave_window > 0:
            logger.debug("{} > Epoch number: {} --> {}", socket, self.rollback.last_known_epoch, target)
        else:
            logger.debug("{} > Epoch number: {}", socket, target)
        request = TransactionRequest.from_params(tx or {})
        if request.from_ is None:
            request = request.with_(from_=self.get_accounts()[0])
        logger.debug("{} > From: {} To: {}", socket, request.from_, request.to or "(deploy)")
        return await self.provider.call(request.to_wire(), to_quantity(target))

    async def compose(self, params: Any, socket: SocketContext | None = None) -> TransactionRequest:
        epoch = await self.check_rollbacks(socket)
        supplied = TransactionRequest.from_params(params)
        tx = supplied.with_(chain_id=supplied.chain_id or self.config.network_id)
        if tx.epoch_height is None:
            tx = tx.with_(epoch_height=max(epoch - 1, 0))
        tx = await compose_transaction(self, tx, self.policy, socket)
        if supplied.gas_limit is not None and supplied.storage_limit is not None:
            return tx

        try:
            estimation = await self.provider.estimate_gas_and_collateral(
                {k: v for k, v in tx.to_wire().items() if k not in ("gasLimit", "storageLimit")}
            )
        except (GatewayError, httpx.HTTPError) as e:
            logger.warning("{} Cost estimation failed => {}", socket, e)
            estimation = {"gasLimit": tx.gas_limit, "storageCollateralized": 0}
        logger.debug("{} Cost estimation => {}", socket, estimation)

        if supplied.gas_limit is None:
            tx = tx.with_(gas_limit=estimation["gasLimit"])
        if supplied.storage_limit is None:
            tx = tx.with_(storage_limit=estimation["storageCollateralized"])
        logger.debug("{} > Storage limit: {} Epoch height: {}", socket, tx.storage_limit, tx.epoch_height)
        return tx

    def signable(self, tx: TransactionRequest) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "nonce": tx.nonce,
            "gas": tx.gas_limit,
            "gasPrice": tx.gas_price,
            "storageLimit": tx.storage_limit,
            "epochHeight": tx.epoch_height,
            "chainId": tx.chain_id,
            "value": tx.value or 0,
            "data": tx.data or "0x",
        }
        if tx.to:
            payload["to"] = tx.to
        return payload

    async def submit(self, tx: TransactionRequest, socket: SocketContext | None = None) -> str:
        account = self._by_address[self.resolve_account(tx.from_).lower()]
        signed = account.sign_transaction(self.signable(tx))
        return await self.provider.send_raw_transaction(raw_transaction_hex(signed))

    async def process_eth_sign_message(self, address: str, message: Any, socket: SocketContext | None = None) -> str:
        account = self._by_address[self.resolve_account(address).lower()]
        logger.debug("{} > Signing message {}", socket, message)
        signed = account.sign_message(encode_defunct(primitive=message_bytes(message)))
        return "0x" + bytes(signed.signature).hex()

    async def query_syncing_status(self, socket: SocketContext | None = None) -> Any:
        status = await self.provider.get_status()
        return {
            "startingBlock": to_quantity(from_quantity(status.get("latestCheckpoint")) or 0),
            "currentBlock": to_quantity(from_quantity(status.get("latestConfirmed")) or 0),
            "highestBlock": to_quantity(from_quantity(status.get("epochNumber")) or 0),
        }

    async def chain_id(self, socket: SocketContext | None = None) -> str:
        # Core-space mainnet (network id 1) reports EVM chain id 70.
        return to_quantity(70 if self.config.network_id == 1 else self.config.network_id)

    async def net_version(self, socket: SocketContext | None = None) -> str:
        return str(self.config.network_id)

    def rpc_methods(self) -> dict[str, RpcHandler]:
        methods = super().rpc_methods()
        methods.update(
            {
                "eth_call": self.call,
                "eth_chainId": self.chain_id,
                "net_version": self.net_version,
            }
        )
        methods.update(self.filter_methods())
        return methods
