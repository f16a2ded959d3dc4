"""EVM wallet: local keypairs derived from a mnemonic, signing for a plain JSON-RPC provider."""

from __future__ import annotations

from typing import Any

from eth_account import Account
from eth_account.messages import encode_defunct
from eth_account.signers.local import LocalAccount
from eth_utils import to_checksum_address
from loguru import logger

from w3gw.api.rpc.request_context import SocketContext
from w3gw.config.schema import EthersConfig
from w3gw.providers.jsonrpc import JsonRpcProvider
from w3gw.utils.helpers import from_quantity, scale, to_quantity
from w3gw.wallets.base import RpcHandler, WalletBackend, message_bytes
from w3gw.wallets.composer import GasPolicy, TransactionRequest, compose_transaction

ETH_DERIVATION_PATH = "m/44'/60'/0'/0/{index}"

Account.enable_unaudited_hdwallet_features()


def derive_accounts(seed_phrase: str, count: int, path: str = ETH_DERIVATION_PATH) -> list[LocalAccount]:
    """Derive `count` accounts from a BIP-39 mnemonic."""
    return [Account.from_mnemonic(seed_phrase, account_path=path.format(index=i)) for i in range(count)]


def raw_transaction_hex(signed: Any) -> str:
    raw = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)
    return "0x" + bytes(raw).hex()


class EthersWallet(WalletBackend):
    """Wallet over any Ethereum-compatible JSON-RPC provider."""

    name = "ethers"

    def __init__(
        self,
        provider: JsonRpcProvider,
        seed_phrase: str,
        num_addresses: int,
        config: EthersConfig | None = None,
    ):
        self.config = config or EthersConfig()
        super().__init__(provider, always_synced=self.config.always_synced)
        self.policy = GasPolicy(
            default_gas_price=self.config.gas_price,
            default_gas_limit=self.config.gas_limit,
            estimate_gas_price=self.config.estimate_gas_price,
            estimate_gas_limit=self.config.estimate_gas_limit,
            gas_price_factor=self.config.gas_price_factor,
            gas_limit_factor=self.config.gas_limit_factor,
            gas_price_max=self.config.gas_price_max,
        )
        self._seed_phrase = seed_phrase
        try:
            self.wallets = derive_accounts(self._seed_phrase, num_addresses)
        finally:
            self._seed_phrase = ""
        self._addresses = [w.address for w in self.wallets]
        self._by_address = {w.address.lower(): w for w in self.wallets}
        self._chain_id: int | None = None
        self._supports_1559: bool | None = None

    async def setup(self) -> None:
        self._chain_id = await self.provider.detect_network()
        logger.info("Network id: {}", self._chain_id)
        for index, address in enumerate(self._addresses):
            balance = from_quantity(await self.provider.send("eth_getBalance", [address, "latest"]))
            nonce = await self.next_nonce(address)
            logger.info("Wallet #{}: {} balance={} nonce={}", index, address, balance, nonce)

    def get_accounts(self, socket: SocketContext | None = None) -> list[str]:
        return self._addresses

    async def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = await self.provider.detect_network()
        return self._chain_id

    async def next_nonce(self, address: str) -> int:
        return from_quantity(await self.provider.send("eth_getTransactionCount", [address, "pending"])) or 0

    async def latest_block_number(self, socket: SocketContext | None = None) -> int:
        return from_quantity(await self.provider.send("eth_blockNumber")) or 0

    async def estimate_gas_int(self, tx: TransactionRequest, socket: SocketContext | None = None) -> int:
        call = {k: v for k, v in tx.to_wire().items() if k in ("from", "to", "value", "data")}
        return from_quantity(await self.provider.send("eth_estimateGas", [call])) or 0

    async def estimate_gas_price_int(self, socket: SocketContext | None = None) -> int:
        return from_quantity(await self.provider.send("eth_gasPrice")) or 0

    async def gas_price(self, socket: SocketContext | None = None) -> str:
        """`eth_gasPrice`, optionally scaled by the configured factor."""
        price = await self.estimate_gas_price_int(socket)
        if self.config.eth_gas_price_factor:
            price = scale(price, self.config.gas_price_factor)
        return to_quantity(price)

    async def call(self, tx: Any, block_tag: Any = "latest", socket: SocketContext | None = None) -> Any:
        """`eth_call`, lagging `latest` by the configured number of blocks."""
        if self.config.interleave_blocks > 0 and block_tag in (None, "latest"):
            latest = await self.latest_block_number(socket)
            block_tag = to_quantity(max(latest - self.config.interleave_blocks, 0))
            logger.debug("{} > Block number: {} --> {}", socket, latest, block_tag)
        return await self.provider.send("eth_call", [tx, block_tag or "latest"])

    async def compose(self, params: Any, socket: SocketContext | None = None) -> TransactionRequest:
        tx = await compose_transaction(self, params, self.policy, socket)
        if tx.chain_id is None:
            tx = tx.with_(chain_id=await self.chain_id())
        return tx

    async def _use_type2(self) -> bool:
        if self.config.force_eip_1559:
            return True
        if self.config.force_eip_155:
            return False
        if self._supports_1559 is None:
            block = await self.provider.send("eth_getBlockByNumber", ["latest", False])
            self._supports_1559 = bool(block and block.get("baseFeePerGas") is not None)
        return self._supports_1559

    async def signable(self, tx: TransactionRequest) -> dict[str, Any]:
        """Transaction dict in the shape eth_account signs."""
        payload: dict[str, Any] = {
            "nonce": tx.nonce,
            "gas": tx.gas_limit,
            "value": tx.value or 0,
            "data": tx.data or "0x",
            "chainId": tx.chain_id,
        }
        if tx.to:
            payload["to"] = to_checksum_address(tx.to)
        if await self._use_type2():
            payload["type"] = 2
            payload["maxFeePerGas"] = tx.gas_price
            payload["maxPriorityFeePerGas"] = tx.gas_price
        else:
            payload["gasPrice"] = tx.gas_price
        return payload

    async def submit(self, tx: TransactionRequest, socket: SocketContext | None = None) -> str:
        wallet = self._by_address[self.resolve_account(tx.from_).lower()]
        signed = wallet.sign_transaction(await self.signable(tx))
        return await self.provider.send("eth_sendRawTransaction", [raw_transaction_hex(signed)])

    async def process_eth_sign_message(self, address: str, message: Any, socket: SocketContext | None = None) -> str:
        wallet = self._by_address[self.resolve_account(address).lower()]
        logger.debug("{} > Signing message {}", socket, message)
        signed = wallet.sign_message(encode_defunct(primitive=message_bytes(message)))
        return "0x" + bytes(signed.signature).hex()

    async def query_syncing_status(self, socket: SocketContext | None = None) -> Any:
        status = await self.provider.send("eth_syncing")
        if not status:
            return False
        return {
            "startingBlock": status.get("startingBlock"),
            "currentBlock": status.get("currentBlock"),
            "highestBlock": status.get("highestBlock"),
        }

    def rpc_methods(self) -> dict[str, RpcHandler]:
        methods = super().rpc_methods()
        methods["eth_gasPrice"] = self.gas_price
        methods["eth_call"] = self.call
        if self.config.mock_filters:
            methods.update(self.filter_methods())
        return methods
