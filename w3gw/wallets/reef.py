"""Reef wallet: Substrate keyring identities bridged to claimed EVM addresses."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable

from loguru import logger
from substrateinterface import Keypair, KeypairType

from w3gw import __version__
from w3gw.api.rpc.request_context import SocketContext
from w3gw.config.schema import ReefConfig
from w3gw.providers.graph import GraphIndexClient
from w3gw.providers.substrate import ReefNode, ReefSigner
from w3gw.utils.exceptions import ClaimFailureError, GatewayError, NoSigningKeyError
from w3gw.utils.helpers import from_quantity, to_quantity
from w3gw.wallets.base import RpcHandler, WalletBackend, message_bytes
from w3gw.wallets.composer import GasPolicy, TransactionRequest, compose_transaction

EMPTY_LOGS_BLOOM = "0x" + "0" * 512
ZERO_ADDRESS = "0x" + "0" * 40

LATEST_FINALIZED_BLOCK_QUERY = """
{
  blocks(limit: 1, orderBy: height_DESC, where: { finalized_eq: true }) {
    height
    hash
    parentHash
    stateRoot
    timestamp
  }
}
"""

BLOCK_EXTRINSICS_QUERY = """
query ($height: Int!) {
  extrinsics(offset: 0, limit: 256, where: { block: { height_eq: $height } }) {
    hash
    events(offset: 0, limit: 1, where: { section_eq: "EVM" }) {
      method
    }
  }
}
"""

EXTRINSIC_BY_HASH_QUERY = """
query ($hash: String!) {
  extrinsics(offset: 0, limit: 1, where: { hash_eq: $hash }) {
    args
    index
    signedData
    status
    block {
      hash
      height
      finalized
    }
    events(offset: 0, limit: 256, where: { section_eq: "EVM" }) {
      data
      index
      method
    }
  }
}
"""

EVM_LOGS_QUERY = """
query ($blockHash: String!, $index: Int!) {
  evmEvents(offset: 0, limit: 50, where: { AND: [{ block: { hash_eq: $blockHash } }, { extrinsicIndex_eq: $index }] }) {
    eventIndex
    dataRaw
  }
}
"""


def keypair_from_uri(uri: str) -> Keypair:
    """Derive the pair for `uri`, keeping only its key material (no mnemonic, no seed)."""
    derived = Keypair.create_from_uri(uri, crypto_type=KeypairType.SR25519)
    return Keypair(
        ss58_address=derived.ss58_address,
        public_key=derived.public_key,
        private_key=derived.private_key,
        ss58_format=derived.ss58_format,
        crypto_type=KeypairType.SR25519,
    )


def derivation_uri(seed_phrase: str, index: int) -> str:
    """First identity is the bare phrase; the following ones use `//0`, `//1`, ..."""
    return seed_phrase if index == 0 else f"{seed_phrase}//{index - 1}"


class ReefWallet(WalletBackend):
    """Wallet for a Reef chain node plus its block-explorer index."""

    name = "reef"

    def __init__(
        self,
        node: ReefNode,
        graph: GraphIndexClient,
        seed_phrase: str,
        num_addresses: int,
        config: ReefConfig | None = None,
        *,
        keypair_factory: Callable[[str], Any] = keypair_from_uri,
        signer_factory: Callable[[ReefNode, Any], Any] = ReefSigner,
    ):
        super().__init__(None, always_synced=True)
        self.config = config or ReefConfig()
        self.node = node
        self.graph = graph
        self.num_addresses = num_addresses
        self.accounts: list[str] = []
        self.signers: list[Any] = []
        self._seed_phrase = seed_phrase
        self._keypair_factory = keypair_factory
        self._signer_factory = signer_factory
        self.policy = GasPolicy(
            default_gas_price=1,
            default_gas_limit=self.config.default_gas_limit,
            estimate_gas_limit=self.config.estimate_gas_limit,
        )

    @property
    def seed_phrase_erased(self) -> bool:
        return not self._seed_phrase

    async def setup(self) -> None:
        """Derive keyring identities, claiming an EVM address for any that lack one."""
        try:
            await self.node.connect()
            for index in range(self.num_addresses):
                keypair = self._keypair_factory(derivation_uri(self._seed_phrase, index))
                signer = self._signer_factory(self.node, keypair)
                if not await signer.is_claimed():
                    logger.warning("No claimed EVM account found for {}", signer.native_address)
                    try:
                        claimed = await signer.claim_default_account()
                    except Exception as e:
                        reason = e.message if isinstance(e, GatewayError) else str(e) or type(e).__name__
                        raise ClaimFailureError(signer.native_address, reason) from e
                    logger.info("=> claimed {}", claimed)
                self.accounts.append(await signer.get_address())
                self.signers.append(signer)
        finally:
            self._seed_phrase = ""
        for index, address in enumerate(self.accounts):
            logger.info("Wallet #{}: {}", index, address)

    async def close(self) -> None:
        await self.node.close()
        await self.graph.close()

    def get_accounts(self, socket: SocketContext | None = None) -> list[str]:
        return self.accounts

    def signer_for(self, evm_address: str | None) -> Any:
        if evm_address:
            wanted = evm_address.lower()
            for address, signer in zip(self.accounts, self.signers):
                if address.lower() == wanted:
                    return signer
        raise NoSigningKeyError(evm_address)

    async def next_nonce(self, address: str) -> int:
        return await self.signer_for(address).get_transaction_count()

    async def latest_block_number(self, socket: SocketContext | None = None) -> int:
        return await self.node.get_block_number()

    async def estimate_gas_int(self, tx: TransactionRequest, socket: SocketContext | None = None) -> int:
        res = await self.node.estimate_resources(self._call_request(tx))
        return res["gas"]

    async def estimate_gas_price_int(self, socket: SocketContext | None = None) -> int:
        return 1

    def _call_request(self, tx: TransactionRequest) -> dict[str, Any]:
        wire = tx.to_wire()
        return {k: wire[k] for k in ("from", "to", "data", "value", "gasLimit", "storageLimit") if k in wire}

    async def compose(self, params: Any, socket: SocketContext | None = None) -> TransactionRequest:
        tx = await compose_transaction(self, params, self.policy, socket)
        if tx.storage_limit is None:
            if self.config.storage_limit > 0:
                tx = tx.with_(storage_limit=self.config.storage_limit)
            else:
                res = await self.node.estimate_resources(self._call_request(tx))
                tx = tx.with_(storage_limit=res["storage"])
        return tx

    async def submit(self, tx: TransactionRequest, socket: SocketContext | None = None) -> str:
        signer = self.signer_for(tx.from_)
        return await signer.send_transaction(tx.to_wire())

    async def process_eth_sign_message(self, address: str, message: Any, socket: SocketContext | None = None) -> str:
        signer = self.signer_for(self.resolve_account(address))
        logger.debug("{} > Signing message {}", socket, message)
        return signer.sign_message(message_bytes(message))

    async def query_syncing_status(self, socket: SocketContext | None = None) -> Any:
        return False

    async def forward(self, method: str, params: list[Any]) -> Any:
        return await self.node.rpc(method, params)

    # -- eth_* emulation --------------------------------------------------

    async def call(self, tx: Any, block_tag: Any = None, socket: SocketContext | None = None) -> Any:
        request = TransactionRequest.from_params(tx or {})
        logger.debug("{} > From: {} To: {}", socket, request.from_, request.to or "(deploy)")
        return await self.node.evm_call(self._call_request(request))

    async def block_number(self, socket: SocketContext | None = None) -> str:
        return to_quantity(await self.latest_block_number(socket))

    async def get_balance(self, address: str, block_tag: Any = None, socket: SocketContext | None = None) -> str:
        return to_quantity(await self.node.get_balance(address))

    async def get_code(self, address: str, block_tag: Any = None, socket: SocketContext | None = None) -> str:
        return await self.node.get_code(address)

    async def net_version(self, socket: SocketContext | None = None) -> str:
        return str(await self.node.get_chain_id())

    async def client_version(self, socket: SocketContext | None = None) -> str:
        return f"w3gw v{__version__}"

    async def get_block_by_number(
        self,
        block_tag: Any = "latest",
        full: bool = False,
        socket: SocketContext | None = None,
    ) -> dict[str, Any] | None:
        """Latest finalized block as known by the index (the tag is not honoured)."""
        logger.debug("{} => querying data to {} ...", socket, self.graph.url)
        data = await self.graph.query(LATEST_FINALIZED_BLOCK_QUERY)
        blocks = data.get("blocks") or []
        block = blocks[0] if blocks else None
        if not block or block.get("height") is None:
            return None
        data = await self.graph.query(BLOCK_EXTRINSICS_QUERY, {"height": block["height"]})
        extrinsics = data.get("extrinsics") or []
        return {
            "hash": block["hash"],
            "parentHash": block["parentHash"],
            "number": to_quantity(int(block["height"])),
            "stateRoot": block["stateRoot"],
            "timestamp": to_quantity(_unix_timestamp(block["timestamp"])),
            "nonce": "0x0000000000000000",
            "difficulty": "0x0",
            "gasLimit": "0xffffffff",
            "gasUsed": "0xffffffff",
            "miner": ZERO_ADDRESS,
            "extraData": "0x",
            "transactions": [e["hash"] for e in extrinsics if e.get("events")],
        }

    async def _finalized_extrinsic(self, tx_hash: str, socket: SocketContext | None) -> dict[str, Any] | None:
        logger.debug("{} => querying data to {} ...", socket, self.graph.url)
        data = await self.graph.query(EXTRINSIC_BY_HASH_QUERY, {"hash": tx_hash})
        extrinsics = data.get("extrinsics") or []
        extrinsic = extrinsics[0] if extrinsics else None
        if not extrinsic or not (extrinsic.get("block") or {}).get("finalized"):
            return None
        return extrinsic

    async def get_transaction_by_hash(self, tx_hash: str, socket: SocketContext | None = None) -> dict[str, Any] | None:
        extrinsic = await self._finalized_extrinsic(tx_hash, socket)
        if extrinsic is None:
            return None
        try:
            event = extrinsic["events"][0]
            sender, target = _event_parties(event)
            gas = int(extrinsic["signedData"]["fee"]["weight"])
            fee = int(extrinsic["signedData"]["fee"]["partialFee"])
            nonce = await self.node.get_evm_nonce(sender)
            return {
                "hash": tx_hash,
                "nonce": to_quantity(nonce),
                "blockHash": extrinsic["block"]["hash"],
                "blockNumber": to_quantity(int(extrinsic["block"]["height"])),
                "transactionIndex": to_quantity(int(event["index"])),
                "from": sender,
                "to": None if event["method"] == "Created" else target,
                "value": to_quantity(from_quantity(extrinsic["args"][1]) or 0),
                "gasPrice": to_quantity(fee // gas if gas else 0),
                "gas": to_quantity(gas),
                "input": extrinsic["args"][0],
            }
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning("{} >< exception: {}", socket, e)
            return None

    async def get_transaction_receipt(self, tx_hash: str, socket: SocketContext | None = None) -> dict[str, Any] | None:
        extrinsic = await self._finalized_extrinsic(tx_hash, socket)
        if extrinsic is None:
            return None
        block = extrinsic["block"]
        logs_data = await self.graph.query(EVM_LOGS_QUERY, {"blockHash": block["hash"], "index": extrinsic.get("index")})
        try:
            events = [e for e in extrinsic.get("events") or [] if e.get("method") in ("Executed", "Created")]
            event = events[0] if events else None
            created = event is not None and event["method"] == "Created"
            parties = _event_parties(event) if event is not None else (None, None)
            gas = int(extrinsic["signedData"]["fee"]["weight"])
            fee = int(extrinsic["signedData"]["fee"]["partialFee"])
            block_number = to_quantity(int(block["height"]))
            tx_index = to_quantity(int(extrinsic["index"]))
            logs = []
            for log in logs_data.get("evmEvents") or []:
                raw = log.get("dataRaw") or {}
                logs.append(
                    {
                        "removed": False,
                        "logIndex": to_quantity(int(log["eventIndex"])),
                        "transactionIndex": tx_index,
                        "transactionHash": tx_hash,
                        "blockHash": block["hash"],
                        "blockNumber": block_number,
                        "address": raw.get("address"),
                        "data": raw.get("data"),
                        "topics": raw.get("topics") or [],
                    }
                )
            return {
                "transactionHash": tx_hash,
                "transactionIndex": tx_index,
                "blockHash": block["hash"],
                "blockNumber": block_number,
                "cumulativeGasUsed": to_quantity(gas),
                "gasUsed": to_quantity(gas),
                "contractAddress": parties[1] if created else None,
                "status": "0x1" if extrinsic.get("status") == "success" else "0x0",
                "logs": logs,
                "logsBloom": EMPTY_LOGS_BLOOM,
                "from": parties[0],
                "to": None if created else parties[1],
                "effectiveGasPrice": to_quantity(fee // gas if gas else 0),
                "type": "0x0",
            }
        except (KeyError, IndexError, TypeError, ValueError) as e:
            logger.warning("{} >< exception: {}", socket, e)
            return None

    def rpc_methods(self) -> dict[str, RpcHandler]:
        methods = super().rpc_methods()
        methods.update(
            {
                "eth_call": self.call,
                "eth_gasPrice": self.estimate_gas_price,
                "eth_blockNumber": self.block_number,
                "eth_getBalance": self.get_balance,
                "eth_getCode": self.get_code,
                "net_version": self.net_version,
                "web3_clientVersion": self.client_version,
                "eth_getBlockByNumber": self.get_block_by_number,
                "eth_getTransactionByHash": self.get_transaction_by_hash,
                "eth_getTransactionReceipt": self.get_transaction_receipt,
            }
        )
        methods.update(self.filter_methods())
        return methods


def _unix_timestamp(value: Any) -> int:
    if isinstance(value, (int, float)):
        return int(value)
    return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp())


def _event_parties(event: dict[str, Any]) -> tuple[Any, Any]:
    """(from, to-or-contract) of an EVM event; indexers emit either `[[from, to], ...]` or `[from, to, ...]`."""
    data = event["data"]
    if isinstance(data[0], (list, tuple)):
        return data[0][0], data[0][1]
    return data[0], data[1] if len(data) > 1 else None
