"""
Reef / Substrate node adapter

Wraps the blocking `substrateinterface` SDK behind coroutines (each call runs in a worker
thread) and exposes the EVM-pallet queries and extrinsics the Reef wallet needs.
"""

from __future__ import annotations

import asyncio
from typing import Any, Callable, Optional

from loguru import logger
from substrateinterface import Keypair, SubstrateInterface
from substrateinterface.exceptions import SubstrateRequestException

from w3gw.utils.exceptions import UpstreamExecutionError, UpstreamRpcError
from w3gw.utils.helpers import from_quantity


def _as_gateway_error(exc: SubstrateRequestException) -> Exception:
    detail = exc.args[0] if exc.args else None
    if isinstance(detail, dict) and isinstance(detail.get("code"), int):
        return UpstreamRpcError(detail["code"], str(detail.get("message", "")), detail.get("data"))
    return UpstreamExecutionError(str(detail or exc))


def _scale_value(obj: Any) -> Any:
    return getattr(obj, "value", obj)


class ReefNode:
    """Async facade over a SubstrateInterface connection."""

    def __init__(self, url: str, substrate: Optional[SubstrateInterface] = None):
        self.url = url
        self._substrate = substrate

    def _api(self) -> SubstrateInterface:
        if self._substrate is None:
            self._substrate = SubstrateInterface(url=self.url)
        return self._substrate

    async def _run(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> Any:
        try:
            return await asyncio.to_thread(fn, *args, **kwargs)
        except SubstrateRequestException as e:
            raise _as_gateway_error(e) from e

    async def _query(self, module: str, storage: str, params: Optional[list[Any]] = None) -> Any:
        api = self._api()
        return _scale_value(await self._run(api.query, module, storage, params or []))

    async def connect(self) -> None:
        await self._run(self._api)

    async def close(self) -> None:
        if self._substrate is not None:
            await asyncio.to_thread(self._substrate.close)
            self._substrate = None

    async def rpc(self, method: str, params: list[Any]) -> Any:
        res = await self._run(self._api().rpc_request, method, params)
        return res.get("result") if isinstance(res, dict) else res

    async def get_block_number(self) -> int:
        return int(await self._run(self._api().get_block_number, None))

    async def get_chain_id(self) -> int:
        return int(await self._query("EVM", "ChainId"))

    async def get_claimed_evm_address(self, native_address: str) -> Optional[str]:
        return await self._query("EvmAccounts", "EvmAddresses", [native_address]) or None

    async def get_native_address(self, evm_address: str) -> Optional[str]:
        return await self._query("EvmAccounts", "Accounts", [evm_address]) or None

    async def get_balance(self, evm_address: str) -> int:
        native = await self.get_native_address(evm_address)
        if not native:
            return 0
        account = await self._query("System", "Account", [native]) or {}
        return int((account.get("data") or {}).get("free", 0))

    async def get_code(self, evm_address: str) -> str:
        info = await self._query("EVM", "Accounts", [evm_address]) or {}
        contract = info.get("contract_info") or info.get("contractInfo")
        if not contract:
            return "0x"
        code_hash = contract.get("code_hash") or contract.get("codeHash")
        code = await self._query("EVM", "Codes", [code_hash])
        return code or "0x"

    async def get_evm_nonce(self, evm_address: str) -> int:
        info = await self._query("EVM", "Accounts", [evm_address]) or {}
        return int(info.get("nonce", 0))

    async def get_next_index(self, native_address: str) -> int:
        return int(await self._run(self._api().get_account_nonce, native_address))

    async def evm_call(self, tx: dict[str, Any]) -> Any:
        return await self.rpc("evm_call", [tx, None])

    async def estimate_resources(self, tx: dict[str, Any]) -> dict[str, int]:
        res = await self.rpc("evm_estimateResources", [tx, None]) or {}
        return {
            "gas": from_quantity(res.get("gas")) or 0,
            "storage": from_quantity(res.get("storage")) or 0,
            "weightFee": from_quantity(res.get("weightFee")) or 0,
        }

    async def submit(
        self,
        keypair: Keypair,
        module: str,
        function: str,
        params: dict[str, Any],
        *,
        nonce: Optional[int] = None,
        wait_for_inclusion: bool = False,
    ) -> Any:
        """Compose, sign and submit an extrinsic; returns the ExtrinsicReceipt."""
        api = self._api()

        def _submit() -> Any:
            call = api.compose_call(call_module=module, call_function=function, call_params=params)
            extrinsic = api.create_signed_extrinsic(call=call, keypair=keypair, nonce=nonce)
            return api.submit_extrinsic(extrinsic, wait_for_inclusion=wait_for_inclusion)

        return await self._run(_submit)


class ReefSigner:
    """Signer bound to one keyring pair: claims its EVM identity and submits EVM extrinsics."""

    def __init__(self, node: ReefNode, keypair: Keypair):
        self.node = node
        self.keypair = keypair
        self._evm_address: Optional[str] = None

    @property
    def native_address(self) -> str:
        return self.keypair.ss58_address

    async def is_claimed(self) -> bool:
        self._evm_address = await self.node.get_claimed_evm_address(self.native_address)
        return self._evm_address is not None

    async def claim_default_account(self) -> str:
        receipt = await self.node.submit(
            self.keypair,
            "EvmAccounts",
            "claim_default_account",
            {},
            wait_for_inclusion=True,
        )
        if not getattr(receipt, "is_success", False):
            raise UpstreamExecutionError(str(getattr(receipt, "error_message", None) or "claim extrinsic failed"))
        self._evm_address = await self.node.get_claimed_evm_address(self.native_address)
        if not self._evm_address:
            raise UpstreamExecutionError("claimed address not found after inclusion")
        return self._evm_address

    async def get_address(self) -> str:
        if self._evm_address is None:
            await self.is_claimed()
        if self._evm_address is None:
            raise UpstreamExecutionError(f"No claimed EVM account for {self.native_address}")
        return self._evm_address

    async def get_transaction_count(self) -> int:
        return await self.node.get_next_index(self.native_address)

    async def send_transaction(self, tx: dict[str, Any]) -> str:
        """Submit an `EVM.call` (or `EVM.create` when there is no `to`) and return its hash.

        The extrinsic is signed with the account index of the keyring pair; an EVM `nonce`
        in `tx` has no meaning for the Substrate extrinsic and is ignored.
        """
        value = from_quantity(tx.get("value")) or 0
        gas_limit = from_quantity(tx.get("gasLimit")) or 0
        storage_limit = from_quantity(tx.get("storageLimit")) or 0
        data = tx.get("data") or "0x"
        if tx.get("to"):
            function = "call"
            params = {
                "target": tx["to"],
                "input": data,
                "value": value,
                "gas_limit": gas_limit,
                "storage_limit": storage_limit,
            }
        else:
            function = "create"
            params = {
                "init": data,
                "value": value,
                "gas_limit": gas_limit,
                "storage_limit": storage_limit,
            }
        receipt = await self.node.submit(
            self.keypair,
            "EVM",
            function,
            params,
            nonce=await self.get_transaction_count(),
        )
        logger.debug("EVM.{} submitted from {}", function, self.native_address)
        return receipt.extrinsic_hash

    def sign_message(self, message: bytes) -> str:
        return "0x" + self.keypair.sign(message).hex()
