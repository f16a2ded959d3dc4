"""Conflux `cfx_*` JSON-RPC client."""

from __future__ import annotations

from typing import Any, Optional

from w3gw.providers.jsonrpc import JsonRpcProvider
from w3gw.utils.helpers import from_quantity


class ConfluxProvider(JsonRpcProvider):
    """Typed helpers over the Conflux core-space RPC namespace."""

    async def get_epoch_number(self, label: str = "latest_state") -> int:
        return from_quantity(await self.send("cfx_epochNumber", [label])) or 0

    async def get_next_nonce(self, address: str) -> int:
        return from_quantity(await self.send("cfx_getNextNonce", [address])) or 0

    async def get_gas_price(self) -> int:
        return from_quantity(await self.send("cfx_gasPrice")) or 0

    async def estimate_gas_and_collateral(self, tx: dict[str, Any], epoch: Optional[Any] = None) -> dict[str, int]:
        params: list[Any] = [tx]
        if epoch is not None:
            params.append(epoch)
        res = await self.send("cfx_estimateGasAndCollateral", params)
        return {
            "gasLimit": from_quantity(res.get("gasLimit")) or 0,
            "gasUsed": from_quantity(res.get("gasUsed")) or 0,
            "storageCollateralized": from_quantity(res.get("storageCollateralized")) or 0,
        }

    async def get_status(self) -> dict[str, Any]:
        return await self.send("cfx_getStatus")

    async def call(self, tx: dict[str, Any], epoch: Any) -> Any:
        return await self.send("cfx_call", [tx, epoch])

    async def send_raw_transaction(self, raw: str) -> str:
        return await self.send("cfx_sendRawTransaction", [raw])
