"""Epoch rollback detection for epoch-indexed chains."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from loguru import logger

from w3gw.api.rpc.request_context import SocketContext


class Rollback(Enum):
    NONE = "none"
    HARMLESS = "harmless"
    THREATENING = "threatening"


@dataclass
class EpochState:
    last_known_epoch: int = 0
    interleave_window: int = 0


class RollbackDetector:
    """Tracks the last observed epoch and classifies decreases.

    Classification is advisory: the last observed epoch always wins.
    """

    def __init__(self, interleave_window: int = 0):
        if interleave_window < 0:
            raise ValueError("interleave window must be non-negative")
        self._state = EpochState(last_known_epoch=0, interleave_window=interleave_window)

    @property
    def last_known_epoch(self) -> int:
        return self._state.last_known_epoch

    @property
    def interleave_window(self) -> int:
        return self._state.interleave_window

    @property
    def call_epoch(self) -> int:
        """Epoch used for call-style reads: lags the last observed epoch by the window."""
        return self._state.last_known_epoch - self._state.interleave_window

    def observe(self, epoch: int, socket: SocketContext | None = None) -> Rollback:
        last = self._state.last_known_epoch
        kind = Rollback.NONE
        if epoch < last:
            if epoch <= last - self._state.interleave_window:
                kind = Rollback.THREATENING
                logger.warning("{} Threatening rollback: from epoch {} down to {}", socket, last, epoch)
            else:
                kind = Rollback.HARMLESS
                logger.info("{} Harmless rollback: from epoch {} down to {}", socket, last, epoch)
        self._state.last_known_epoch = epoch
        return kind
