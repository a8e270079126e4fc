"""Cancellation primitives: abort controllers, signal composition, handle cell."""

from fetchguard.cancellation.composer import ComposedSignal, any_signal, compose
from fetchguard.cancellation.handle import CancellationHandleCell
from fetchguard.cancellation.signal import AbortController, AbortSignal, check_signal_pairing

__all__ = [
    "AbortController",
    "AbortSignal",
    "CancellationHandleCell",
    "ComposedSignal",
    "any_signal",
    "check_signal_pairing",
    "compose",
]
