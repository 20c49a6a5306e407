"""Realtime propagation of committed writes to connected viewers."""

from reliefmap.realtime.broadcaster import (
    CHANNELS,
    MessageBus,
    ViewerConnection,
    encode_event,
    format_sse,
)
from reliefmap.realtime.reconciler import ViewerReconciler

__all__ = [
    "CHANNELS",
    "MessageBus",
    "ViewerConnection",
    "ViewerReconciler",
    "encode_event",
    "format_sse",
]
