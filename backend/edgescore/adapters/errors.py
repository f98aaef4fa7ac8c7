"""Typed errors for the adapter registry."""

from __future__ import annotations


class UnknownAdapterError(LookupError):
    """Raised when a job references an adapter id that was never registered.

    Attributes:
        adapter_id: The id that failed to resolve.
    """

    def __init__(self, adapter_id: str) -> None:
        self.adapter_id = adapter_id
        super().__init__(f"no adapter registered with id={adapter_id!r}")
