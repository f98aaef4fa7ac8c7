"""Adapter registry keyed by stable adapter id, resolved once at startup."""

from __future__ import annotations

import importlib
import logging
from collections.abc import Iterable, Iterator

from edgescore.adapters.base import SiteAdapter
from edgescore.adapters.errors import UnknownAdapterError

logger = logging.getLogger(__name__)


class AdapterRegistry:
    def __init__(self, adapters: Iterable[SiteAdapter] = ()) -> None:
        self._adapters: dict[str, SiteAdapter] = {}
        for adapter in adapters:
            self.register(adapter)

    def register(self, adapter: SiteAdapter) -> None:
        adapter_id = adapter.config.id
        if adapter_id in self._adapters:
            raise ValueError(f"adapter id {adapter_id!r} registered twice")
        self._adapters[adapter_id] = adapter

    def get(self, adapter_id: str) -> SiteAdapter:
        try:
            return self._adapters[adapter_id]
        except KeyError:
            raise UnknownAdapterError(adapter_id) from None

    def all(self) -> list[SiteAdapter]:
        return list(self._adapters.values())

    def __contains__(self, adapter_id: object) -> bool:
        return adapter_id in self._adapters

    def __iter__(self) -> Iterator[SiteAdapter]:
        return iter(self._adapters.values())

    def __len__(self) -> int:
        return len(self._adapters)

    @classmethod
    def from_paths(cls, dotted_paths: Iterable[str]) -> "AdapterRegistry":
        """Instantiate adapters from ``package.module:ClassName`` (or ``package.module.ClassName``) paths."""
        registry = cls()
        for path in dotted_paths:
            module_name, _, class_name = path.replace(":", ".").rpartition(".")
            if not module_name:
                raise ValueError(f"invalid adapter class path: {path!r}")
            adapter_cls = getattr(importlib.import_module(module_name), class_name)
            registry.register(adapter_cls())
        logger.info("Adapters registered", extra={"adapter_ids": [a.config.id for a in registry]})
        return registry
