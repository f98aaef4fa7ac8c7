"""Site adapter contract and registry."""

from edgescore.adapters.base import (
    BackoffPolicy,
    BaseAdapter,
    RawPrediction,
    SiteAdapter,
    SiteAdapterConfig,
)
from edgescore.adapters.errors import UnknownAdapterError
from edgescore.adapters.registry import AdapterRegistry

__all__ = [
    "AdapterRegistry",
    "BackoffPolicy",
    "BaseAdapter",
    "RawPrediction",
    "SiteAdapter",
    "SiteAdapterConfig",
    "UnknownAdapterError",
]
