"""Registry of browser-driven data providers."""
from __future__ import annotations

from typing import Dict

from ..errors import NotFound
from .base import FieldSpec, Provider, no_dash
from .lseg import LSEGProvider
from .marketscreener import MarketScreenerProvider
from .morningstar import MorningstarProvider
from .msci import MSCIProvider
from .sp import SPProvider

PROVIDERS: Dict[str, Provider] = {
    provider.name: provider
    for provider in (
        MorningstarProvider(),
        MarketScreenerProvider(),
        MSCIProvider(),
        LSEGProvider(),
        SPProvider(),
    )
}


def get_provider(name: str) -> Provider:
    try:
        return PROVIDERS[name.lower()]
    except KeyError:
        raise NotFound(f"Unknown data provider {name!r}.") from None


__all__ = [
    "PROVIDERS",
    "FieldSpec",
    "LSEGProvider",
    "MSCIProvider",
    "MarketScreenerProvider",
    "MorningstarProvider",
    "Provider",
    "SPProvider",
    "get_provider",
    "no_dash",
]
