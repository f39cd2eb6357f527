"""Job providers – one module per external API."""

from .base import BaseSource, ProviderResult
from .remoteok import RemoteOKSource
from .adzuna import AdzunaSource
from .jsearch import JSearchSource
from .themuse import TheMuseSource

# Registry: id → class.  Keyed providers are registered but report
# themselves unavailable until their credentials are configured.
ALL_SOURCES = {
    # ── Free (no key needed) ──────────────────────────────────
    "remoteok": RemoteOKSource,
    "themuse": TheMuseSource,
    # ── API key required ──────────────────────────────────────
    "adzuna": AdzunaSource,
    "jsearch": JSearchSource,
}

__all__ = [
    "ALL_SOURCES",
    "BaseSource", "ProviderResult",
    "RemoteOKSource", "AdzunaSource", "JSearchSource", "TheMuseSource",
]
