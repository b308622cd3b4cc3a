"""
Endpoint Rotator

Exchanges publish several equivalent API hosts (regional mirrors, CDN
fronts, alternative domains). When one of them is unreachable or
rate-limits us, the client moves on to the next one.

The rotator is pure bookkeeping: an ordered list of base URLs, an optional
ordered list of egress proxies, and a cursor into each. It performs no I/O.
Each exchange client owns its own instance; instances are never shared.

Usage:
    rotator = EndpointRotator(["https://api.binance.com", "https://api1.binance.com"])
    rotator.current()   # "https://api.binance.com"
    rotator.advance()   # "https://api1.binance.com"
    rotator.advance()   # "https://api.binance.com" (wraps around)
"""

from typing import List, Optional, Sequence
from urllib.parse import urlparse


class EndpointRotator:
    """
    Cyclic cursor over equivalent base URLs and optional proxies.

    Attributes:
        urls: Ordered base URLs (at least one)
        proxies: Ordered egress proxy URLs (may be empty)
    """

    def __init__(self, urls: Sequence[str], proxies: Optional[Sequence[str]] = None):
        if not urls:
            raise ValueError("EndpointRotator requires at least one base URL")

        self.urls: List[str] = [url.rstrip("/") for url in urls]
        self.proxies: List[str] = list(proxies or [])
        self._url_index = 0
        self._proxy_index = 0

    # ============================================
    # Base URLs
    # ============================================

    def current(self) -> str:
        """Base URL currently in use."""
        return self.urls[self._url_index]

    def advance(self) -> str:
        """Move to the next base URL (wrapping after the last) and return it."""
        self._url_index = (self._url_index + 1) % len(self.urls)
        return self.current()

    def hostname(self) -> str:
        """Host part of the current base URL, used for DNS probes."""
        return urlparse(self.current()).hostname or self.current()

    # ============================================
    # Proxies
    # ============================================

    def current_proxy(self) -> Optional[str]:
        """Proxy currently in use, or None for a direct connection."""
        if not self.proxies:
            return None
        return self.proxies[self._proxy_index]

    def advance_proxy(self) -> Optional[str]:
        """Move to the next proxy (wrapping after the last) and return it."""
        if not self.proxies:
            return None
        self._proxy_index = (self._proxy_index + 1) % len(self.proxies)
        return self.current_proxy()

    def rotate(self) -> str:
        """Advance both the base URL and the proxy after a failure."""
        self.advance_proxy()
        return self.advance()

    def __len__(self) -> int:
        return len(self.urls)

    def __repr__(self) -> str:
        return f"<EndpointRotator(current='{self.current()}', urls={len(self.urls)}, proxies={len(self.proxies)})>"
