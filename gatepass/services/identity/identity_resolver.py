"""Identity resolution with a coalescing profile cache.

This module maps party identifiers to profiles fetched from a caller-supplied
remote lookup. The cache is the only shared mutable state of the core.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Dict, Optional

from gatepass.schemas.profile import Profile
from gatepass.utils.logging import get_logger

LOGGER = get_logger(__name__)

ProfileLookup = Callable[[str], Awaitable[Optional[Profile]]]


class ResolveMode(str, Enum):
    CACHE_FIRST = "cache_first"
    FORCE_REFRESH = "force_refresh"


@dataclass(frozen=True)
class CacheEntry:
    profile: Profile
    fetched_at: float


class IdentityResolver:
    """Resolves identifiers to profiles through a bounded-staleness cache.

    This service handles:
    - Cache-first and force-refresh resolution
    - Pre-seeding (e.g. the signed-in user's own profile)
    - Request coalescing: one in-flight lookup per identifier

    Lookup failures never escape; they resolve to ``None`` and leave the cache
    untouched. Staleness is bounded by explicit refreshes, not by age.
    """

    def __init__(
        self,
        lookup: ProfileLookup,
        lookup_timeout: Optional[float] = None,
        clock: Callable[[], float] = time.time,
    ):
        """Initialize the resolver.

        Args:
            lookup: Async function returning a profile or None for an identifier
            lookup_timeout: Seconds before a lookup is abandoned (None waits forever)
            clock: Time source used to stamp cache entries
        """
        self._lookup = lookup
        self.lookup_timeout = lookup_timeout
        self._clock = clock

        self._cache: Dict[str, CacheEntry] = {}
        self._in_flight: Dict[str, "asyncio.Future[Optional[Profile]]"] = {}

    def seed(self, profile: Profile) -> None:
        """Store a profile obtained elsewhere as if it had been fetched."""
        self._cache[profile.identifier] = CacheEntry(profile=profile, fetched_at=self._clock())
        LOGGER.debug("Seeded identity cache", extra={"identifier": profile.identifier})

    def get_cached(self, identifier: str) -> Optional[CacheEntry]:
        return self._cache.get(identifier)

    def invalidate(self, identifier: str) -> None:
        self._cache.pop(identifier, None)

    def clear(self) -> None:
        self._cache.clear()

    async def resolve(
        self,
        identifier: str,
        mode: ResolveMode = ResolveMode.CACHE_FIRST,
    ) -> Optional[Profile]:
        """Resolve an identifier to a profile.

        Args:
            identifier: Party identifier to resolve
            mode: CACHE_FIRST returns a cached entry when present;
                FORCE_REFRESH always performs a remote lookup

        Returns:
            The profile, or None when it is unknown or the lookup failed
        """
        if not identifier:
            return None

        if mode == ResolveMode.CACHE_FIRST:
            entry = self._cache.get(identifier)
            if entry is not None:
                LOGGER.debug("Identity cache hit", extra={"identifier": identifier})
                return entry.profile

        # A lookup already in flight started after any cached entry was
        # written, so force-refresh callers may join it as well.
        pending = self._in_flight.get(identifier)
        if pending is None:
            pending = asyncio.ensure_future(self._fetch(identifier))
            self._in_flight[identifier] = pending
            pending.add_done_callback(
                lambda done, key=identifier: self._forget_in_flight(key, done)
            )

        profile = await asyncio.shield(pending)
        if profile is not None:
            return profile

        entry = self._cache.get(identifier)
        return entry.profile if entry is not None else None

    def _forget_in_flight(self, identifier: str, done: "asyncio.Future[Optional[Profile]]") -> None:
        if self._in_flight.get(identifier) is done:
            del self._in_flight[identifier]

    async def _fetch(self, identifier: str) -> Optional[Profile]:
        """Run one remote lookup and store a successful result."""
        try:
            if self.lookup_timeout is not None:
                profile = await asyncio.wait_for(self._lookup(identifier), self.lookup_timeout)
            else:
                profile = await self._lookup(identifier)
        except asyncio.TimeoutError:
            LOGGER.warning(
                "Identity lookup timed out",
                extra={"identifier": identifier, "timeout": self.lookup_timeout},
            )
            return None
        except Exception as e:
            LOGGER.warning(
                f"Identity lookup failed: {e}",
                extra={"identifier": identifier},
            )
            return None

        if profile is None:
            LOGGER.debug("Identity not found", extra={"identifier": identifier})
            return None

        self._cache[identifier] = CacheEntry(profile=profile, fetched_at=self._clock())
        return profile
