"""Identity resolution."""

from .identity_resolver import CacheEntry, IdentityResolver, ResolveMode

__all__ = ["CacheEntry", "IdentityResolver", "ResolveMode"]
