"""Defines common Value Objects used across different domain contexts.

These are plain strings at runtime; the NewTypes only add semantic clarity
to signatures.
"""

from typing import NewType

# === Lookup Context ===
NpiNumber = NewType("NpiNumber", str)        # 10-digit National Provider Identifier
RequestUrl = NewType("RequestUrl", str)      # Fully assembled registry GET URL

# === Caching Context ===
CacheKey = NewType("CacheKey", str)          # Unique key for a cache entry
