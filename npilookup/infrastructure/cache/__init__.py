"""Caching Service Implementation.

Provides the in-memory TTL implementation of the CacheService interface,
including its background expiry sweeper.
Bounded Context: Cache Management
"""
