"""Caching Service Implementation.

Provides the concrete implementation for the CacheService interface,
handling two cache levels (L1: in-memory, L2: diskcache) with TTLs.
Bounded Context: Cache Management
"""
