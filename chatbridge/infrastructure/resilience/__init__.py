"""API Resilience Implementations.

Contains the request throttle and the retry classification used by the
API client: minimum spacing between calls, exponential backoff and the
mapping of transport failures onto error kinds.
Bounded Context: API Resilience
"""
