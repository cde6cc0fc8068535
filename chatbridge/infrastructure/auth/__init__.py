"""Bearer token sources for authenticated backend calls."""
