"""Application services, one per backend area."""
