"""Domain models (entities and value objects)."""
