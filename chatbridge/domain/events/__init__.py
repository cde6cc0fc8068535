"""Domain Event definitions.

Represents significant occurrences within the API client that other parts
of the system might react to.
"""
