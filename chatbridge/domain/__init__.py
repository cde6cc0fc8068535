"""Domain Layer: value objects, chat models, API models, errors and interfaces.

Has no dependency on infrastructure; adapters implement the interfaces
defined here.
"""
