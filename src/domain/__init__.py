"""Domain models and types for the sales tax engine.

This package contains the in-memory models describing calculation requests,
results and local tax rate records. They are independent from persistence
models so that business logic and testing can evolve without DB coupling.
"""

__all__ = [
    "address",
    "calculation",
    "context",
    "errors",
    "line_items",
    "postal",
    "tax_rates",
]
