"""Genesis state builder and verifier for proof-of-stake system contracts."""

__version__ = "1.0.0"
