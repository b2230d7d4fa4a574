"""Pure domain utilities for the stub backend (token encoding, password hashing).

Free of FastAPI/HTTP concerns so they can be unit-tested in isolation.
"""
__all__ = ["passwords", "tokens"]
