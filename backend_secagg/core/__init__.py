"""
Core utilities — error taxonomy and cross-cutting concerns.

Provides the exception hierarchy shared by the crypto, transport, protocol
and CLI layers.
"""
