"""
SMS4Dev: a local mock SMS provider.

Request authentication for the mock API: static key/secret and
HMAC-signed requests, plus access-key lifecycle management.
"""

__version__ = "1.0.0"
