"""
Shared test configuration

Runs before any zenith_bank import so the settings object picks these up:
cheap scrypt costs keep credential-heavy tests fast, and the in-memory
backend keeps the API from opening a database file.
"""

import os

os.environ.setdefault("ZENITH_SCRYPT_N", "1024")
os.environ.setdefault("ZENITH_STORAGE_BACKEND", "memory")
os.environ.setdefault("ZENITH_JWT_SECRET", "test-secret-key-with-enough-length-for-hs256")
