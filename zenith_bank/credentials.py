"""
Credential Module

Salted scrypt hashing for login passwords and transaction PINs.

Digests are self-describing: ``scrypt$<purpose>$<n>$<r>$<p>$<salt>$<hex>``.
The purpose tag keeps password and PIN digests apart, so a PIN digest
never verifies as a password and vice versa. Bare 64-character SHA-256
hex digests (unsalted, as found in older data files) still verify but
report ``needs_rehash``.
"""

import hashlib
import hmac
import re
import secrets
from typing import Optional, Tuple

from .config import get_config


SCHEME = "scrypt"
PURPOSE_PASSWORD = "password"
PURPOSE_PIN = "pin"

MAX_R = 32
MAX_P = 16

_LEGACY_SHA256 = re.compile(r"^[0-9a-f]{64}$")
_SCRYPT_DIGEST = re.compile(
    r"^scrypt\$(password|pin)\$(\d{1,10})\$(\d{1,3})\$(\d{1,3})\$([^$]+)\$([0-9a-f]+)$"
)


def costs_in_bounds(n: int, r: int, p: int, max_n: int) -> bool:
    """n is a power of two no larger than max_n; r and p are small positives"""
    return 1 < n <= max_n and n & (n - 1) == 0 and 1 <= r <= MAX_R and 1 <= p <= MAX_P


def is_well_formed(digest: str, max_n: Optional[int] = None) -> bool:
    """
    True for an empty digest (no credential set), a legacy SHA-256 digest,
    or a scrypt digest whose cost parameters are within bounds
    """
    if digest == "" or _LEGACY_SHA256.match(digest):
        return True
    match = _SCRYPT_DIGEST.match(digest)
    if match is None:
        return False
    max_n = max_n or get_config().scrypt_max_n
    n, r, p = (int(group) for group in match.group(2, 3, 4))
    return costs_in_bounds(n, r, p, max_n)


class CredentialHasher:
    """Hashes and verifies one kind of secret"""
    
    def __init__(self, purpose: str, n: int = 16384, r: int = 8, p: int = 1,
                 max_n: int = 1048576):
        self.purpose = purpose
        self.n = n
        self.r = r
        self.p = p
        self.max_n = max(max_n, n)
    
    def _generate_salt(self) -> str:
        """Generate random salt for hashing"""
        return secrets.token_hex(16)
    
    def _derive(self, secret: str, salt: str, n: int, r: int, p: int) -> str:
        # maxmem must cover 128 * n * r bytes plus overhead
        return hashlib.scrypt(
            secret.encode(),
            salt=salt.encode(),
            n=n, r=r, p=p,
            maxmem=256 * n * r + 1024 * 1024
        ).hex()
    
    def _parse(self, digest: str) -> Optional[Tuple[int, int, int, str, str]]:
        """Costs, salt and derived hex of a scrypt digest for this purpose"""
        match = _SCRYPT_DIGEST.match(digest)
        if match is None or match.group(1) != self.purpose:
            return None
        n, r, p = (int(group) for group in match.group(2, 3, 4))
        if not costs_in_bounds(n, r, p, self.max_n):
            return None
        return n, r, p, match.group(5), match.group(6)
    
    def hash(self, secret: str, salt: Optional[str] = None) -> str:
        """Hash a secret with a fresh (or given) salt"""
        salt = salt or self._generate_salt()
        derived = self._derive(secret, salt, self.n, self.r, self.p)
        return f"{SCHEME}${self.purpose}${self.n}${self.r}${self.p}${salt}${derived}"
    
    def verify(self, secret: str, digest: str) -> bool:
        """Recompute the digest for ``secret`` and compare in constant time"""
        if not digest or secret is None:
            return False
        
        if self.is_legacy(digest):
            expected = hashlib.sha256(secret.encode()).hexdigest()
            return hmac.compare_digest(expected, digest)
        
        parsed = self._parse(digest)
        if parsed is None:
            return False
        n, r, p, salt, expected = parsed
        
        try:
            actual = self._derive(secret, salt, n, r, p)
        except (ValueError, MemoryError):
            return False
        return hmac.compare_digest(actual, expected)
    
    @staticmethod
    def is_legacy(digest: str) -> bool:
        """Unsalted SHA-256 hex digest"""
        return bool(digest) and _LEGACY_SHA256.match(digest) is not None
    
    def needs_rehash(self, digest: str) -> bool:
        """True for legacy digests and digests made with other cost parameters"""
        if self.is_legacy(digest):
            return True
        parsed = self._parse(digest)
        if parsed is None:
            return False
        return parsed[:3] != (self.n, self.r, self.p)


def password_hasher() -> CredentialHasher:
    """Hasher for login passwords, using configured scrypt costs"""
    config = get_config()
    return CredentialHasher(PURPOSE_PASSWORD, config.scrypt_n, config.scrypt_r, config.scrypt_p,
                            config.scrypt_max_n)


def pin_hasher() -> CredentialHasher:
    """Hasher for transaction PINs, using configured scrypt costs"""
    config = get_config()
    return CredentialHasher(PURPOSE_PIN, config.scrypt_n, config.scrypt_r, config.scrypt_p,
                            config.scrypt_max_n)
