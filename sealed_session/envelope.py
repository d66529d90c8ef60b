"""
Session Envelope — authenticated encryption of session payloads.

Token format: base64url_unpadded([nonce 24B][encrypted_payload + tag 16B])

The 24-byte random nonce is split in two halves:
- nonce[:12] salts an HKDF-SHA256 derivation of a per-token subkey
- nonce[12:] is the ChaCha20-Poly1305 nonce under that subkey

This extends the 96-bit AEAD nonce to 192 random bits, so nonce reuse under
the same key is negligible even over very large session volumes.

Security Note:
    Never log plaintext, tokens or key material.
    Every decode failure raises the same InvalidToken, whatever the cause.
"""
import os
import re
import base64
import binascii
from collections.abc import Sequence

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305

from .exceptions import EncodeError, InvalidToken

NONCE_SIZE = 24
SALT_SIZE = 12
TAG_SIZE = 16
KEY_LENGTH = 32

_CONTEXT = b"sealed-session-v1"
_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_-]*\Z")


def derive_key(key: bytes, salt: bytes) -> bytes:
    """Derive the 32-byte subkey used to seal a single token.

    Args:
        key: 32-byte key from the key ring.
        salt: first half of the token nonce.

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        info=_CONTEXT,
    )
    return hkdf.derive(key)


def _check_key(key: bytes) -> None:
    if len(key) != KEY_LENGTH:
        raise ValueError(
            f"Session key must be exactly {KEY_LENGTH} bytes, got {len(key)}"
        )


def _b64decode(token: str) -> bytes:
    if not isinstance(token, str) or not _TOKEN_PATTERN.match(token):
        raise InvalidToken("session: invalid token")
    try:
        raw = token.encode("ascii")
        raw += b"=" * (-len(raw) % 4)
        return base64.b64decode(raw, altchars=b"-_", validate=True)
    except (UnicodeEncodeError, binascii.Error, ValueError) as err:
        raise InvalidToken("session: invalid token") from err


def encrypt(plaintext: bytes, key: bytes) -> str:
    """Seal plaintext into a session token.

    Args:
        plaintext: serialized session payload.
        key: active 32-byte key.

    Returns:
        URL-safe, unpadded base64 token.

    Raises:
        EncodeError: If the system randomness source is unavailable.
    """
    _check_key(key)
    try:
        nonce = os.urandom(NONCE_SIZE)
    except NotImplementedError as err:
        raise EncodeError(f"session: no randomness source: {err}") from err
    cipher = ChaCha20Poly1305(derive_key(key, nonce[:SALT_SIZE]))
    box = nonce + cipher.encrypt(nonce[SALT_SIZE:], plaintext, None)
    return base64.urlsafe_b64encode(box).rstrip(b"=").decode("ascii")


def decrypt(token: str, keys: Sequence[bytes]) -> bytes:
    """Open a session token with the first key of the ring that fits.

    Args:
        token: URL-safe base64 token from the session cookie.
        keys: key ring, active key first.

    Returns:
        Decrypted plaintext bytes.

    Raises:
        InvalidToken: If the token is malformed, tampered with, or sealed
            with a key that is not in the ring.
    """
    box = _b64decode(token)
    if len(box) < NONCE_SIZE + TAG_SIZE:
        raise InvalidToken("session: invalid token")
    nonce = box[:NONCE_SIZE]
    ct = box[NONCE_SIZE:]
    for key in keys:
        _check_key(key)
        cipher = ChaCha20Poly1305(derive_key(key, nonce[:SALT_SIZE]))
        try:
            return cipher.decrypt(nonce[SALT_SIZE:], ct, None)
        except InvalidTag:
            continue
    raise InvalidToken("session: invalid token")
