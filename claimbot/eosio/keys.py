"""
secp256k1 (K1) keys and signatures in EOSIO string formats.

Private keys are accepted as legacy WIF ("5...") or "PVT_K1_...".
Public keys render in the legacy "EOS..." form, signatures as "SIG_K1_...".
"""

import hashlib
from typing import Optional

import base58
from Crypto.Hash import RIPEMD160
from ecdsa import BadSignatureError, SECP256k1, SigningKey, VerifyingKey
from ecdsa.keys import MalformedPointError
from ecdsa.util import sigdecode_string, sigencode_string

from claimbot.core.exceptions import InvalidKeyError, SigningError


CURVE_ORDER = SECP256k1.order
WIF_PREFIX = 0x80
MAX_SIGN_ATTEMPTS = 256


def ripemd160(data: bytes) -> bytes:
    return RIPEMD160.new(data).digest()


def _double_sha256(data: bytes) -> bytes:
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def _k1_checksum(data: bytes) -> bytes:
    return ripemd160(data + b"K1")[:4]


def _b58decode(text: str) -> bytes:
    try:
        return base58.b58decode(text)
    except ValueError as e:
        raise InvalidKeyError(f"not base58: {e}")


def is_canonical(signature: bytes) -> bool:
    """EOSIO canonical check on a 64-byte r||s signature."""
    r, s = signature[:32], signature[32:]
    return (
        not (r[0] & 0x80)
        and not (r[0] == 0 and not (r[1] & 0x80))
        and not (s[0] & 0x80)
        and not (s[0] == 0 and not (s[1] & 0x80))
    )


class PublicKey:
    """Compressed secp256k1 public key."""

    def __init__(self, verifying_key: VerifyingKey):
        self._key = verifying_key

    @property
    def compressed(self) -> bytes:
        return self._key.to_string("compressed")

    def to_legacy_string(self) -> str:
        data = self.compressed
        return "EOS" + base58.b58encode(data + ripemd160(data)[:4]).decode("ascii")

    def to_string(self) -> str:
        data = self.compressed
        return "PUB_K1_" + base58.b58encode(data + _k1_checksum(data)).decode("ascii")

    def verify(self, digest: bytes, signature: str) -> bool:
        """Check a SIG_K1_ signature over a 32-byte digest."""
        raw = decode_signature(signature)
        try:
            return self._key.verify_digest(raw[1:], digest, sigdecode=sigdecode_string)
        except BadSignatureError:
            return False

    def __eq__(self, other) -> bool:
        return isinstance(other, PublicKey) and self.compressed == other.compressed

    def __hash__(self) -> int:
        return hash(self.compressed)

    def __str__(self) -> str:
        return self.to_legacy_string()

    def __repr__(self) -> str:
        return f"PublicKey({self.to_legacy_string()})"


class PrivateKey:
    """secp256k1 private key able to produce EOSIO canonical signatures."""

    def __init__(self, secret: bytes):
        if len(secret) != 32:
            raise InvalidKeyError(f"expected 32 bytes, got {len(secret)}")
        try:
            self._key = SigningKey.from_string(secret, curve=SECP256k1)
        except (MalformedPointError, ValueError) as e:
            raise InvalidKeyError(str(e))
        self._public_key: Optional[PublicKey] = None

    @classmethod
    def from_string(cls, text: str) -> "PrivateKey":
        """Parse legacy WIF or PVT_K1_ key strings."""
        if not isinstance(text, str) or not text:
            raise InvalidKeyError("empty key")

        if text.startswith("PVT_"):
            if not text.startswith("PVT_K1_"):
                raise InvalidKeyError("only K1 keys are supported")
            raw = _b58decode(text[len("PVT_K1_"):])
            if len(raw) != 36:
                raise InvalidKeyError("wrong length")
            secret, checksum = raw[:32], raw[32:]
            if _k1_checksum(secret) != checksum:
                raise InvalidKeyError("checksum mismatch")
            return cls(secret)

        raw = _b58decode(text)
        if len(raw) != 37 or raw[0] != WIF_PREFIX:
            raise InvalidKeyError("not a WIF key")
        payload, checksum = raw[:-4], raw[-4:]
        if _double_sha256(payload)[:4] != checksum:
            raise InvalidKeyError("checksum mismatch")
        return cls(payload[1:])

    @property
    def secret(self) -> bytes:
        return self._key.to_string()

    def public_key(self) -> PublicKey:
        if self._public_key is None:
            self._public_key = PublicKey(self._key.get_verifying_key())
        return self._public_key

    def to_wif(self) -> str:
        payload = bytes([WIF_PREFIX]) + self.secret
        return base58.b58encode(payload + _double_sha256(payload)[:4]).decode("ascii")

    def to_string(self) -> str:
        return "PVT_K1_" + base58.b58encode(self.secret + _k1_checksum(self.secret)).decode("ascii")

    def sign(self, digest: bytes) -> str:
        """
        Sign a 32-byte digest.

        RFC 6979 nonces are re-derived with extra entropy until the
        signature is canonical, as nodes reject non-canonical ones.

        Returns:
            Signature as a SIG_K1_ string
        """
        if len(digest) != 32:
            raise SigningError("Digest must be 32 bytes", {"length": len(digest)})

        public_key = self.public_key()

        for attempt in range(MAX_SIGN_ATTEMPTS):
            entropy = attempt.to_bytes(32, "big") if attempt else b""
            raw = self._key.sign_digest_deterministic(
                digest,
                hashfunc=hashlib.sha256,
                sigencode=sigencode_string,
                extra_entropy=entropy,
            )

            r = raw[:32]
            s = int.from_bytes(raw[32:], "big")
            if s > CURVE_ORDER // 2:
                s = CURVE_ORDER - s
            rs = r + s.to_bytes(32, "big")

            if not is_canonical(rs):
                continue

            recovery_id = self._recovery_id(rs, digest, public_key)
            data = bytes([recovery_id + 27 + 4]) + rs
            return "SIG_K1_" + base58.b58encode(data + _k1_checksum(data)).decode("ascii")

        raise SigningError("Could not produce a canonical signature")

    @staticmethod
    def _recovery_id(rs: bytes, digest: bytes, public_key: PublicKey) -> int:
        candidates = VerifyingKey.from_public_key_recovery_with_digest(
            rs, digest, SECP256k1, hashfunc=hashlib.sha256, sigdecode=sigdecode_string
        )
        for index, candidate in enumerate(candidates):
            if candidate.to_string("compressed") == public_key.compressed:
                return index
        raise SigningError("Public key is not recoverable from signature")

    def __repr__(self) -> str:
        return f"PrivateKey(public={self.public_key()})"


def decode_signature(signature: str) -> bytes:
    """Decode a SIG_K1_ string to its 65 raw bytes (recovery header + r + s)."""
    if not signature.startswith("SIG_K1_"):
        raise InvalidKeyError("only SIG_K1_ signatures are supported")
    raw = _b58decode(signature[len("SIG_K1_"):])
    if len(raw) != 69:
        raise InvalidKeyError("wrong signature length")
    data, checksum = raw[:65], raw[65:]
    if _k1_checksum(data) != checksum:
        raise InvalidKeyError("signature checksum mismatch")
    return data
