"""
PKCS#12 password-based key derivation (RFC 7292, Appendix B.2).

Used for the MAC key of a PFX and for the key and IV of the legacy
pbeWithSHAAnd* encryption schemes. PBES2 containers use PBKDF2 instead.
"""

from __future__ import annotations

from enum import IntEnum

from cryptography.hazmat.primitives import hashes


class Purpose(IntEnum):
    """Diversifier ID byte: what the derived material is for."""

    KEY = 1
    IV = 2
    MAC = 3


def encode_password(passphrase: str) -> bytes:
    """BMPString encoding with the two-byte NUL terminator required by PKCS#12."""
    return passphrase.encode("utf-16-be") + b"\x00\x00"


def _stretch(data: bytes, block: int) -> bytes:
    """Repeat `data` up to the next multiple of `block` bytes (empty stays empty)."""
    if not data:
        return b""
    size = block * ((len(data) + block - 1) // block)
    return (data * (size // len(data) + 1))[:size]


def pkcs12_kdf(
    algorithm: hashes.HashAlgorithm,
    password: bytes,
    salt: bytes,
    iterations: int,
    purpose: Purpose,
    length: int,
) -> bytes:
    """
    Derive `length` bytes of key material.

    `password` must already be encoded (see `encode_password`); a zero-length
    password is allowed and contributes nothing to the input block.
    """
    if iterations < 1:
        raise ValueError(f"iteration count must be positive, got {iterations}")

    u = algorithm.digest_size
    v = algorithm.block_size
    if v is None:
        raise ValueError(f"{algorithm.name} has no block size")

    diversifier = bytes([purpose]) * v
    i_block = bytearray(_stretch(salt, v) + _stretch(password, v))

    result = b""
    while len(result) < length:
        ctx = hashes.Hash(algorithm)
        ctx.update(diversifier)
        ctx.update(bytes(i_block))
        a_value = ctx.finalize()
        for _ in range(1, iterations):
            ctx = hashes.Hash(algorithm)
            ctx.update(a_value)
            a_value = ctx.finalize()
        result += a_value
        if len(result) >= length:
            break

        # I_j = (I_j + B + 1) mod 2^(8v) for every v-byte block of I
        b_value = int.from_bytes(_stretch(a_value, v)[:v], "big")
        for start in range(0, len(i_block), v):
            chunk = int.from_bytes(i_block[start:start + v], "big")
            chunk = (chunk + b_value + 1) % (1 << (8 * v))
            i_block[start:start + v] = chunk.to_bytes(v, "big")

    return result[:length]
