"""
Password-based decryption of PKCS#12 encryptedData content.

Supported schemes:
  - pbeWithSHAAnd3-KeyTripleDES-CBC / 2-KeyTripleDES-CBC
  - pbeWithSHAAnd128BitRC2-CBC / 40BitRC2-CBC
  - pbeWithSHAAnd128BitRC4 / 40BitRC4
  - PBES2 (PBKDF2 + AES-CBC or DES-EDE3-CBC)

The legacy schemes derive key and IV with the PKCS#12 KDF over the BMP
password; PBES2 runs PBKDF2 over the UTF-8 password. RC2 comes from
pycryptodomex because `cryptography` only offers 128-bit RC2.

Callers pass every BMP password candidate worth trying and get back one
plaintext per candidate that decrypts cleanly (valid PKCS#7 padding for block
ciphers, any output for RC4). Picking the right one is left to the caller,
which knows what the plaintext must parse as. When no candidate yields a
plaintext the content is treated as tampered (IntegrityError).
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass

from asn1crypto import algos
from Cryptodome.Cipher import ARC2
from cryptography.hazmat.decrepit.ciphers.algorithms import ARC4, TripleDES
from cryptography.hazmat.primitives import hashes, padding
from cryptography.hazmat.primitives.ciphers import Cipher, algorithms, modes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from certificate_info.adapters.der import hash_algorithm, structure
from certificate_info.adapters.pkcs12_kdf import Purpose, pkcs12_kdf
from certificate_info.domain.errors import (
    IntegrityError,
    ParseError,
    UnsupportedAlgorithmError,
)

# Iteration counts above this are refused rather than spun on.
MAX_ITERATIONS = 10_000_000


@dataclass(frozen=True, slots=True)
class _LegacyScheme:
    cipher: str
    key_length: int


_PKCS12_SCHEMES: dict[str, _LegacyScheme] = {
    "pkcs12_sha1_tripledes_3key": _LegacyScheme("tripledes", 24),
    "pkcs12_sha1_tripledes_2key": _LegacyScheme("tripledes", 16),
    "pkcs12_sha1_rc2_128": _LegacyScheme("rc2", 16),
    "pkcs12_sha1_rc2_40": _LegacyScheme("rc2", 5),
    "pkcs12_sha1_rc4_128": _LegacyScheme("rc4", 16),
    "pkcs12_sha1_rc4_40": _LegacyScheme("rc4", 5),
}

# PBES2 encryption schemes: cipher name and key length in bytes
_PBES2_SCHEMES: dict[str, tuple[str, int]] = {
    "aes128_cbc": ("aes", 16),
    "aes192_cbc": ("aes", 24),
    "aes256_cbc": ("aes", 32),
    "tripledes_3key": ("tripledes", 24),
}

_BLOCK_SIZES = {"tripledes": 8, "rc2": 8, "aes": 16, "rc4": None}


def check_iterations(iterations: int, field: str) -> int:
    if not 1 <= iterations <= MAX_ITERATIONS:
        raise ParseError(f"iteration count {iterations} out of range", field=field)
    return iterations


def _run_cipher(cipher: str, key: bytes, iv: bytes | None, ciphertext: bytes) -> bytes:
    match cipher:
        case "rc2":
            return ARC2.new(key, ARC2.MODE_CBC, iv, effective_keylen=len(key) * 8).decrypt(ciphertext)
        case "rc4":
            decryptor = Cipher(ARC4(key), mode=None).decryptor()
        case "tripledes":
            decryptor = Cipher(TripleDES(key), modes.CBC(iv)).decryptor()
        case "aes":
            decryptor = Cipher(algorithms.AES(key), modes.CBC(iv)).decryptor()
        case _:
            raise UnsupportedAlgorithmError(f"unsupported cipher {cipher!r}")
    return decryptor.update(ciphertext) + decryptor.finalize()


def _unpad(plaintext: bytes, block_size: int) -> bytes | None:
    """Strip PKCS#7 padding; None when the padding is not well formed."""
    unpadder = padding.PKCS7(block_size * 8).unpadder()
    try:
        return unpadder.update(plaintext) + unpadder.finalize()
    except ValueError:
        return None


def _decrypt_with_candidates(
    cipher: str,
    ciphertext: bytes,
    candidates: Sequence[tuple[bytes, bytes | None]],
) -> Iterator[bytes]:
    block_size = _BLOCK_SIZES[cipher]
    if block_size is not None and (not ciphertext or len(ciphertext) % block_size):
        raise ParseError(
            f"ciphertext length {len(ciphertext)} is not a multiple of {block_size}",
            field="encrypted_content",
        )

    yielded = False
    for key, iv in candidates:
        plaintext = _run_cipher(cipher, key, iv, ciphertext)
        if block_size is not None:
            plaintext = _unpad(plaintext, block_size)
            if plaintext is None:
                continue
        yielded = True
        yield plaintext
    if not yielded:
        raise IntegrityError("encrypted content could not be decrypted with the passphrase")


def _decrypt_pkcs12_pbe(
    scheme: _LegacyScheme,
    algorithm: algos.EncryptionAlgorithm,
    ciphertext: bytes,
    bmp_passwords: Sequence[bytes],
) -> Iterator[bytes]:
    with structure("encryption_algorithm.parameters"):
        params = algorithm["parameters"]
        salt = params["salt"].native
        iterations = check_iterations(params["iterations"].native, "encryption_algorithm.iterations")

    sha1 = hashes.SHA1()
    candidates = []
    for password in bmp_passwords:
        key = pkcs12_kdf(sha1, password, salt, iterations, Purpose.KEY, scheme.key_length)
        iv = None
        if scheme.cipher != "rc4":
            iv = pkcs12_kdf(sha1, password, salt, iterations, Purpose.IV, 8)
        candidates.append((key, iv))
    return _decrypt_with_candidates(scheme.cipher, ciphertext, candidates)


def _decrypt_pbes2(
    algorithm: algos.EncryptionAlgorithm,
    ciphertext: bytes,
    passphrase: str,
) -> Iterator[bytes]:
    with structure("encryption_algorithm.parameters"):
        params = algorithm["parameters"]
        kdf = params["key_derivation_func"]
        kdf_name = kdf["algorithm"].native
        scheme = params["encryption_scheme"]
        scheme_name = scheme["algorithm"].native

    if kdf_name != "pbkdf2":
        raise UnsupportedAlgorithmError(f"unsupported PBES2 key derivation {kdf_name!r}")
    if scheme_name not in _PBES2_SCHEMES:
        raise UnsupportedAlgorithmError(f"unsupported PBES2 encryption scheme {scheme_name!r}")
    cipher, key_length = _PBES2_SCHEMES[scheme_name]

    with structure("encryption_algorithm.pbkdf2"):
        kdf_params = kdf["parameters"]
        salt_choice = kdf_params["salt"]
        if salt_choice.name != "specified":
            raise UnsupportedAlgorithmError("PBKDF2 salt must be an explicit OCTET STRING")
        salt = salt_choice.chosen.native
        iterations = check_iterations(
            kdf_params["iteration_count"].native, "encryption_algorithm.iterations"
        )
        declared_length = kdf_params["key_length"].native
        prf = kdf_params["prf"]["algorithm"].native
        iv = scheme["parameters"].native

    if declared_length is not None and declared_length != key_length:
        raise ParseError(
            f"PBKDF2 key length {declared_length} does not match {scheme_name}",
            field="encryption_algorithm.pbkdf2",
        )
    if not isinstance(iv, bytes) or len(iv) != _BLOCK_SIZES[cipher]:
        raise ParseError("missing or malformed IV", field="encryption_algorithm.iv")

    key = PBKDF2HMAC(
        algorithm=hash_algorithm(prf),
        length=key_length,
        salt=salt,
        iterations=iterations,
    ).derive(passphrase.encode("utf-8"))
    return _decrypt_with_candidates(cipher, ciphertext, [(key, iv)])


def decrypt(
    algorithm: algos.EncryptionAlgorithm,
    ciphertext: bytes,
    bmp_passwords: Sequence[bytes],
    passphrase: str,
) -> Iterator[bytes]:
    """
    Decrypt PKCS#12 encryptedData content.

    Lazily yields one candidate SafeContents plaintext per password that
    decrypts cleanly. Malformed parameters and unknown schemes raise before
    anything is decrypted.
    """
    with structure("encryption_algorithm"):
        name = algorithm["algorithm"].native

    if name in _PKCS12_SCHEMES:
        return _decrypt_pkcs12_pbe(_PKCS12_SCHEMES[name], algorithm, ciphertext, bmp_passwords)
    if name == "pbes2":
        return _decrypt_pbes2(algorithm, ciphertext, passphrase)
    raise UnsupportedAlgorithmError(f"unsupported encryption algorithm {name!r}")
