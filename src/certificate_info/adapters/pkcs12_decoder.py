"""
PKCS#12 certificate bundle decoder.

Uses:
  - asn1crypto: PFX / AuthenticatedSafe / SafeBag ASN.1 parsing
  - cryptography (PyCA): HMAC for the integrity MAC, X.509 record building
  - pycryptodomex: RC2 for legacy encrypted content (see adapters/pbe.py)

PFX structure walked here:
    Pfx
    ├── version (3)
    ├── authSafe: ContentInfo(data) → AuthenticatedSafe
    │   ├── ContentInfo(data)           → SafeContents
    │   └── ContentInfo(encryptedData)  → decrypt → SafeContents
    │         └── SafeBag (certBag | keyBag | pkcs8ShroudedKeyBag | ... | safeContentsBag)
    └── macData (optional): HMAC over the authSafe content octets

Only certificates are extracted. Key material is never decrypted or
returned; bags of other kinds are counted and skipped.
"""

from __future__ import annotations

import structlog
from asn1crypto import core, pkcs12
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hmac

from railway import ErrorCode
from railway.result import Result

from certificate_info.adapters.der import hash_algorithm, load, octets, structure
from certificate_info.adapters.pbe import check_iterations, decrypt
from certificate_info.adapters.pkcs12_kdf import Purpose, encode_password, pkcs12_kdf
from certificate_info.adapters.x509_records import der_to_certificate_record
from certificate_info.domain.errors import (
    IntegrityError,
    ParseError,
    UnsupportedAlgorithmError,
    UnsupportedContentTypeError,
    classify_failure,
)
from certificate_info.domain.models import BagKind, CertificateRecord, MacData

log = structlog.get_logger()

_BAG_KINDS: dict[str, BagKind] = {
    "cert_bag": BagKind.CERTIFICATE,
    "key_bag": BagKind.KEY,
    "pkcs8_shrouded_key_bag": BagKind.SHROUDED_KEY,
    "crl_bag": BagKind.CRL,
    "secret_bag": BagKind.SECRET,
    "safe_contents": BagKind.NESTED,
}

_MAX_NESTING = 8


def classify_bag(bag_id: str) -> BagKind:
    """Map an asn1crypto bag id (or dotted OID) to its BagKind."""
    return _BAG_KINDS.get(bag_id, BagKind.UNRECOGNIZED)


def password_candidates(passphrase: str) -> list[bytes]:
    """
    BMP password encodings to try, in order.

    The empty passphrase is ambiguous: some producers MAC with the bare
    terminator (00 00), others with a zero-length password. Both are tried.
    """
    candidates = [encode_password(passphrase)]
    if passphrase == "":
        candidates.append(b"")
    return candidates


def read_mac_data(pfx: pkcs12.Pfx) -> MacData | None:
    mac_data = pfx["mac_data"]
    if isinstance(mac_data, core.Void):
        return None
    with structure("pfx.mac_data"):
        mac = mac_data["mac"]
        return MacData(
            digest_algorithm=mac["digest_algorithm"]["algorithm"].native,
            salt=mac_data["mac_salt"].native,
            iterations=check_iterations(mac_data["iterations"].native, "pfx.mac_data.iterations"),
            digest=mac["digest"].native,
        )


def mac_matches(mac: MacData, content: bytes, password: bytes) -> bool:
    """Constant-time check of the PFX HMAC for one password encoding."""
    algorithm = hash_algorithm(mac.digest_algorithm)
    if algorithm.block_size is None:
        raise UnsupportedAlgorithmError(f"unsupported MAC digest {mac.digest_algorithm!r}")
    key = pkcs12_kdf(algorithm, password, mac.salt, mac.iterations, Purpose.MAC, algorithm.digest_size)
    h = hmac.HMAC(key, algorithm)
    h.update(content)
    try:
        h.verify(mac.digest)
    except InvalidSignature:
        return False
    return True


class Pkcs12CertificateDecoder:
    """
    Adapter: PKCS#12 bytes → list[CertificateRecord].

    Satisfies the CertificateBundleDecoder port. Records come back in
    encounter order: authenticated-safe order, then bag order, with nested
    SafeContents expanded in place.
    """

    def decode(self, data: bytes, passphrase: str = "") -> Result[list[CertificateRecord]]:
        """
        Decode every certificate in the container.

        Returns:
            Success(records) — possibly empty if the bundle holds no certificates
            Failure(PARSE_ERROR | INTEGRITY_ERROR | UNSUPPORTED_ALGORITHM |
                    UNSUPPORTED_CONTENT_TYPE)
        """
        return Result.from_computation(
            lambda: self._do_decode(data, passphrase),
            ErrorCode.PARSE_ERROR,
            "Failed to decode PKCS#12 container",
        ).map_failure(classify_failure)

    def _do_decode(self, data: bytes, passphrase: str) -> list[CertificateRecord]:
        pfx = load(pkcs12.Pfx, data, "pfx")

        with structure("pfx.version"):
            version = pfx["version"].native
        if version not in (3, "v3"):
            raise ParseError(f"unsupported PFX version {version!r}", field="pfx.version")

        with structure("pfx.auth_safe"):
            auth_safe = pfx["auth_safe"]
            content_type = auth_safe["content_type"].native
        if content_type != "data":
            # Public-key integrity mode (signedData) is not supported.
            raise UnsupportedContentTypeError(f"authenticated safe of type {content_type!r}")
        content = octets(auth_safe["content"], "pfx.auth_safe.content")

        passwords = password_candidates(passphrase)
        mac = read_mac_data(pfx)
        if mac is not None:
            verified = next((p for p in passwords if mac_matches(mac, content, p)), None)
            if verified is None:
                raise IntegrityError("MAC verification failed")
            passwords = [verified]

        safe = load(pkcs12.AuthenticatedSafe, content, "authenticated_safe")
        records: list[CertificateRecord] = []
        skipped: dict[str, int] = {}
        with structure("authenticated_safe"):
            content_infos = list(safe)
        for index, content_info in enumerate(content_infos):
            field = f"authenticated_safe[{index}]"
            contents = self._open_content_info(
                content_info, passwords, passphrase, field, mac_verified=mac is not None
            )
            self._collect(contents, records, skipped, field, depth=0)

        log.info(
            "pkcs12.decoded",
            certificates=len(records),
            content_blocks=len(content_infos),
            mac=mac is not None,
            skipped=skipped,
        )
        return records

    def _open_content_info(
        self,
        content_info: pkcs12.ContentInfo,
        passwords: list[bytes],
        passphrase: str,
        field: str,
        mac_verified: bool,
    ) -> pkcs12.SafeContents:
        with structure(field):
            content_type = content_info["content_type"].native

        match content_type:
            case "data":
                return _load_safe_contents(octets(content_info["content"], field), field)
            case "encrypted_data":
                with structure(field):
                    encrypted_info = content_info["content"]["encrypted_content_info"]
                    algorithm = encrypted_info["content_encryption_algorithm"]
                    ciphertext = encrypted_info["encrypted_content"]
                if isinstance(ciphertext, core.Void):
                    raise ParseError("missing encrypted content", field=field)
                plaintexts = decrypt(algorithm, octets(ciphertext, field), passwords, passphrase)
            case _:
                raise UnsupportedContentTypeError(f"{field}: content of type {content_type!r}")

        # Without a MAC a wrong password can still decrypt "cleanly"; the right
        # one is the one whose plaintext is a SafeContents.
        last_error: ParseError | None = None
        for plaintext in plaintexts:
            try:
                return _load_safe_contents(plaintext, field)
            except ParseError as exc:
                last_error = exc
        if mac_verified and last_error is not None:
            raise last_error
        raise IntegrityError("encrypted content could not be decrypted with the passphrase")

    def _collect(
        self,
        contents: pkcs12.SafeContents,
        records: list[CertificateRecord],
        skipped: dict[str, int],
        field: str,
        depth: int,
    ) -> None:
        with structure(field):
            bags = list(contents)

        for index, bag in enumerate(bags):
            bag_field = f"{field}.bag[{index}]"
            with structure(bag_field):
                bag_id = bag["bag_id"].native
            kind = classify_bag(bag_id)

            match kind:
                case BagKind.CERTIFICATE:
                    record = self._read_cert_bag(bag, bag_field)
                    if record is not None:
                        records.append(record)
                case BagKind.NESTED:
                    if depth >= _MAX_NESTING:
                        raise ParseError("SafeContents nested too deeply", field=bag_field)
                    with structure(bag_field):
                        nested = bag["bag_value"]
                    self._collect(nested, records, skipped, bag_field, depth + 1)
                case _:
                    skipped[kind.value] = skipped.get(kind.value, 0) + 1
                    log.debug("pkcs12.bag_skipped", kind=kind.value, bag_id=bag_id, field=bag_field)

    def _read_cert_bag(self, bag: pkcs12.SafeBag, field: str) -> CertificateRecord | None:
        with structure(field):
            cert_bag = bag["bag_value"]
            cert_id = cert_bag["cert_id"].native
        if cert_id != "x509":
            log.debug("pkcs12.bag_skipped", kind="certificate", cert_id=cert_id, field=field)
            return None

        with structure(f"{field}.cert_value"):
            der_bytes = cert_bag["cert_value"].parsed.dump()
        friendly_name, local_key_id = _bag_attributes(bag, field)
        return der_to_certificate_record(der_bytes, friendly_name, local_key_id)


def _load_safe_contents(plaintext: bytes, field: str) -> pkcs12.SafeContents:
    """Parse a SafeContents and make sure every bag id is readable."""
    contents = load(pkcs12.SafeContents, plaintext, f"{field}.safe_contents")
    with structure(f"{field}.safe_contents"):
        for bag in contents:
            bag["bag_id"].native
    return contents


def _bag_attributes(bag: pkcs12.SafeBag, field: str) -> tuple[str | None, str | None]:
    """friendlyName and localKeyId (hex) of a bag, when present."""
    with structure(f"{field}.attributes"):
        attributes = bag["bag_attributes"]
    if isinstance(attributes, core.Void):
        return None, None

    friendly_name = None
    local_key_id = None
    with structure(f"{field}.attributes"):
        for attribute in attributes:
            attr_type = attribute["type"].native
            values = attribute["values"]
            if not len(values):
                continue
            if attr_type == "friendly_name":
                friendly_name = values[0].native
            elif attr_type == "local_key_id":
                local_key_id = values[0].native.hex()
    return friendly_name, local_key_id
