"""Signing identity for Apple Wallet passes.

The store holds the Pass Type ID certificate, its private key and the Apple
WWDR intermediate certificate. It is loaded and validated once and is
read-only afterwards, so a single instance can be shared between requests.

Malformed PEM input (banner text around the body, mixed line endings, wrong
passphrase) is rejected as-is. No attempt is made to repair it.
"""

import datetime as dt
import typing as t
from dataclasses import dataclass
from pathlib import Path

import structlog
from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import PrivateKeyTypes
from cryptography.x509.oid import NameOID
from django.conf import settings

from wallet.exceptions import CertificateConfigError

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class CertificateStore:
    """A validated, read-only signing identity.

    The paths are kept because the signing tool reads the PEM files itself.
    """

    certificate: x509.Certificate
    private_key: PrivateKeyTypes
    wwdr_certificate: x509.Certificate
    cert_path: Path
    key_path: Path
    wwdr_cert_path: Path
    key_password: str = ""

    @property
    def expires_at(self) -> dt.datetime:
        """The earliest expiry of the two certificates."""
        return min(self.certificate.not_valid_after_utc, self.wwdr_certificate.not_valid_after_utc)


def is_signing_configured() -> bool:
    """Check whether all signing settings are present.

    Returns:
        True if the pass type, team and all certificate paths are set.
    """
    return bool(
        settings.APPLE_WALLET_PASS_TYPE_ID
        and settings.APPLE_WALLET_TEAM_ID
        and settings.APPLE_WALLET_CERT_PATH
        and settings.APPLE_WALLET_KEY_PATH
        and settings.APPLE_WALLET_WWDR_CERT_PATH
    )


def load_certificate_store(
    cert_path: str | None = None,
    key_path: str | None = None,
    key_password: str | None = None,
    wwdr_cert_path: str | None = None,
    *,
    pass_type_identifier: str | None = None,
    team_identifier: str | None = None,
    now: dt.datetime | None = None,
) -> CertificateStore:
    """Load and validate the signing identity.

    Args:
        cert_path: Path to the Pass Type ID certificate (PEM format).
        key_path: Path to the private key (PEM format).
        key_password: Password for the private key (if encrypted).
        wwdr_cert_path: Path to Apple WWDR intermediate certificate.
        pass_type_identifier: Expected pass type, compared with the certificate UID when present.
        team_identifier: Expected team, compared with the certificate OU when present.
        now: Reference time for the validity check.

    If paths are not provided, they are read from Django settings.

    Returns:
        The validated CertificateStore.

    Raises:
        CertificateConfigError: If anything is missing, unparseable, expired or inconsistent.
    """
    cert_path = cert_path or settings.APPLE_WALLET_CERT_PATH
    key_path = key_path or settings.APPLE_WALLET_KEY_PATH
    key_password = key_password if key_password is not None else settings.APPLE_WALLET_KEY_PASSWORD
    wwdr_cert_path = wwdr_cert_path or settings.APPLE_WALLET_WWDR_CERT_PATH
    pass_type_identifier = pass_type_identifier or settings.APPLE_WALLET_PASS_TYPE_ID
    team_identifier = team_identifier or settings.APPLE_WALLET_TEAM_ID

    if not (cert_path and key_path and wwdr_cert_path):
        raise CertificateConfigError(
            "Apple Wallet is not configured. Set APPLE_WALLET_CERT_PATH, "
            "APPLE_WALLET_KEY_PATH and APPLE_WALLET_WWDR_CERT_PATH in settings."
        )

    certificate = _load_certificate(cert_path)
    wwdr_certificate = _load_certificate(wwdr_cert_path)
    private_key = _load_private_key(key_path, key_password)

    now = now or dt.datetime.now(dt.UTC)
    for path, cert in ((cert_path, certificate), (wwdr_cert_path, wwdr_certificate)):
        _check_validity(path, cert, now)

    if _public_bytes(private_key.public_key()) != _public_bytes(certificate.public_key()):  # type: ignore[union-attr]
        raise CertificateConfigError(f"Private key {key_path} does not match certificate {cert_path}")

    _check_identity(certificate, NameOID.USER_ID, pass_type_identifier, "pass type identifier")
    _check_identity(certificate, NameOID.ORGANIZATIONAL_UNIT_NAME, team_identifier, "team identifier")

    store = CertificateStore(
        certificate=certificate,
        private_key=private_key,
        wwdr_certificate=wwdr_certificate,
        cert_path=Path(cert_path),
        key_path=Path(key_path),
        wwdr_cert_path=Path(wwdr_cert_path),
        key_password=key_password or "",
    )
    logger.info("apple_wallet_certificates_loaded", expires_at=store.expires_at.isoformat())
    return store


def _load_certificate(path: str) -> x509.Certificate:
    try:
        return x509.load_pem_x509_certificate(Path(path).read_bytes())
    except FileNotFoundError:
        raise CertificateConfigError(f"Certificate not found: {path}")
    except (ValueError, OSError) as e:
        raise CertificateConfigError(f"Failed to load certificate {path}: {e}") from e


def _load_private_key(path: str, password: str | None) -> PrivateKeyTypes:
    try:
        key_data = Path(path).read_bytes()
    except FileNotFoundError:
        raise CertificateConfigError(f"Private key not found: {path}")
    except OSError as e:
        raise CertificateConfigError(f"Failed to read private key {path}: {e}") from e

    try:
        return serialization.load_pem_private_key(key_data, password=password.encode() if password else None)
    except (ValueError, TypeError) as e:
        # Never include key material in the message
        raise CertificateConfigError(f"Failed to load private key {path}: {type(e).__name__}") from e


def _check_validity(path: str, cert: x509.Certificate, now: dt.datetime) -> None:
    if now < cert.not_valid_before_utc:
        raise CertificateConfigError(f"Certificate {path} is not valid before {cert.not_valid_before_utc.isoformat()}")
    if now > cert.not_valid_after_utc:
        raise CertificateConfigError(f"Certificate {path} expired at {cert.not_valid_after_utc.isoformat()}")


def _check_identity(cert: x509.Certificate, oid: x509.ObjectIdentifier, expected: str, label: str) -> None:
    values = [attr.value for attr in cert.subject.get_attributes_for_oid(oid)]
    if values and expected and expected not in values:
        raise CertificateConfigError(f"Certificate {label} {values[0]!r} does not match configured {expected!r}")


def _public_bytes(public_key: t.Any) -> bytes:
    return t.cast(
        bytes,
        public_key.public_bytes(
            serialization.Encoding.PEM,
            serialization.PublicFormat.SubjectPublicKeyInfo,
        ),
    )
