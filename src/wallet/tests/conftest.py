"""Test fixtures for wallet app tests.

This module mints a throwaway certificate authority standing in for Apple's
WWDR intermediate and a Pass Type ID certificate issued by it, writes them as
PEM files, and points the wallet settings at them. Customer fixtures come
from src/conftest.py.
"""

import shutil
from collections.abc import Generator
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any
from unittest.mock import MagicMock

import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.x509.oid import NameOID

import wallet.service
from wallet.apple.assets import AssetSet, load_asset_set
from wallet.apple.certificates import CertificateStore, load_certificate_store
from wallet.apple.push import NotificationResult, PushNotificationDispatcher
from wallet.apple.signer import ApplePassSigner, compute_manifest
from wallet.service import WalletService

PASS_TYPE_ID = "pass.com.example.loyalty"
TEAM_ID = "TEAM123456"
WEB_SERVICE_TOKEN = "web-service-token-for-tests"
KEY_PASSWORD = "correct horse battery staple"

requires_openssl = pytest.mark.skipif(shutil.which("openssl") is None, reason="openssl binary not available")


@dataclass(frozen=True)
class SigningIdentity:
    """Paths of a PEM signing identity written to disk."""

    cert_path: Path
    key_path: Path
    wwdr_cert_path: Path
    key_password: str = ""


def make_key() -> rsa.RSAPrivateKey:
    return rsa.generate_private_key(public_exponent=65537, key_size=2048)


def make_certificate(
    subject_key: rsa.RSAPrivateKey,
    issuer_key: rsa.RSAPrivateKey,
    subject: list[x509.NameAttribute],
    issuer: list[x509.NameAttribute] | None = None,
    *,
    not_before: datetime | None = None,
    not_after: datetime | None = None,
    is_ca: bool = False,
) -> x509.Certificate:
    """Build a certificate for subject_key, signed by issuer_key."""
    now = datetime.now(UTC)
    return (
        x509.CertificateBuilder()
        .subject_name(x509.Name(subject))
        .issuer_name(x509.Name(issuer or subject))
        .public_key(subject_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(not_before or now - timedelta(days=1))
        .not_valid_after(not_after or now + timedelta(days=365))
        .add_extension(x509.BasicConstraints(ca=is_ca, path_length=None), critical=True)
        .sign(issuer_key, hashes.SHA256())
    )


def pass_type_subject(pass_type_id: str = PASS_TYPE_ID, team_id: str = TEAM_ID) -> list[x509.NameAttribute]:
    return [
        x509.NameAttribute(NameOID.USER_ID, pass_type_id),
        x509.NameAttribute(NameOID.COMMON_NAME, f"Pass Type ID: {pass_type_id}"),
        x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, team_id),
        x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Loy Test"),
        x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
    ]


WWDR_SUBJECT = [
    x509.NameAttribute(NameOID.COUNTRY_NAME, "US"),
    x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Apple Inc."),
    x509.NameAttribute(NameOID.ORGANIZATIONAL_UNIT_NAME, "Apple Worldwide Developer Relations"),
    x509.NameAttribute(NameOID.COMMON_NAME, "Test Worldwide Developer Relations Certification Authority"),
]


def write_pem_certificate(path: Path, cert: x509.Certificate) -> Path:
    path.write_bytes(cert.public_bytes(serialization.Encoding.PEM))
    return path


def write_pem_key(path: Path, key: rsa.RSAPrivateKey, password: str = "") -> Path:
    encryption: serialization.KeySerializationEncryption = (
        serialization.BestAvailableEncryption(password.encode()) if password else serialization.NoEncryption()
    )
    path.write_bytes(key.private_bytes(serialization.Encoding.PEM, serialization.PrivateFormat.PKCS8, encryption))
    return path


# --- Key and certificate fixtures ---


@pytest.fixture(scope="session")
def wwdr_key() -> rsa.RSAPrivateKey:
    """Key of the test certificate authority."""
    return make_key()


@pytest.fixture(scope="session")
def pass_key() -> rsa.RSAPrivateKey:
    """Key of the test Pass Type ID certificate."""
    return make_key()


@pytest.fixture(scope="session")
def wwdr_certificate(wwdr_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """Self-signed certificate standing in for Apple WWDR."""
    return make_certificate(wwdr_key, wwdr_key, WWDR_SUBJECT, is_ca=True)


@pytest.fixture(scope="session")
def pass_certificate(pass_key: rsa.RSAPrivateKey, wwdr_key: rsa.RSAPrivateKey) -> x509.Certificate:
    """Pass Type ID certificate issued by the test authority."""
    return make_certificate(pass_key, wwdr_key, pass_type_subject(), WWDR_SUBJECT)


@pytest.fixture(scope="session")
def signing_identity(
    tmp_path_factory: pytest.TempPathFactory,
    pass_key: rsa.RSAPrivateKey,
    pass_certificate: x509.Certificate,
    wwdr_certificate: x509.Certificate,
) -> SigningIdentity:
    """An unencrypted signing identity on disk."""
    directory = tmp_path_factory.mktemp("identity")
    return SigningIdentity(
        cert_path=write_pem_certificate(directory / "pass.pem", pass_certificate),
        key_path=write_pem_key(directory / "pass.key", pass_key),
        wwdr_cert_path=write_pem_certificate(directory / "wwdr.pem", wwdr_certificate),
    )


@pytest.fixture(scope="session")
def encrypted_signing_identity(
    tmp_path_factory: pytest.TempPathFactory,
    pass_key: rsa.RSAPrivateKey,
    signing_identity: SigningIdentity,
) -> SigningIdentity:
    """The same identity with a passphrase-protected key."""
    directory = tmp_path_factory.mktemp("encrypted-identity")
    return SigningIdentity(
        cert_path=signing_identity.cert_path,
        key_path=write_pem_key(directory / "pass.key", pass_key, KEY_PASSWORD),
        wwdr_cert_path=signing_identity.wwdr_cert_path,
        key_password=KEY_PASSWORD,
    )


# --- Settings fixtures ---


@pytest.fixture
def apple_wallet_configured(settings: Any, signing_identity: SigningIdentity) -> SigningIdentity:
    """Configure Apple Wallet settings for tests."""
    settings.APPLE_WALLET_PASS_TYPE_ID = PASS_TYPE_ID
    settings.APPLE_WALLET_TEAM_ID = TEAM_ID
    settings.APPLE_WALLET_CERT_PATH = str(signing_identity.cert_path)
    settings.APPLE_WALLET_KEY_PATH = str(signing_identity.key_path)
    settings.APPLE_WALLET_KEY_PASSWORD = ""
    settings.APPLE_WALLET_WWDR_CERT_PATH = str(signing_identity.wwdr_cert_path)
    settings.APPLE_WALLET_WEB_SERVICE_TOKEN = WEB_SERVICE_TOKEN
    settings.APPLE_WALLET_ACCEPT_PASS_TOKENS = False
    settings.APPLE_WALLET_ASSETS_DIR = ""
    settings.BASE_URL = "https://loyalty.example.com"
    return signing_identity


@pytest.fixture
def apple_wallet_not_configured(settings: Any) -> None:
    """Clear Apple Wallet settings for tests."""
    settings.APPLE_WALLET_PASS_TYPE_ID = ""
    settings.APPLE_WALLET_TEAM_ID = ""
    settings.APPLE_WALLET_CERT_PATH = ""
    settings.APPLE_WALLET_KEY_PATH = ""
    settings.APPLE_WALLET_WWDR_CERT_PATH = ""


@pytest.fixture
def certificate_store(apple_wallet_configured: SigningIdentity) -> CertificateStore:
    """The validated test signing identity."""
    return load_certificate_store()


@pytest.fixture(scope="session")
def asset_set() -> AssetSet:
    """Generated placeholder assets."""
    return load_asset_set()


# --- Service fixtures ---


@pytest.fixture
def fake_signer() -> MagicMock:
    """A signer that computes real manifests but returns a fixed signature."""
    signer = MagicMock(spec=ApplePassSigner)
    signer.create_manifest.side_effect = lambda files: compute_manifest(files).to_bytes()
    signer.sign_manifest.return_value = b"mock_signature_bytes"
    return signer


@pytest.fixture
def mock_dispatcher() -> MagicMock:
    """A push dispatcher that records calls instead of sending."""
    dispatcher = MagicMock(spec=PushNotificationDispatcher)
    dispatcher.notify.side_effect = lambda tokens: NotificationResult(successful=len(list(tokens)), failed=0)
    return dispatcher


@pytest.fixture
def wallet_service(
    apple_wallet_configured: SigningIdentity,
    asset_set: AssetSet,
    fake_signer: MagicMock,
    mock_dispatcher: MagicMock,
    monkeypatch: pytest.MonkeyPatch,
) -> Generator[WalletService, None, None]:
    """A ready wallet service installed as the process-wide instance.

    Signing is faked so these tests do not depend on the openssl binary.
    """
    from wallet.apple.generator import ApplePassGenerator

    service = WalletService(dispatcher=mock_dispatcher)
    service._generator = ApplePassGenerator(signer=fake_signer, assets=asset_set)
    monkeypatch.setattr(wallet.service, "_wallet_service", service)
    yield service


@pytest.fixture(autouse=True)
def reset_wallet_service(monkeypatch: pytest.MonkeyPatch) -> None:
    """Start every test without a cached wallet service."""
    monkeypatch.setattr(wallet.service, "_wallet_service", None)
