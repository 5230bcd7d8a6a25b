"""Tests for wallet/apple/certificates.py."""

from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from cryptography.hazmat.primitives.asymmetric import rsa

from wallet.apple.certificates import is_signing_configured, load_certificate_store
from wallet.exceptions import CertificateConfigError
from wallet.tests.conftest import (
    KEY_PASSWORD,
    PASS_TYPE_ID,
    TEAM_ID,
    WWDR_SUBJECT,
    SigningIdentity,
    make_certificate,
    make_key,
    pass_type_subject,
    write_pem_certificate,
    write_pem_key,
)


class TestIsSigningConfigured:
    """Tests for is_signing_configured."""

    def test_true_when_all_settings_present(self, apple_wallet_configured: SigningIdentity) -> None:
        """All five signing settings make signing available."""
        assert is_signing_configured() is True

    def test_false_when_cleared(self, apple_wallet_not_configured: None) -> None:
        """Missing settings disable signing."""
        assert is_signing_configured() is False

    def test_false_when_wwdr_missing(self, apple_wallet_configured: SigningIdentity, settings: Any) -> None:
        """The intermediate certificate is required."""
        settings.APPLE_WALLET_WWDR_CERT_PATH = ""

        assert is_signing_configured() is False


class TestLoadCertificateStore:
    """Tests for loading a valid signing identity."""

    def test_loads_from_settings(self, apple_wallet_configured: SigningIdentity) -> None:
        """Paths default to Django settings."""
        store = load_certificate_store()

        assert store.cert_path == apple_wallet_configured.cert_path
        assert store.key_path == apple_wallet_configured.key_path
        assert store.wwdr_cert_path == apple_wallet_configured.wwdr_cert_path
        assert store.key_password == ""

    def test_loads_encrypted_key(
        self, apple_wallet_configured: SigningIdentity, encrypted_signing_identity: SigningIdentity
    ) -> None:
        """A passphrase-protected key loads with the right password."""
        store = load_certificate_store(
            key_path=str(encrypted_signing_identity.key_path),
            key_password=KEY_PASSWORD,
        )

        assert store.key_password == KEY_PASSWORD

    def test_expires_at_is_earliest_expiry(self, apple_wallet_configured: SigningIdentity) -> None:
        """expires_at reports the certificate that expires first."""
        store = load_certificate_store()

        expected = min(store.certificate.not_valid_after_utc, store.wwdr_certificate.not_valid_after_utc)
        assert store.expires_at == expected


class TestLoadCertificateStoreRejections:
    """Tests for identities that must be rejected at startup."""

    def test_not_configured(self, apple_wallet_not_configured: None) -> None:
        """Missing paths raise a configuration error."""
        with pytest.raises(CertificateConfigError, match="not configured"):
            load_certificate_store()

    def test_missing_certificate_file(self, apple_wallet_configured: SigningIdentity, tmp_path: Path) -> None:
        """A path that does not exist is reported."""
        with pytest.raises(CertificateConfigError, match="Certificate not found"):
            load_certificate_store(cert_path=str(tmp_path / "missing.pem"))

    def test_malformed_pem_with_banner_text(self, apple_wallet_configured: SigningIdentity, tmp_path: Path) -> None:
        """PEM surrounded by stray text is not repaired."""
        body = apple_wallet_configured.cert_path.read_bytes()
        broken = tmp_path / "broken.pem"
        broken.write_bytes(b"Bag Attributes\n" + body.replace(b"-----BEGIN", b"--BEGIN"))

        with pytest.raises(CertificateConfigError, match="Failed to load certificate"):
            load_certificate_store(cert_path=str(broken))

    def test_wrong_key_password(
        self, apple_wallet_configured: SigningIdentity, encrypted_signing_identity: SigningIdentity
    ) -> None:
        """A wrong passphrase fails without echoing key material."""
        with pytest.raises(CertificateConfigError, match="Failed to load private key") as exc_info:
            load_certificate_store(
                key_path=str(encrypted_signing_identity.key_path),
                key_password="wrong password",
            )

        assert "BEGIN" not in str(exc_info.value)

    def test_expired_certificate(
        self,
        apple_wallet_configured: SigningIdentity,
        pass_key: rsa.RSAPrivateKey,
        wwdr_key: rsa.RSAPrivateKey,
        tmp_path: Path,
    ) -> None:
        """An expired certificate is rejected."""
        now = datetime.now(UTC)
        expired = make_certificate(
            pass_key,
            wwdr_key,
            pass_type_subject(),
            WWDR_SUBJECT,
            not_before=now - timedelta(days=400),
            not_after=now - timedelta(days=1),
        )
        cert_path = write_pem_certificate(tmp_path / "expired.pem", expired)

        with pytest.raises(CertificateConfigError, match="expired"):
            load_certificate_store(cert_path=str(cert_path))

    def test_validity_checked_against_reference_time(self, apple_wallet_configured: SigningIdentity) -> None:
        """A reference time past the expiry date fails validation."""
        with pytest.raises(CertificateConfigError, match="expired"):
            load_certificate_store(now=datetime.now(UTC) + timedelta(days=800))

    def test_mismatched_private_key(self, apple_wallet_configured: SigningIdentity, tmp_path: Path) -> None:
        """A key that does not belong to the certificate is rejected."""
        key_path = write_pem_key(tmp_path / "other.key", make_key())

        with pytest.raises(CertificateConfigError, match="does not match certificate"):
            load_certificate_store(key_path=str(key_path))

    def test_pass_type_identity_mismatch(self, apple_wallet_configured: SigningIdentity) -> None:
        """The certificate UID must match the configured pass type."""
        with pytest.raises(CertificateConfigError, match="pass type identifier"):
            load_certificate_store(pass_type_identifier="pass.com.example.other")

    def test_team_identity_mismatch(self, apple_wallet_configured: SigningIdentity) -> None:
        """The certificate OU must match the configured team."""
        with pytest.raises(CertificateConfigError, match="team identifier"):
            load_certificate_store(team_identifier="OTHERTEAM1")

    def test_identity_matches(self, apple_wallet_configured: SigningIdentity) -> None:
        """Matching identifiers pass validation."""
        store = load_certificate_store(pass_type_identifier=PASS_TYPE_ID, team_identifier=TEAM_ID)

        assert store.certificate.subject.rfc4514_string()
