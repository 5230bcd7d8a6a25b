"""Apple Wallet pass manifest and PKCS#7 signing.

A .pkpass file requires a manifest.json listing a digest for every other
file in the package, plus a detached PKCS#7 signature of that manifest,
signed with the Pass Type ID certificate and including the Apple WWDR
(Worldwide Developer Relations) intermediate certificate.

The signature must cover the exact manifest bytes written to the archive,
so the manifest is serialized once (Manifest.to_bytes) and that buffer is
used both for the archive member and as signer input.

NOTE: Apple Wallet clients verify SHA-1 manifest digests. Signing uses
OpenSSL via subprocess so the signature is produced the same way Apple's
own tooling does it.
"""

import hashlib
import json
import os
import subprocess
import tempfile
import time
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog
from django.conf import settings

from wallet.apple.certificates import CertificateStore
from wallet.exceptions import SigningFailed, SigningTimeout

logger = structlog.get_logger(__name__)

MANIFEST_FILENAME = "manifest.json"
SIGNATURE_FILENAME = "signature"
UNSIGNED_MEMBERS = frozenset({MANIFEST_FILENAME, SIGNATURE_FILENAME})

# Environment variable used to hand the key passphrase to openssl
_PASSPHRASE_ENV = "LOYALTY_PASS_KEY_PASSPHRASE"


def file_digest(content: bytes) -> str:
    """Digest of one pass member as recorded in the manifest."""
    return hashlib.sha1(content).hexdigest()


@dataclass(frozen=True)
class Manifest:
    """Mapping of archive member name to content digest."""

    entries: Mapping[str, str]

    def to_bytes(self) -> bytes:
        """Serialize the manifest.

        Returns:
            The manifest.json content as bytes.
        """
        return json.dumps(dict(self.entries), indent=2).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Manifest":
        """Parse serialized manifest bytes.

        Raises:
            ValueError: If the data is not a JSON object of strings.
        """
        entries = json.loads(data)
        if not isinstance(entries, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in entries.items()
        ):
            raise ValueError("Manifest must be a JSON object mapping file names to digests")
        return cls(entries=entries)


def compute_manifest(files: Mapping[str, bytes]) -> Manifest:
    """Create the manifest for a pass.

    The manifest contains SHA-1 hashes of all files in the pass package.

    Args:
        files: Dictionary mapping filenames to their content bytes.

    Returns:
        The Manifest. The manifest and signature files themselves are skipped.
    """
    return Manifest(
        entries={
            filename: file_digest(content) for filename, content in files.items() if filename not in UNSIGNED_MEMBERS
        }
    )


class ApplePassSigner:
    """Signs Apple Wallet pass manifests using PKCS#7.

    The signer only reads from its CertificateStore and can be shared
    between concurrent requests.
    """

    def __init__(
        self,
        store: CertificateStore,
        *,
        openssl_binary: str | None = None,
        timeout: float | None = None,
        staging_dir: str | None = None,
    ) -> None:
        """Initialize the signer.

        Args:
            store: The validated signing identity.
            openssl_binary: OpenSSL executable. Defaults to settings.APPLE_WALLET_OPENSSL_BINARY.
            timeout: Bound in seconds for one signing run. Defaults to settings.APPLE_WALLET_SIGNING_TIMEOUT.
            staging_dir: Parent for temporary files. Defaults to the system temp directory.
        """
        self.store = store
        self.openssl_binary = openssl_binary or settings.APPLE_WALLET_OPENSSL_BINARY
        self.timeout = timeout if timeout is not None else settings.APPLE_WALLET_SIGNING_TIMEOUT
        self.staging_dir = staging_dir or settings.APPLE_WALLET_STAGING_DIR or None

    def create_manifest(self, files: Mapping[str, bytes]) -> bytes:
        """Create the manifest.json content for a pass.

        Args:
            files: Dictionary mapping filenames to their content bytes.

        Returns:
            The manifest.json content as bytes.
        """
        return compute_manifest(files).to_bytes()

    def sign_manifest(self, manifest_data: bytes) -> bytes:
        """Create a PKCS#7 detached signature of the manifest.

        Args:
            manifest_data: The exact manifest.json bytes placed in the archive.

        Returns:
            The PKCS#7 signature in DER format.

        Raises:
            SigningFailed: If OpenSSL is missing, rejects the input or produces no output.
            SigningTimeout: If OpenSSL does not finish within the configured bound.
        """
        started = time.monotonic()

        # The directory and everything in it is removed on every exit path
        with tempfile.TemporaryDirectory(prefix="pkpass-sign-", dir=self.staging_dir) as workdir:
            manifest_path = Path(workdir) / MANIFEST_FILENAME
            sig_path = Path(workdir) / SIGNATURE_FILENAME
            manifest_path.write_bytes(manifest_data)

            # openssl smime -sign -signer cert.pem -inkey key.pem -certfile wwdr.pem
            #   -in manifest.json -out signature -outform DER -binary
            cmd = [
                self.openssl_binary,
                "smime",
                "-sign",
                "-binary",
                "-signer",
                str(self.store.cert_path),
                "-inkey",
                str(self.store.key_path),
                "-certfile",
                str(self.store.wwdr_cert_path),
                "-in",
                str(manifest_path),
                "-out",
                str(sig_path),
                "-outform",
                "DER",
            ]

            env = dict(os.environ)
            if self.store.key_password:
                env[_PASSPHRASE_ENV] = self.store.key_password
                cmd.extend(["-passin", f"env:{_PASSPHRASE_ENV}"])

            try:
                result = subprocess.run(
                    cmd,
                    capture_output=True,
                    text=True,
                    check=False,
                    timeout=self.timeout,
                    env=env,
                    stdin=subprocess.DEVNULL,
                )
            except subprocess.TimeoutExpired:
                logger.error("openssl_signing_timeout", timeout=self.timeout)
                raise SigningTimeout(f"Signing did not finish within {self.timeout} seconds")
            except OSError as e:
                logger.error("openssl_signing_unavailable", binary=self.openssl_binary, error=str(e))
                raise SigningFailed(f"Failed to run {self.openssl_binary}: {e}") from e

            if result.returncode != 0:
                logger.error(
                    "openssl_signing_failed",
                    returncode=result.returncode,
                    stderr=result.stderr,
                )
                raise SigningFailed(f"OpenSSL signing failed with exit code {result.returncode}")

            signature = sig_path.read_bytes() if sig_path.exists() else b""

        if not signature:
            logger.error("openssl_signing_empty_output")
            raise SigningFailed("OpenSSL produced an empty signature")

        logger.debug(
            "manifest_signed",
            manifest_size=len(manifest_data),
            signature_size=len(signature),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return signature
