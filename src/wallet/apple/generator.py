"""Apple Wallet pass generator.

This module runs the pass generation pipeline for a single request:

    AssetsStaged -> ManifestComputed -> Signed -> Archived

Each stage consumes the output of the previous one, so no stage can run
out of order. Any failure aborts the request and no archive is returned.
"""

import enum
import time

import structlog

from wallet.apple.assets import AssetSet
from wallet.apple.builder import PASS_FILENAME, PassDescriptor
from wallet.apple.packager import pack
from wallet.apple.signer import ApplePassSigner
from wallet.exceptions import PassGenerationError

logger = structlog.get_logger(__name__)


class GenerationStage(enum.StrEnum):
    """Pipeline stages, in execution order."""

    ASSETS_STAGED = "assets_staged"
    MANIFEST_COMPUTED = "manifest_computed"
    SIGNED = "signed"
    ARCHIVED = "archived"


class ApplePassGenerator:
    """Generates Apple Wallet .pkpass files from pass descriptors."""

    CONTENT_TYPE = "application/vnd.apple.pkpass"
    FILE_EXTENSION = "pkpass"

    def __init__(self, signer: ApplePassSigner, assets: AssetSet, archive_timeout: float | None = None) -> None:
        """Initialize the generator.

        Args:
            signer: The signer used for manifests and signatures.
            assets: Static images bundled into every pass.
            archive_timeout: Bound for archive assembly, see packager.pack().
        """
        self.signer = signer
        self.assets = assets
        self.archive_timeout = archive_timeout

    def generate_pass(self, descriptor: PassDescriptor) -> bytes:
        """Generate a .pkpass file for a descriptor.

        Args:
            descriptor: The pass content.

        Returns:
            The .pkpass file as bytes.

        Raises:
            SigningFailed: If the manifest cannot be signed.
            SigningTimeout: If signing exceeds its bound.
            PackagingFailed: If the archive cannot be assembled.
        """
        started = time.monotonic()
        stage = GenerationStage.ASSETS_STAGED

        try:
            files = {PASS_FILENAME: descriptor.serialize(), **self.assets.files}

            manifest = self.signer.create_manifest(files)
            stage = GenerationStage.MANIFEST_COMPUTED

            signature = self.signer.sign_manifest(manifest)
            stage = GenerationStage.SIGNED

            pkpass_bytes = pack(
                files[PASS_FILENAME],
                self.assets.files,
                manifest,
                signature,
                timeout=self.archive_timeout,
            )
            stage = GenerationStage.ARCHIVED

        except PassGenerationError as e:
            e.stage = stage.value
            logger.error(
                "pass_generation_failed",
                serial_number=descriptor.serial_number,
                last_stage=stage.value,
                error_type=type(e).__name__,
                error=str(e),
                duration_ms=int((time.monotonic() - started) * 1000),
            )
            raise

        logger.info(
            "pass_generated",
            serial_number=descriptor.serial_number,
            stage=stage.value,
            size=len(pkpass_bytes),
            duration_ms=int((time.monotonic() - started) * 1000),
        )
        return pkpass_bytes
