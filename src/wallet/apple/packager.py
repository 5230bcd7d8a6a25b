"""Assembly of the .pkpass ZIP archive.

The archive holds, at its root and with no subdirectories:
- pass.json: The pass definition
- every asset file by its original name
- manifest.json: digests of all files above
- signature: PKCS#7 detached signature of the manifest
"""

import io
import zipfile
from collections.abc import Mapping
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError

import structlog
from django.conf import settings

from wallet.apple.builder import PASS_FILENAME
from wallet.apple.signer import MANIFEST_FILENAME, SIGNATURE_FILENAME, UNSIGNED_MEMBERS, Manifest, file_digest
from wallet.exceptions import PackagingFailed

logger = structlog.get_logger(__name__)

# Archives are built on worker threads so a bound can be enforced on the caller side
_archive_executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="pkpass-archive")


def verify_manifest(files: Mapping[str, bytes]) -> None:
    """Check that a pass's manifest covers exactly its signed members.

    Args:
        files: All archive members, including manifest.json.

    Raises:
        PackagingFailed: If the manifest is missing, unreadable, lists a
            different set of members, or records a mismatching digest.
    """
    if MANIFEST_FILENAME not in files:
        raise PackagingFailed("Archive has no manifest")
    try:
        manifest = Manifest.from_bytes(files[MANIFEST_FILENAME])
    except ValueError as e:
        raise PackagingFailed(f"Manifest is not valid: {e}") from e

    covered = {name for name in files if name not in UNSIGNED_MEMBERS}
    listed = set(manifest.entries)
    if covered != listed:
        raise PackagingFailed(
            f"Manifest does not match archive members: "
            f"unlisted={sorted(covered - listed)} missing={sorted(listed - covered)}"
        )

    for name in sorted(covered):
        if file_digest(files[name]) != manifest.entries[name]:
            raise PackagingFailed(f"Digest mismatch for {name}")


def pack(
    descriptor_bytes: bytes,
    asset_files: Mapping[str, bytes],
    manifest_bytes: bytes,
    signature_bytes: bytes,
    *,
    timeout: float | None = None,
) -> bytes:
    """Create the .pkpass ZIP archive.

    Args:
        descriptor_bytes: The serialized pass.json.
        asset_files: Asset name to PNG bytes.
        manifest_bytes: The exact manifest bytes that were signed.
        signature_bytes: The detached signature.
        timeout: Bound in seconds. Defaults to settings.APPLE_WALLET_ARCHIVE_TIMEOUT.

    Returns:
        ZIP archive as bytes.

    Raises:
        PackagingFailed: If members are inconsistent with the manifest, or the
            archive cannot be written within the bound.
    """
    timeout = timeout if timeout is not None else settings.APPLE_WALLET_ARCHIVE_TIMEOUT

    reserved = {PASS_FILENAME, *UNSIGNED_MEMBERS}
    for name in asset_files:
        if name in reserved:
            raise PackagingFailed(f"Asset name {name!r} collides with a reserved member")
        if not name or "/" in name or "\\" in name:
            raise PackagingFailed(f"Asset name {name!r} is not a flat file name")
    if not signature_bytes:
        raise PackagingFailed("Signature is empty")

    files: dict[str, bytes] = {PASS_FILENAME: descriptor_bytes, **asset_files}
    files[MANIFEST_FILENAME] = manifest_bytes
    files[SIGNATURE_FILENAME] = signature_bytes

    verify_manifest(files)

    future = _archive_executor.submit(_write_archive, files)
    try:
        archive = future.result(timeout=timeout)
    except FutureTimeoutError:
        # Only a queued job is cancelled. A running write finishes on its worker
        # thread, the bound limits how long the caller waits.
        future.cancel()
        logger.error("pkpass_archive_timeout", timeout=timeout)
        raise PackagingFailed(f"Archive was not written within {timeout} seconds")
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, ValueError) as e:
        logger.error("pkpass_archive_failed", error=str(e))
        raise PackagingFailed(f"Failed to write archive: {e}") from e

    logger.debug("pkpass_archive_written", members=len(files), size=len(archive))
    return archive


def read_archive(archive: bytes) -> dict[str, bytes]:
    """Read every member of a .pkpass archive.

    Raises:
        PackagingFailed: If the data is not a ZIP archive or contains nested paths.
    """
    try:
        with zipfile.ZipFile(io.BytesIO(archive)) as zf:
            names = zf.namelist()
            if any("/" in name for name in names):
                raise PackagingFailed("Archive contains nested paths")
            return {name: zf.read(name) for name in names}
    except zipfile.BadZipFile as e:
        raise PackagingFailed(f"Not a pass archive: {e}") from e


def _write_archive(files: Mapping[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        for filename, content in files.items():
            zf.writestr(filename, content)
    return buffer.getvalue()
