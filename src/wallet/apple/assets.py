"""Static image assets bundled into every Apple Wallet pass.

Assets are read from a template directory when present. Missing files are
rendered once with Pillow so a pass can always be built. The resulting
AssetSet is immutable and shared by every generated pass.
"""

import io
import types
import typing as t
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

import structlog
from PIL import Image, ImageDraw, ImageFont

from wallet.apple.formatting import BRAND_COLOR

logger = structlog.get_logger(__name__)


# Image size definitions (Apple requirements)
ICON_SIZES: dict[str, tuple[int, int]] = {
    "icon.png": (29, 29),
    "icon@2x.png": (58, 58),
    "icon@3x.png": (87, 87),
}

LOGO_SIZES: dict[str, tuple[int, int]] = {
    "logo.png": (160, 50),
    "logo@2x.png": (320, 100),
    "logo@3x.png": (480, 150),
}

REQUIRED_ASSETS = (*ICON_SIZES, *LOGO_SIZES)


@dataclass(frozen=True)
class AssetSet:
    """Read-only mapping of archive member name to PNG bytes."""

    files: Mapping[str, bytes]

    def __post_init__(self) -> None:
        for name in self.files:
            if not name or "/" in name or "\\" in name:
                raise ValueError(f"Asset names must be flat file names, got {name!r}")
        object.__setattr__(self, "files", types.MappingProxyType(dict(self.files)))

    def __iter__(self) -> t.Iterator[str]:
        return iter(self.files)

    def __len__(self) -> int:
        return len(self.files)


def load_asset_set(directory: str | Path | None = None, text: str = "L") -> AssetSet:
    """Load pass assets from a template directory.

    Args:
        directory: Directory holding icon/logo PNGs. May be empty or None.
        text: Initials drawn on generated placeholder logos.

    Returns:
        An AssetSet containing every required asset.
    """
    base = Path(directory) if directory else None
    files: dict[str, bytes] = {}
    generated: list[str] = []

    for name in REQUIRED_ASSETS:
        path = base / name if base else None
        if path is not None and path.is_file():
            files[name] = path.read_bytes()
            continue

        if name in ICON_SIZES:
            files[name] = generate_colored_icon(ICON_SIZES[name], BRAND_COLOR)
        else:
            files[name] = generate_text_logo(LOGO_SIZES[name], text, BRAND_COLOR)
        generated.append(name)

    if generated:
        logger.info("wallet_assets_generated", directory=str(base) if base else None, generated=generated)

    return AssetSet(files=files)


def generate_colored_icon(size: tuple[int, int], color: tuple[int, int, int]) -> bytes:
    """Generate a simple colored square icon.

    Args:
        size: (width, height) tuple.
        color: (r, g, b) tuple.

    Returns:
        PNG image as bytes.
    """
    img = Image.new("RGB", size, color)
    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def generate_text_logo(
    size: tuple[int, int],
    text: str,
    bg_color: tuple[int, int, int],
) -> bytes:
    """Generate a logo with text (e.g., brand initials).

    Args:
        size: (width, height) tuple.
        text: Text to display (usually 1-2 characters).
        bg_color: Background color as (r, g, b).

    Returns:
        PNG image as bytes.
    """
    img = Image.new("RGBA", size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(img)

    # Draw a rounded rectangle background
    margin = min(size) // 10
    draw.rounded_rectangle(
        [margin, margin, size[0] - margin, size[1] - margin],
        radius=min(size) // 5,
        fill=bg_color + (255,),
    )

    font = _load_font(int(min(size) * 0.4))

    # Draw text centered
    bbox = draw.textbbox((0, 0), text, font=font)
    text_width = bbox[2] - bbox[0]
    text_height = bbox[3] - bbox[1]
    text_x = (size[0] - text_width) // 2
    text_y = (size[1] - text_height) // 2
    draw.text((text_x, text_y), text, fill=(255, 255, 255, 255), font=font)

    buffer = io.BytesIO()
    img.save(buffer, format="PNG")
    return buffer.getvalue()


def _load_font(font_size: int) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load a font with fallbacks for different platforms.

    Args:
        font_size: Desired font size in pixels.

    Returns:
        A PIL font object.
    """
    font_paths = [
        "/System/Library/Fonts/Helvetica.ttc",  # macOS
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",  # Linux
    ]

    for path in font_paths:
        try:
            return ImageFont.truetype(path, font_size)
        except OSError:
            continue

    return ImageFont.load_default()
