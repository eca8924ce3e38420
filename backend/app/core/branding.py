# app/core/branding.py
"""
Chapter color handling: hex validation/normalization, shade generation and
the theme document the frontend applies.
"""
from __future__ import annotations

import logging
import re
from dataclasses import asdict, dataclass
from typing import Any, Optional

logger = logging.getLogger(__name__)

_HEX_RE = re.compile(r"^#?[0-9A-Fa-f]{6}$")

DEFAULT_LOGO_ALT_TEXT = "Chapter Logo"

# Focus ring = primary at ~30% opacity
FOCUS_ALPHA_SUFFIX = "4D"


@dataclass(frozen=True)
class ColorShades:
    primary: str
    hover: str
    light: str
    focus: str


@dataclass(frozen=True)
class BrandingTheme:
    primary_color: str
    primary_color_hover: str
    accent_color: str
    accent_color_light: str
    focus_color: str
    primary_logo: Optional[str]
    secondary_logo: Optional[str]
    logo_alt_text: str

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


DEFAULT_THEME = BrandingTheme(
    primary_color="#2346e0",
    primary_color_hover="#1833b5",
    accent_color="#4568ff",
    accent_color_light="#7090ff",
    focus_color="#3b82f6",
    primary_logo="/logo.png",
    secondary_logo=None,
    logo_alt_text="Trailblaize",
)


def is_valid_hex_color(color: Optional[str]) -> bool:
    if not color:
        return False
    return bool(_HEX_RE.match(color))


def normalize_hex_color(color: Optional[str]) -> str:
    """'1e3a8a' / '#1e3a8a' -> '#1E3A8A'. Empty input stays empty."""
    if not color:
        return ""
    c = color.upper()
    return c if c.startswith("#") else f"#{c}"


def _to_hex(r: int, g: int, b: int) -> str:
    return f"#{r:02X}{g:02X}{b:02X}"


def generate_color_shades(base_color: str) -> ColorShades:
    if not is_valid_hex_color(base_color):
        logger.warning("Invalid hex color %r; falling back to default primary", base_color)
        return generate_color_shades(DEFAULT_THEME.primary_color)

    hex_part = base_color.lstrip("#")
    r, g, b = (int(hex_part[i:i + 2], 16) for i in (0, 2, 4))

    # 10% darker
    hover = _to_hex(*(max(0, int(c * 0.9)) for c in (r, g, b)))
    # 20% towards white
    light = _to_hex(*(min(255, int(c + (255 - c) * 0.2)) for c in (r, g, b)))

    primary = base_color if base_color.startswith("#") else f"#{base_color}"
    return ColorShades(primary=primary, hover=hover, light=light, focus=f"{primary}{FOCUS_ALPHA_SUFFIX}")


def branding_to_theme(branding: Any, default: BrandingTheme = DEFAULT_THEME) -> BrandingTheme:
    """
    Build the theme for a ChapterBranding row (or None). Missing pieces fall
    back to ``default`` individually.
    """
    if branding is None:
        return default

    if branding.primary_color:
        primary = generate_color_shades(branding.primary_color)
    else:
        primary = ColorShades(
            primary=default.primary_color,
            hover=default.primary_color_hover,
            light=default.accent_color_light,
            focus=default.focus_color,
        )

    if branding.accent_color:
        accent = generate_color_shades(branding.accent_color)
    else:
        accent = ColorShades(
            primary=default.accent_color,
            hover=default.accent_color,
            light=default.accent_color_light,
            focus=default.focus_color,
        )

    return BrandingTheme(
        primary_color=primary.primary,
        primary_color_hover=primary.hover,
        accent_color=accent.primary,
        accent_color_light=accent.light,
        focus_color=primary.focus,
        primary_logo=branding.primary_logo_url or default.primary_logo,
        secondary_logo=branding.secondary_logo_url or default.secondary_logo,
        logo_alt_text=branding.logo_alt_text or default.logo_alt_text,
    )
