"""
Invoicerr Backend — Formatting Helpers
========================================

What:  Company date formats, street-address parsing, text contrast colour
       and webhook secrets.
Why:   Shared by mail rendering, webhook payloads and the PDF config API.
"""

import re
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

DEFAULT_DATE_FORMAT = "dd/MM/yyyy"

# Company-facing format tokens → strftime
DATE_FORMATS = {
    "dd/MM/yyyy": "%d/%m/%Y",
    "MM/dd/yyyy": "%m/%d/%Y",
    "yyyy/MM/dd": "%Y/%m/%d",
    "dd.MM.yyyy": "%d.%m.%Y",
    "dd-MM-yyyy": "%d-%m-%Y",
    "yyyy-MM-dd": "%Y-%m-%d",
    "EEEE, dd MMM yyyy": "%A, %d %b %Y",
}


def format_date(value: Optional[datetime], date_format: Optional[str] = None) -> str:
    """Render `value` in one of the allowed company formats; 'N/A' when empty."""
    if value is None:
        return "N/A"
    strftime = DATE_FORMATS.get(date_format or "", DATE_FORMATS[DEFAULT_DATE_FORMAT])
    return value.strftime(strftime)


# ── Address Parsing ───────────────────────────────────────────────────────

@dataclass
class AddressParts:
    house_number: str
    street_name: str


_PREFIXED = re.compile(r"^n[°oº]\.?\s*(\d+\w*(?:-\w+)?)\s+(.*)$", re.IGNORECASE)
_RANGE = re.compile(r"^(\d+\w*)-(\d+\w*)\s+(.*)$")
_ORDINAL = re.compile(
    r"^(\d+(?:er|e|ème|º|ª|st|nd|rd|th|ᵉʳ|ᵉ|ⁿᵈ|ʳᵈ|ᵗʰ)?)\s+(.*)$", re.IGNORECASE
)
_STANDARD = re.compile(r"^(\d+[a-zA-Z\-]*)\s+(.*)$")
_REVERSED = re.compile(r"^(.*\D)\s+(\d+[a-zA-Z\-]*)$")


def parse_address(address: str) -> AddressParts:
    """
    Split a one-line street address into house number and street name.

    Handles "n° 12 rue X", "12-14 rue X", "3ter rue X", "12 rue X" and
    "Hauptstraße 12". Raises ValueError for anything else.
    """
    cleaned = address.strip()

    match = _PREFIXED.match(cleaned)
    if match:
        return AddressParts(match.group(1), match.group(2))

    match = _RANGE.match(cleaned)
    if match:
        return AddressParts(f"{match.group(1)}-{match.group(2)}", match.group(3))

    match = _ORDINAL.match(cleaned)
    if match:
        return AddressParts(match.group(1), match.group(2))

    match = _STANDARD.match(cleaned)
    if match:
        return AddressParts(match.group(1), match.group(2))

    match = _REVERSED.match(cleaned)
    if match:
        return AddressParts(match.group(2), match.group(1).strip())

    raise ValueError(f'Invalid address format: "{address}"')


# ── Colours & Secrets ─────────────────────────────────────────────────────

def get_invert_color(hex_color: str) -> str:
    """Black or white, whichever reads better on `hex_color` (#rgb or #rrggbb)."""
    clean = hex_color.lstrip("#")
    if len(clean) == 3:
        clean = "".join(c * 2 for c in clean)
    r = int(clean[0:2], 16)
    g = int(clean[2:4], 16)
    b = int(clean[4:6], 16)
    luminance = 0.299 * r + 0.587 * g + 0.114 * b
    return "#000000" if luminance > 186 else "#ffffff"


def generate_webhook_secret() -> str:
    """64 hex characters (32 random bytes)."""
    return secrets.token_hex(32)


def render_template(text: str, variables: dict) -> str:
    """Replace {{KEY}} placeholders; unknown placeholders are left as-is."""
    for key, value in variables.items():
        text = text.replace("{{" + key + "}}", "" if value is None else str(value))
    return text
