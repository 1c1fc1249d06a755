"""
Scan result model and the enums shared by decoder and scanner.
"""

from datetime import datetime
from enum import Enum

from pydantic import Field

from barscan.models.base import BarscanModel, utc_now


class CodeSet(str, Enum):
    """Code 128 character sets."""

    A = "A"
    B = "B"
    C = "C"


class ScanSource(str, Enum):
    """Where the symbols of a scan came from."""

    RAW_CODES = "raw_codes"
    IMAGE = "image"


class ScanResult(BarscanModel):
    """Outcome of one scan, either from raw scanner codes or from an image."""

    text: str = Field("", description="Decoded text, empty on failure")
    source: ScanSource
    success: bool = False

    # Raw code path
    raw_codes: list[int] | None = Field(None, description="Codes as received")
    interleaved: bool = Field(False, description="Position counters were stripped")

    # Image path
    attempts: int = Field(0, ge=0, description="Recognizer attempts made")
    normalized_size: tuple[int, int] | None = Field(
        None, description="Width and height of the buffer that was recognized"
    )
    rotation: int | None = None

    error: str | None = None
    scanned_at: datetime = Field(default_factory=utc_now)
