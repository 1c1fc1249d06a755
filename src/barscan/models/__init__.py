"""
Pydantic models and enums for scan results.
"""

from barscan.models.scan import (
    CodeSet,
    ScanResult,
    ScanSource,
)

__all__ = [
    "CodeSet",
    "ScanResult",
    "ScanSource",
]
