"""
Code 128 decoding utilities.

The pyzbar-backed recognizer lives in barscan.barcode.recognizer and is
imported on its own, since loading it requires the ZBar shared library.
"""

from barscan.barcode.code128 import Code128Decoder, decode_code128
from barscan.barcode.interleave import looks_interleaved, strip_position_counters

__all__ = [
    "Code128Decoder",
    "decode_code128",
    "looks_interleaved",
    "strip_position_counters",
]
