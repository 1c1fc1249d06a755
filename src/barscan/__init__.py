"""
Code 128 symbol decoding and barcode image normalization.
"""

__version__ = "0.1.0"
