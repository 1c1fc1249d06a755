"""
Code 128 recognizer using pyzbar (ZBar) library.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from io import BytesIO

import numpy as np
from PIL import Image
from pyzbar import pyzbar
from pyzbar.pyzbar import Decoded, ZBarSymbol


@dataclass
class RecognitionResult:
    """Result of a barcode recognition."""

    text: str
    rotation: int
    symbology: str = "CODE128"
    rect: tuple[int, int, int, int] | None = None  # x, y, width, height
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and bool(self.text)


class BarcodeRecognizer:
    """
    Barcode recognizer using ZBar via pyzbar.

    Only Code 128 symbols are scanned for. ZBar decodes the symbol values
    itself and returns the text.
    """

    SCAN_SYMBOLS = [ZBarSymbol.CODE128]

    def __init__(
        self,
        try_rotations: bool = True,
        rotation_angles: list[int] | None = None,
    ):
        """
        Initialize recognizer.

        Args:
            try_rotations: Whether to try multiple rotations
            rotation_angles: Specific angles to try (default: [0, 180])
        """
        self.try_rotations = try_rotations
        self.rotation_angles = rotation_angles or [0, 180]

    def recognize(
        self,
        image_data: bytes | BytesIO | np.ndarray | Image.Image,
    ) -> list[RecognitionResult]:
        """
        Recognize Code 128 barcodes in an image.

        Args:
            image_data: Image as bytes, BytesIO, numpy array, or PIL Image

        Returns:
            List of recognized barcodes, or error results
        """
        pil_image = self._to_pil_image(image_data)

        if pil_image.mode != "L":
            pil_image = pil_image.convert("L")

        angles = self.rotation_angles if self.try_rotations else [0]

        all_results: list[RecognitionResult] = []
        seen_texts: set[str] = set()

        for angle in angles:
            rotated = pil_image.rotate(angle, expand=True) if angle != 0 else pil_image
            for result in self._recognize_image(rotated, angle):
                if result.error is None and result.text in seen_texts:
                    continue
                seen_texts.add(result.text)
                all_results.append(result)

            # Stop at the first orientation that produced a barcode
            if any(r.ok for r in all_results):
                break

        return all_results

    def _to_pil_image(
        self,
        image_data: bytes | BytesIO | np.ndarray | Image.Image,
    ) -> Image.Image:
        """Convert various image formats to PIL Image."""
        if isinstance(image_data, Image.Image):
            return image_data
        elif isinstance(image_data, np.ndarray):
            return Image.fromarray(np.ascontiguousarray(image_data))
        elif isinstance(image_data, bytes):
            return Image.open(BytesIO(image_data))
        elif isinstance(image_data, BytesIO):
            return Image.open(image_data)
        else:
            raise TypeError(f"Unsupported image type: {type(image_data)}")

    def _recognize_image(
        self,
        image: Image.Image,
        rotation: int,
    ) -> list[RecognitionResult]:
        """Recognize barcodes in a single image orientation."""
        try:
            decoded_objects: Sequence[Decoded] = pyzbar.decode(
                image,
                symbols=self.SCAN_SYMBOLS,
            )
        except Exception as e:
            return [RecognitionResult(text="", rotation=rotation, error=str(e))]

        return [self._process_decoded(obj, rotation) for obj in decoded_objects]

    def _process_decoded(self, decoded: Decoded, rotation: int) -> RecognitionResult:
        """Process a decoded barcode object."""
        try:
            text = decoded.data.decode("utf-8")
        except UnicodeDecodeError as e:
            return RecognitionResult(text="", rotation=rotation, error=str(e))

        rect = decoded.rect
        return RecognitionResult(
            text=text,
            rotation=rotation,
            symbology=decoded.type,
            rect=(rect.left, rect.top, rect.width, rect.height) if rect else None,
        )
