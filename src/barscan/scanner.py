"""
Scan service.

Composes the pieces into the two ways a scan reaches the application:
- Raw symbol values from a scan engine: strip position counters, decode
- An image: normalize, recognize, retry with fewer stages on failure
"""

from collections.abc import Sequence
from io import BytesIO
from pathlib import Path

import numpy as np
import structlog
from PIL import Image

from barscan.barcode import Code128Decoder, strip_position_counters
from barscan.config import Settings, get_settings
from barscan.imaging import (
    PIPELINE,
    ImageDecodeError,
    ImageNormalizer,
    NormalizeConfig,
    Stage,
    load_pixel_buffer,
)
from barscan.models import ScanResult, ScanSource

logger = structlog.get_logger(__name__)


class Scanner:
    """
    Turns raw scanner codes or barcode images into text.

    The recognizer is any object with a recognize(buffer) method returning
    results that expose text, rotation and ok. By default the pyzbar
    recognizer is used.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        recognizer=None,
        normalizer: ImageNormalizer | None = None,
    ):
        self.settings = settings or get_settings()
        self.decoder = Code128Decoder(
            emit_fnc4_on_redundant_switch=self.settings.decoder_emit_fnc4,
        )
        self.normalizer = normalizer or ImageNormalizer(
            NormalizeConfig(
                min_height=self.settings.normalize_min_height,
                padding=self.settings.normalize_padding,
                ink_luma_threshold=self.settings.normalize_ink_luma_threshold,
                min_alpha=self.settings.normalize_min_alpha,
            )
        )
        self._recognizer = recognizer

    @property
    def recognizer(self):
        if self._recognizer is None:
            # Loading pyzbar needs the ZBar shared library
            from barscan.barcode.recognizer import BarcodeRecognizer

            self._recognizer = BarcodeRecognizer(
                rotation_angles=list(self.settings.recognizer_rotations),
            )
        return self._recognizer

    def attempt_plan(self) -> list[tuple[Stage, ...]]:
        """Stage sets to try, in order, until the recognizer finds a code."""
        plan = [PIPELINE]
        if self.settings.scan_retry_without_denoise:
            plan.append(tuple(s for s in PIPELINE if s != Stage.DENOISE))
        plan.append(())
        return plan

    def scan_codes(
        self,
        values: Sequence[int],
        strip_counters: bool | None = None,
    ) -> ScanResult:
        """
        Decode raw Code 128 symbol values.

        Args:
            values: Symbol values as emitted by the scan engine
            strip_counters: Remove interleaved position counters first
                (default: from settings)

        Returns:
            Scan result with the decoded text
        """
        if strip_counters is None:
            strip_counters = self.settings.decoder_strip_position_counters

        try:
            raw_codes = [int(v) for v in values]
        except (TypeError, ValueError) as e:
            logger.warning("Invalid raw codes", error=str(e))
            return ScanResult(source=ScanSource.RAW_CODES, error=f"invalid raw codes: {e}")

        interleaved, codes = (
            strip_position_counters(raw_codes) if strip_counters else (False, raw_codes)
        )
        text = self.decoder.decode(codes)

        logger.debug(
            "Raw codes decoded",
            count=len(raw_codes),
            interleaved=interleaved,
            length=len(text),
        )

        return ScanResult(
            text=text,
            source=ScanSource.RAW_CODES,
            success=bool(text),
            raw_codes=raw_codes,
            interleaved=interleaved,
            error=None if text else "no decodable symbols",
        )

    def scan_image(
        self,
        source: bytes | BytesIO | str | Path | np.ndarray | Image.Image,
    ) -> ScanResult:
        """
        Recognize a Code 128 barcode in an image.

        Args:
            source: Image data or path

        Returns:
            Scan result; success is False when the image cannot be decoded
            or no barcode is found
        """
        try:
            buf = load_pixel_buffer(source)
        except ImageDecodeError as e:
            logger.warning("Failed to load image", error=str(e))
            return ScanResult(source=ScanSource.IMAGE, error=str(e))

        attempts = 0
        normalized_size = None

        for stages in self.attempt_plan():
            attempts += 1
            normalized = self.normalizer.run(buf, stages)
            height, width = normalized.shape[:2]
            normalized_size = (width, height)

            results = [r for r in self.recognizer.recognize(normalized) if r.ok]

            logger.info(
                "Recognition attempt",
                attempt=attempts,
                stages=[s.value for s in stages],
                found=len(results),
            )

            if results:
                best = results[0]
                return ScanResult(
                    text=best.text,
                    source=ScanSource.IMAGE,
                    success=True,
                    attempts=attempts,
                    normalized_size=normalized_size,
                    rotation=best.rotation,
                )

        logger.info("No barcode found", attempts=attempts)
        return ScanResult(
            source=ScanSource.IMAGE,
            attempts=attempts,
            normalized_size=normalized_size,
            error="no barcode found",
        )
