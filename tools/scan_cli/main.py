"""
Barcode scan CLI tool.

Decodes raw Code 128 symbol values or recognizes a barcode in an image.

Usage:
    poetry run barscan codes --no-strip 105 12 34 56 0 106
    poetry run barscan codes 105 1 60 2 60 3 10 4 100 5 96 6 25 7 6 8 106
    poetry run barscan image ./label.png --save-normalized ./label_norm.png
"""

import sys
from pathlib import Path

import click
import structlog

from barscan.config import get_settings
from barscan.imaging import PIPELINE, ImageDecodeError, Stage, load_pixel_buffer, to_pil_image
from barscan.logging_setup import configure_logging
from barscan.scanner import Scanner

logger = structlog.get_logger(__name__)


@click.group()
@click.option("--log-level", default=None, help="Override the configured log level")
def main(log_level: str | None):
    """Decode Code 128 barcodes from raw symbol values or images."""
    settings = get_settings()
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level})
    configure_logging(settings)


@main.command()
@click.argument("values", nargs=-1, required=True, type=click.IntRange(0, 255))
@click.option(
    "--fnc4/--no-fnc4",
    default=None,
    help="Render redundant CODE A/CODE B switches as {FNC4}",
)
@click.option(
    "--strip/--no-strip",
    default=None,
    help="Strip interleaved position counters before decoding",
)
def codes(values: tuple[int, ...], fnc4: bool | None, strip: bool | None):
    """Decode raw Code 128 symbol VALUES."""
    settings = get_settings()
    if fnc4 is not None:
        settings = settings.model_copy(update={"decoder_emit_fnc4": fnc4})

    result = Scanner(settings=settings).scan_codes(values, strip_counters=strip)

    if not result.success:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)

    if result.interleaved:
        logger.info("Stripped position counters", count=len(values))
    click.echo(result.text)


@main.command()
@click.argument(
    "path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option(
    "--save-normalized",
    type=click.Path(dir_okay=False, writable=True, path_type=Path),
    default=None,
    help="Write the fully normalized image to this PNG file",
)
@click.option(
    "--no-denoise",
    is_flag=True,
    help="Skip the vertical median filter when saving the normalized image",
)
def image(path: Path, save_normalized: Path | None, no_denoise: bool):
    """Recognize a Code 128 barcode in the image at PATH."""
    scanner = Scanner()

    if save_normalized is not None:
        stages = [s for s in PIPELINE if not (no_denoise and s == Stage.DENOISE)]
        try:
            normalized = scanner.normalizer.run(load_pixel_buffer(path), stages)
        except ImageDecodeError as e:
            click.echo(f"Error: {e}", err=True)
            sys.exit(1)
        to_pil_image(normalized).save(save_normalized, format="PNG")
        click.echo(f"Normalized image written to {save_normalized}", err=True)

    result = scanner.scan_image(path)

    if not result.success:
        click.echo(f"Error: {result.error}", err=True)
        sys.exit(1)

    click.echo(result.text)


if __name__ == "__main__":
    main()
