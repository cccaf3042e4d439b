"""
SVG to PDF conversion.

The worker only depends on the Converter protocol; SvgToPdfConverter is the
production implementation and renders vector PDF through cairosvg.
Converters are called from a worker thread and may be slow.
"""

import logging
import re
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Protocol

logger = logging.getLogger(__name__)

_LENGTH_RE = re.compile(r"^\s*([+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?)")


class ConversionError(Exception):
    """Raised when an SVG document cannot be turned into a PDF."""

    pass


class Converter(Protocol):
    """Turns SVG markup into a file at output_path, raising on failure."""

    def convert(self, svg_content: str, output_path: str) -> None: ...


def _parse_length(value: str | None) -> float | None:
    if value is None:
        return None
    match = _LENGTH_RE.match(value)
    if match is None:
        return None
    return float(match.group(1))


def resolve_output_path(output_path: str, export_root: str | Path) -> Path:
    """
    Resolve an output path below the export root.

    Relative paths are taken relative to the root. Absolute paths are
    accepted only if they already point inside it.

    Raises:
        ConversionError: If the resolved path leaves the export root.
    """
    root = Path(export_root).resolve()
    try:
        target = (root / output_path).resolve()
    except (OSError, ValueError) as e:
        raise ConversionError(f"Invalid output path {output_path!r}: {e}") from e
    if target == root or not target.is_relative_to(root):
        raise ConversionError(f"Output path is outside the export root: {output_path}")
    return target


class SvgToPdfConverter:
    """
    SVG to PDF converter keeping full vector fidelity (no rasterization).

    Example:
        converter = SvgToPdfConverter("/exports")
        converter.convert("<svg ...>...</svg>", "doc-1.pdf")
    """

    def __init__(self, export_root: str | Path):
        self.export_root = Path(export_root)

    def validate(self, svg_content: str) -> None:
        """
        Check the document is an SVG with usable dimensions.

        Raises:
            ConversionError: On malformed XML, a non-SVG root, or a
                non-positive width/height.
        """
        try:
            root = ET.fromstring(svg_content)
        except ET.ParseError as e:
            raise ConversionError(f"Failed to parse SVG content: {e}") from e

        # Tags carry the namespace as "{uri}svg"
        if root.tag.rsplit("}", 1)[-1] != "svg":
            raise ConversionError(f"Root element is not <svg>: {root.tag}")

        width = _parse_length(root.get("width"))
        height = _parse_length(root.get("height"))
        if (width is not None and width <= 0) or (height is not None and height <= 0):
            raise ConversionError(
                f"Invalid SVG dimensions: {root.get('width')}x{root.get('height')}"
            )

    def convert(self, svg_content: str, output_path: str) -> None:
        """
        Convert SVG markup and write the PDF to output_path.

        Args:
            svg_content: UTF-8 SVG markup.
            output_path: Path of the PDF to write, relative to the export root
                or absolute inside it.

        Raises:
            ConversionError: If the path leaves the export root, or if
                validation, rendering or writing fails.
        """
        logger.info("Converting SVG to PDF", extra={"output_path": output_path})

        target = resolve_output_path(output_path, self.export_root)
        self.validate(svg_content)

        import cairosvg

        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            cairosvg.svg2pdf(bytestring=svg_content.encode("utf-8"), write_to=str(target))
        except OSError as e:
            raise ConversionError(f"Failed to write PDF to {output_path}: {e}") from e
        except Exception as e:
            raise ConversionError(f"Failed to render SVG: {e}") from e

        logger.info(
            "PDF export complete",
            extra={"output_path": output_path, "bytes": target.stat().st_size},
        )
