import argparse
import logging
import sys
from pathlib import Path
from typing import Optional

from .PageFlattener import PageFlattener
from .PDFProcessor import WatermarkResult, add_watermark
from .WatermarkConfig import (
    DEFAULT_COLOR,
    DEFAULT_OPACITY,
    InvalidInputError,
    WatermarkError,
    WatermarkSpec,
    watermarked_filename,
)

# ==========================================
# CLI & Execution
# ==========================================

def run_watermark_service(
    input_pdf: str,
    output_pdf: Optional[str] = None,
    watermark_text: str = "",
    color: str = DEFAULT_COLOR,
    opacity: float = DEFAULT_OPACITY,
    flatten: bool = True,
    fallback_to_vector: bool = False,
    progress: bool = False,
) -> Optional[Path]:
    """
    High-level entry point: read a PDF, watermark it, write the result.

    Returns the output path, or None when the watermark text is empty and
    nothing was written.
    """
    input_path = Path(input_pdf)
    if not input_path.is_file():
        raise InvalidInputError(f"Input file not found: {input_path}")

    if output_pdf is None:
        output_path = input_path.with_name(watermarked_filename(input_path.name))
    else:
        output_path = Path(output_pdf)

    spec = WatermarkSpec.from_hex(watermark_text, color=color, opacity=opacity, flatten=flatten)

    result: WatermarkResult = add_watermark(
        input_path.read_bytes(),
        spec,
        flattener=PageFlattener(progress=progress),
        fallback_to_vector=fallback_to_vector,
    )
    if result.noop:
        return None

    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(result.data)
    return output_path

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="flatmark",
        description="Stamp a centered diagonal text watermark on every PDF page, optionally flattening it",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter
    )

    # Files
    parser.add_argument("-i", "--input", required=True, help="Path to source PDF")
    parser.add_argument("-o", "--output", help="Output path (default: <input>-watermarked.pdf)")

    # Watermark
    parser.add_argument("-t", "--text", required=True, help="Text to use as watermark")
    parser.add_argument("--color", default=DEFAULT_COLOR, help="Watermark color as #RRGGBB")
    parser.add_argument("--opacity", type=float, default=DEFAULT_OPACITY, help="Opacity (0.0 to 1.0]")

    # Flattening
    parser.add_argument("--no-flatten", dest="flatten", action="store_false",
                        help="Keep the watermark as vector text (removable)")
    parser.add_argument("--fallback-vector", action="store_true",
                        help="Save the vector watermark if flattening fails")
    parser.add_argument("--progress", action="store_true", help="Show a per-page progress bar")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log progress details")
    return parser

def main(argv=None):
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.INFO if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        output = run_watermark_service(
            input_pdf=args.input,
            output_pdf=args.output,
            watermark_text=args.text,
            color=args.color,
            opacity=args.opacity,
            flatten=args.flatten,
            fallback_to_vector=args.fallback_vector,
            progress=args.progress,
        )
    except WatermarkError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)
    except Exception as e:
        print(f"An unexpected error occurred: {e}", file=sys.stderr)
        sys.exit(1)

    if output is None:
        print("Watermark text is empty; nothing to do.")
    else:
        print(f"Successfully saved to: {output}")

if __name__ == "__main__":
    main()
