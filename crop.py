# -*- coding: utf-8 -*-
import argparse
import sys
from typing import List, Optional

from cropkit import __version__
from cropkit.crop import (
    execute_crop_operation,
    CropSetupError,
    DEFAULT_JPEG_QUALITY,
    SUPPORTED_EXTENSIONS,
)


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Crop one or multiple images at once. Images are overwritten in place.",
        formatter_class=argparse.RawTextHelpFormatter
    )
    parser.add_argument("input_path",
                        help="Path to an image file or to a directory containing image files.\n"
                             f"Directories are scanned one level deep for: {', '.join(SUPPORTED_EXTENSIONS)}.")

    coord_group = parser.add_argument_group('Crop Coordinates')
    coord_group.add_argument("--x1", type=float, required=True, help="X position of the top-left crop point.")
    coord_group.add_argument("--y1", type=float, required=True, help="Y position of the top-left crop point.")

    width_group = parser.add_mutually_exclusive_group(required=True)
    width_group.add_argument("--x2", type=float, default=None, help="X position of the bottom-right crop point.")
    width_group.add_argument("--width", type=float, default=None, help="Width of the cropped section.")

    height_group = parser.add_mutually_exclusive_group(required=True)
    height_group.add_argument("--y2", type=float, default=None, help="Y position of the bottom-right crop point.")
    height_group.add_argument("--height", type=float, default=None, help="Height of the cropped section.")

    optional_group = parser.add_argument_group('Other Options')
    optional_group.add_argument("--relative", action="store_true", default=False,
                                help="Treat x1, y1, x2, y2, width and height as values between 0.0 and 1.0\n"
                                     "relative to the image size instead of absolute pixel values.")
    optional_group.add_argument("--silent", action="store_true", default=False,
                                help="Do not print cropped files to stdout. Errors are still printed to stderr.")
    optional_group.add_argument("--progress", action="store_true", default=False,
                                help="Show a progress bar on stderr while cropping a directory (Default: False).")
    optional_group.add_argument("--dry-run", action="store_true", default=False,
                                help="Compute the crop rectangles without saving files (Default: False).")
    optional_group.add_argument("-q", "--jpeg-quality", type=int, choices=range(1, 101), metavar="[1-100]",
                                default=DEFAULT_JPEG_QUALITY,
                                help=f"JPEG quality used when re-saving JPEG files (Default: {DEFAULT_JPEG_QUALITY}).")
    optional_group.add_argument("--strip-exif", action="store_true", default=False,
                                help="Remove EXIF data and ICC profiles from cropped images (Default: False).")
    optional_group.add_argument("-v", "--verbose", action="store_true", default=False,
                                help="Enable detailed (DEBUG level) logging (Default: False).")
    optional_group.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = get_parser()
    args = parser.parse_args(argv)

    try:
        execute_crop_operation(args)
    except CropSetupError as e:
        print(e, file=sys.stderr)
    except KeyboardInterrupt:
        print("\nOperation interrupted by user", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
