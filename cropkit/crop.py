# -*- coding: utf-8 -*-
import os
import sys
import argparse
import logging
import math
from dataclasses import dataclass
from typing import Tuple, List, Optional, Iterable, Dict, Any
from PIL import Image, UnidentifiedImageError
import tqdm

log_formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(processName)s: %(message)s', datefmt='%Y-%m-%d %H:%M:%S')

log_handler = logging.StreamHandler()
log_handler.setFormatter(log_formatter)

logger = logging.getLogger(__name__)
if not logger.hasHandlers():
    logger.addHandler(log_handler)
    logger.setLevel(logging.WARNING)

# Formats the save routine can write back in place.
SUPPORTED_EXTENSIONS: Tuple[str, ...] = ("JPEG", "JPG", "PNG", "ICO", "PNM", "BMP", "TIFF", "TIF")
SAVE_FORMATS: Dict[str, str] = {
    "JPEG": "JPEG",
    "JPG": "JPEG",
    "PNG": "PNG",
    "ICO": "ICO",
    "PNM": "PPM",
    "BMP": "BMP",
    "TIFF": "TIFF",
    "TIF": "TIFF",
}
DEFAULT_JPEG_QUALITY: int = 95
MAX_PIXELS: int = 2**32 - 1

Box = Tuple[int, int, int, int]


class CropSetupError(Exception):
    """Custom exception for critical errors during crop setup."""
    pass


@dataclass(frozen=True)
class CropRequest:
    """Crop parameters resolved from the command line.

    With ``relative`` set, all four values are fractions of the image size.
    """
    x1: float
    y1: float
    width: float
    height: float
    relative: bool = False


@dataclass
class CropResult:
    path: str
    success: bool
    message: str = ""
    box: Optional[Box] = None


def setup_logging(level: int):
    logger.setLevel(level)


def resolve_crop_request(settings: argparse.Namespace) -> CropRequest:
    width = getattr(settings, 'width', None)
    height = getattr(settings, 'height', None)
    x2 = getattr(settings, 'x2', None)
    y2 = getattr(settings, 'y2', None)

    if (width is None) == (x2 is None):
        raise ValueError("Exactly one of --width or --x2 must be given.")
    if (height is None) == (y2 is None):
        raise ValueError("Exactly one of --height or --y2 must be given.")

    if width is None:
        width = x2 - settings.x1
    if height is None:
        height = y2 - settings.y1

    return CropRequest(
        x1=settings.x1,
        y1=settings.y1,
        width=width,
        height=height,
        relative=bool(getattr(settings, 'relative', False)),
    )


def has_supported_extension(path: str) -> bool:
    extension = os.path.splitext(path)[1]
    if not extension:
        return False
    return extension[1:].upper() in SUPPORTED_EXTENSIONS


def filter_image_paths(paths: Iterable[str]) -> List[str]:
    return [path for path in paths if has_supported_extension(path)]


def _scan_directory(dir_path: str) -> List[str]:
    # Any entry kind is kept; crop_image reports the ones it cannot open.
    with os.scandir(dir_path) as entries:
        return [entry.path for entry in entries]


def find_image_files(input_path: str) -> List[str]:
    """Resolve the input path into the list of images to crop.

    A file is returned as-is whatever its extension; a directory is scanned
    one level deep and filtered by ``SUPPORTED_EXTENSIONS``.
    """
    if os.path.isfile(input_path):
        return [input_path]
    if os.path.isdir(input_path):
        try:
            return filter_image_paths(_scan_directory(input_path))
        except OSError as e:
            raise CropSetupError(f"Cannot access input directory '{input_path}': {e}")
    raise CropSetupError(f"Path {input_path} does not exist!")


def _to_pixels(value: float) -> int:
    if math.isnan(value) or value <= 0:
        return 0
    return int(min(value, MAX_PIXELS))


def compute_crop_box(request: CropRequest, image_size: Tuple[int, int]) -> Box:
    img_w, img_h = image_size
    if request.relative:
        multiplier_w, multiplier_h = float(img_w), float(img_h)
    else:
        multiplier_w, multiplier_h = 1.0, 1.0

    left = _to_pixels(request.x1 * multiplier_w)
    top = _to_pixels(request.y1 * multiplier_h)
    crop_w = _to_pixels(request.width * multiplier_w)
    crop_h = _to_pixels(request.height * multiplier_h)

    # Clamp to the image, the way an out-of-range view shrinks.
    left = min(left, img_w)
    top = min(top, img_h)
    crop_w = min(crop_w, img_w - left)
    crop_h = min(crop_h, img_h - top)

    return left, top, left + crop_w, top + crop_h


def _build_save_options(save_format: str, info: Dict[str, Any], settings: argparse.Namespace) -> Dict[str, Any]:
    save_options: Dict[str, Any] = {'format': save_format}

    if not getattr(settings, 'strip_exif', False):
        exif_data = info.get('exif')
        if exif_data and isinstance(exif_data, bytes):
            save_options['exif'] = exif_data
        icc_profile = info.get('icc_profile')
        if icc_profile:
            save_options['icc_profile'] = icc_profile

    if save_format == 'JPEG':
        save_options['quality'] = getattr(settings, 'jpeg_quality', DEFAULT_JPEG_QUALITY)
    return save_options


def crop_image(image_path: str, request: CropRequest, settings: argparse.Namespace) -> CropResult:
    dry_run = getattr(settings, 'dry_run', False)
    strip_exif = getattr(settings, 'strip_exif', False)
    extension = os.path.splitext(image_path)[1]
    save_format = SAVE_FORMATS.get(extension[1:].upper())
    try:
        with Image.open(image_path) as img:
            box = compute_crop_box(request, img.size)
            logger.debug(f"  -> Debug: {image_path}: size {img.width}x{img.height}, crop box {box}")
            if box[2] <= box[0] or box[3] <= box[1]:
                return CropResult(image_path, False, "Crop rectangle is empty", box)
            if save_format is None:
                return CropResult(image_path, False, f"Unsupported output format for extension '{extension or '(none)'}'", box)
            if dry_run:
                return CropResult(image_path, True, box=box)
            save_options = _build_save_options(save_format, img.info, settings)
            cropped_img = img.crop(box)

        if strip_exif:
            # PNG falls back to the image's own info for the ICC profile.
            cropped_img.info.pop('exif', None)
            cropped_img.info.pop('icc_profile', None)
        cropped_img.save(image_path, **save_options)
        return CropResult(image_path, True, box=box)
    except UnidentifiedImageError as e:
        return CropResult(image_path, False, str(e))
    except FileNotFoundError:
        return CropResult(image_path, False, "No such file")
    except PermissionError:
        return CropResult(image_path, False, "Permission denied")
    except (OSError, ValueError, KeyError, SystemError, Image.DecompressionBombError) as e:
        logger.debug(f"  -> Debug: {image_path}: {type(e).__name__}", exc_info=True)
        return CropResult(image_path, False, str(e) or type(e).__name__)


def report_result(result: CropResult, silent: bool = False, dry_run: bool = False):
    # tqdm.write keeps report lines from tearing an active progress bar.
    if not result.success:
        tqdm.tqdm.write(f"Cropping image {result.path} failed: {result.message}", file=sys.stderr)
    elif not silent:
        if dry_run:
            tqdm.tqdm.write(f"Would crop {result.path} to {result.box}", file=sys.stdout)
        else:
            tqdm.tqdm.write(f"Cropped {result.path}", file=sys.stdout)


def execute_crop_operation(settings: argparse.Namespace) -> int:
    """Crop every candidate image and return the number of failed files."""
    setup_logging(logging.DEBUG if getattr(settings, 'verbose', False) else logging.WARNING)

    request = resolve_crop_request(settings)
    logger.debug(f"  -> Debug: Resolved crop request: {request}")

    image_files = find_image_files(settings.input_path)
    logger.debug(f"  -> Debug: {len(image_files)} candidate image(s) under '{settings.input_path}'.")

    silent = getattr(settings, 'silent', False)
    dry_run = getattr(settings, 'dry_run', False)
    tqdm_extra_kwargs = {
        'bar_format': '{l_bar}{bar}| {n_fmt}/{total_fmt} [{elapsed}<{remaining}, {rate_fmt}{postfix}]',
        'ncols': 80,
    }
    show_progress = getattr(settings, 'progress', False) and len(image_files) > 1

    failed_count = 0
    for image_path in tqdm.tqdm(image_files, desc="Cropping images", unit="file", disable=not show_progress, **tqdm_extra_kwargs):
        result = crop_image(image_path, request, settings)
        if not result.success:
            failed_count += 1
        report_result(result, silent=silent, dry_run=dry_run)

    logger.debug(f"  -> Debug: Finished: {len(image_files) - failed_count} cropped, {failed_count} failed.")
    return failed_count
