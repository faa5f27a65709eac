"""
Metadata extraction for the photo grouper.

Reads capture time, exposure settings, camera and GPS position from EXIF
with Pillow. Extraction never fails a run: any file whose EXIF cannot be
read gets a fallback record timed by its modification time.
"""

import os
import math
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from PIL import Image as PILImage
from PIL.ExifTags import GPSTAGS

from .models import ImageRecord, Exposure
from .error_handling import MetadataExtractionError, SUPPORTED_EXTENSIONS, validate_image_file

logger = logging.getLogger(__name__)

EXIF_IFD = 0x8769
GPS_IFD = 0x8825

TAG_MAKE = 0x010F
TAG_MODEL = 0x0110
TAG_DATETIME = 0x0132
TAG_EXPOSURE_TIME = 0x829A
TAG_FNUMBER = 0x829D
TAG_ISO = 0x8827
TAG_DATETIME_ORIGINAL = 0x9003
TAG_DATETIME_DIGITIZED = 0x9004

EXIF_DATE_FORMAT = "%Y:%m:%d %H:%M:%S"


def find_image_files(input_path: str) -> List[str]:
    """Recursively list supported image files, sorted and de-duplicated."""
    root = Path(input_path)
    files = {
        str(path.resolve())
        for path in root.rglob('*')
        if path.is_file() and path.suffix.lower() in SUPPORTED_EXTENSIONS
    }
    return sorted(files)


def _decode(value: Any) -> str:
    if isinstance(value, bytes):
        value = value.decode('utf-8', errors='ignore')
    return str(value).strip().strip('\x00')


def _parse_exif_datetime(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    try:
        return datetime.strptime(_decode(value)[:19], EXIF_DATE_FORMAT)
    except ValueError:
        return None


def _to_float(value: Any) -> Optional[float]:
    """Convert EXIF rationals, tuples and plain numbers to float."""
    if value is None:
        return None
    try:
        if isinstance(value, tuple):
            if len(value) == 2 and not isinstance(value[0], tuple):
                result = float(value[0]) / float(value[1])
            else:
                result = float(value[0])
        else:
            result = float(value)
    except (TypeError, ValueError, ZeroDivisionError, IndexError):
        return None

    if math.isnan(result) or math.isinf(result):
        return None
    return result


def get_best_timestamp(exif_values: Dict[str, Any], mtime: datetime) -> datetime:
    """
    Pick the best capture time available.

    Priority: DateTimeOriginal > DateTime > CreateDate > file mtime.

    Args:
        exif_values: Raw EXIF values keyed by tag name
        mtime: File modification time

    Returns:
        datetime: Resolved timestamp (never None)
    """
    for key in ('DateTimeOriginal', 'DateTime', 'CreateDate'):
        parsed = _parse_exif_datetime(exif_values.get(key))
        if parsed is not None:
            return parsed
    return mtime


def read_exposure(exif_ifd: Dict[int, Any], exif: Dict[int, Any]) -> Exposure:
    """Read ISO, aperture and shutter speed; each may be missing independently."""
    def lookup(tag):
        value = exif_ifd.get(tag) if exif_ifd else None
        if value is None:
            value = exif.get(tag)
        return value

    return Exposure(
        iso=_to_float(lookup(TAG_ISO)),
        aperture=_to_float(lookup(TAG_FNUMBER)),
        shutter_speed=_to_float(lookup(TAG_EXPOSURE_TIME)),
    )


def _read_gps(exif) -> Optional[tuple]:
    gps_ifd = exif.get_ifd(GPS_IFD)
    if not gps_ifd:
        return None

    gps_data = {GPSTAGS.get(tag_id, tag_id): value for tag_id, value in gps_ifd.items()}
    if 'GPSLatitude' not in gps_data or 'GPSLongitude' not in gps_data:
        return None

    lat = gps_data['GPSLatitude']
    lon = gps_data['GPSLongitude']
    lat_ref = _decode(gps_data.get('GPSLatitudeRef', 'N'))
    lon_ref = _decode(gps_data.get('GPSLongitudeRef', 'E'))

    try:
        lat_decimal = float(lat[0]) + float(lat[1]) / 60 + float(lat[2]) / 3600
        lon_decimal = float(lon[0]) + float(lon[1]) / 60 + float(lon[2]) / 3600
    except (TypeError, ValueError, ZeroDivisionError, IndexError):
        return None

    return (
        lat_decimal * (-1 if lat_ref == 'S' else 1),
        lon_decimal * (-1 if lon_ref == 'W' else 1),
    )


def _read_exif(file_path: str) -> Dict[str, Any]:
    try:
        with PILImage.open(file_path) as img:
            width, height = img.size
            exif = img.getexif()
            exif_ifd = exif.get_ifd(EXIF_IFD) if exif else {}

            def lookup(tag):
                value = exif_ifd.get(tag) if exif_ifd else None
                if value is None:
                    value = exif.get(tag)
                return value

            make = _decode(exif.get(TAG_MAKE)) if exif.get(TAG_MAKE) else ""
            model = _decode(exif.get(TAG_MODEL)) if exif.get(TAG_MODEL) else ""

            return {
                'width': width,
                'height': height,
                'timestamps': {
                    'DateTimeOriginal': lookup(TAG_DATETIME_ORIGINAL),
                    'DateTime': exif.get(TAG_DATETIME),
                    'CreateDate': lookup(TAG_DATETIME_DIGITIZED),
                },
                'camera': f"{make} {model}" if make and model else "Unknown",
                'exposure': read_exposure(exif_ifd, exif),
                'gps': _read_gps(exif) if exif else None,
            }
    except (OSError, ValueError, SyntaxError, PILImage.DecompressionBombError) as e:
        raise MetadataExtractionError(f"Failed to extract metadata from {file_path}: {e}")


def create_fallback_record(file_path: str) -> ImageRecord:
    """Build a record from file-system data alone."""
    try:
        stats = os.stat(file_path)
        timestamp = datetime.fromtimestamp(stats.st_mtime)
        file_size = stats.st_size
    except OSError as e:
        logger.error(f"Could not stat {file_path}: {e}")
        timestamp = datetime.now()
        file_size = 0

    return ImageRecord(
        file_path=file_path,
        timestamp=timestamp,
        camera="Unknown",
        exposure=Exposure(),
        file_size=file_size,
        fallback=True,
    )


def extract_image_metadata(file_path: str) -> ImageRecord:
    """
    Extract an ImageRecord for a single file.

    Never raises: unreadable files produce a fallback record.

    Args:
        file_path: Absolute path to the image

    Returns:
        ImageRecord
    """
    try:
        validate_image_file(file_path)
        stats = os.stat(file_path)
        info = _read_exif(file_path)
    except (MetadataExtractionError, OSError) as e:
        logger.warning(f"Using fallback metadata for {os.path.basename(file_path)}: {e}")
        return create_fallback_record(file_path)
    except Exception as e:
        logger.error(f"Unexpected error reading {os.path.basename(file_path)}, using fallback metadata: {e}",
                     exc_info=True)
        return create_fallback_record(file_path)

    mtime = datetime.fromtimestamp(stats.st_mtime)
    gps = info['gps']

    return ImageRecord(
        file_path=file_path,
        timestamp=get_best_timestamp(info['timestamps'], mtime),
        camera=info['camera'],
        exposure=info['exposure'],
        file_size=stats.st_size,
        width=info['width'],
        height=info['height'],
        latitude=gps[0] if gps else None,
        longitude=gps[1] if gps else None,
    )


def extract_all_metadata(file_paths: List[str], max_workers: int = 8,
                         progress_callback: Optional[Callable[[int, int], None]] = None) -> List[ImageRecord]:
    """
    Extract metadata for many files concurrently.

    Args:
        file_paths: Image paths
        max_workers: Upper bound on concurrent file reads
        progress_callback: Optional callable receiving (completed, total)

    Returns:
        List of ImageRecord sorted ascending by timestamp
    """
    if not file_paths:
        return []

    records = []
    total = len(file_paths)

    with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
        future_to_path = {
            executor.submit(extract_image_metadata, path): path
            for path in file_paths
        }

        for future in as_completed(future_to_path):
            records.append(future.result())
            if progress_callback:
                progress_callback(len(records), total)

    fallbacks = sum(1 for record in records if record.fallback)
    logger.info(f"Metadata extraction complete: {total} files, {fallbacks} fallbacks")

    records.sort(key=lambda record: (record.timestamp, record.file_path))
    return records
