#!/usr/bin/env uv run --script
# /// script
# requires-python = ">=3.8"
# dependencies = [
#     "pillow",
#     "piexif",
# ]
# ///
"""
generate_sample_images.py

Generates a synthetic shoot for the grouper: a few "moments" of JPEGs with
EXIF capture time, camera and exposure, plus a culling_report.json with
ratings, duplicate groups and grouping warnings.
"""

import os
import json
import random
from datetime import datetime, timedelta
from PIL import Image, ImageDraw, ImageFilter
import piexif

# Configuration
OUTPUT_DIR = "Sample_Images"
IMAGE_SIZE = (800, 600)  # width, height
SEED = 42

# One entry per moment: start offset (minutes), shots, camera, ISO, f-number
MOMENTS = [
    {"offset": 0, "shots": 12, "camera": ("Canon", "EOS R5"), "iso": 400, "aperture": 2.8},
    {"offset": 20, "shots": 8, "camera": ("Canon", "EOS R5"), "iso": 3200, "aperture": 1.8},
    {"offset": 95, "shots": 34, "camera": ("Sony", "A7 IV"), "iso": 200, "aperture": 5.6},
    {"offset": 240, "shots": 6, "camera": ("Canon", "EOS R5"), "iso": 800, "aperture": 4.0},
]
BURST_PROBABILITY = 0.15
BURST_LENGTH = (3, 5)
MISSING_EXIF_PROBABILITY = 0.03


def draw_image(seed):
    """Draw a random composition of shapes."""
    rng = random.Random(seed)
    img = Image.new("RGB", IMAGE_SIZE, tuple(rng.randint(0, 255) for _ in range(3)))
    draw = ImageDraw.Draw(img)
    width, height = IMAGE_SIZE
    for _ in range(rng.randint(5, 15)):
        x0, y0 = rng.randint(0, width), rng.randint(0, height)
        x1, y1 = x0 + rng.randint(20, 300), y0 + rng.randint(20, 300)
        color = tuple(rng.randint(0, 255) for _ in range(3))
        if rng.random() < 0.5:
            draw.ellipse((x0, y0, x1, y1), fill=color)
        else:
            draw.rectangle((x0, y0, x1, y1), fill=color)
    return img


def _rational(value, precision=10):
    return (int(round(value * precision)), precision)


def create_exif(dt, camera, iso, aperture, shutter):
    """Create EXIF bytes with capture time, camera and exposure."""
    exif_dict = {"0th": {}, "Exif": {}, "GPS": {}, "1st": {}, "thumbnail": None}

    exif_dict["0th"][piexif.ImageIFD.Make] = camera[0]
    exif_dict["0th"][piexif.ImageIFD.Model] = camera[1]
    exif_dict["0th"][piexif.ImageIFD.DateTime] = dt.strftime("%Y:%m:%d %H:%M:%S")

    exif_dict["Exif"][piexif.ExifIFD.DateTimeOriginal] = dt.strftime("%Y:%m:%d %H:%M:%S")
    exif_dict["Exif"][piexif.ExifIFD.ISOSpeedRatings] = iso
    exif_dict["Exif"][piexif.ExifIFD.FNumber] = _rational(aperture)
    exif_dict["Exif"][piexif.ExifIFD.ExposureTime] = (1, shutter)

    return piexif.dump(exif_dict)


def main():
    rng = random.Random(SEED)
    os.makedirs(OUTPUT_DIR, exist_ok=True)

    base_date = datetime(2025, 6, 14, 9, 30, 0)
    selected_files = []
    duplicate_groups = []
    index = 0

    for moment in MOMENTS:
        dt = base_date + timedelta(minutes=moment["offset"])
        remaining = moment["shots"]

        while remaining > 0:
            burst = 1
            if rng.random() < BURST_PROBABILITY:
                burst = min(remaining, rng.randint(*BURST_LENGTH))

            names = []
            base_seed = rng.randint(0, 10_000)
            for shot in range(burst):
                index += 1
                filename = f"image_{index:03d}.jpg"
                names.append(filename)

                # Burst frames share a base picture
                img = draw_image(base_seed)
                if shot:
                    img = img.filter(ImageFilter.GaussianBlur(radius=shot * 0.5))

                filepath = os.path.join(OUTPUT_DIR, filename)
                if rng.random() < MISSING_EXIF_PROBABILITY:
                    img.save(filepath, "JPEG")
                else:
                    iso = moment["iso"] + rng.choice([0, 0, 100, -100 if moment["iso"] > 100 else 0])
                    exif_bytes = create_exif(dt, moment["camera"], iso, moment["aperture"],
                                             rng.choice([60, 125, 250, 500]))
                    img.save(filepath, "JPEG", exif=exif_bytes)

                selected_files.append({
                    "file": filename,
                    "rating": round(rng.uniform(2.0, 5.0), 1),
                    "reasoning": "Synthetic rating",
                })
                dt += timedelta(seconds=rng.randint(1, 3) if burst > 1 else rng.randint(20, 90))

            if burst > 1:
                duplicate_groups.append({
                    "group_id": f"dup_{len(duplicate_groups) + 1:02d}",
                    "images": names,
                    "best": rng.choice(names),
                    "description": f"Burst of {burst} frames",
                })
            remaining -= burst

        print(f"Generated moment at +{moment['offset']} min ({moment['shots']} images)")

    grouping_warnings = [{
        "images": ["image_003.jpg", "image_004.jpg"],
        "severity": "high",
        "warning_type": "different_subject",
        "description": "Different subjects despite matching settings",
        "recommendation": "Keep in separate groups",
    }]

    report = {
        "stage": "cull",
        "timestamp": datetime.now().isoformat(),
        "selectedFiles": selected_files,
        "duplicateGroups": duplicate_groups,
        "groupingWarnings": grouping_warnings,
    }
    with open(os.path.join(OUTPUT_DIR, "culling_report.json"), "w") as f:
        json.dump(report, f, indent=2)

    print(f"Done! {index} images, {len(duplicate_groups)} duplicate groups")


if __name__ == "__main__":
    main()
