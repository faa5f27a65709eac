#!/usr/bin/env python3
"""
Verify what the grouper reads from the EXIF data of sample images.
"""

import sys
from pathlib import Path

from photo_grouper.metadata import find_image_files, extract_image_metadata

def describe(record):
    """One line summary of an extracted record."""
    status = []
    if record.fallback:
        status.append(f"❌ Unreadable, file time {record.timestamp}")
    else:
        status.append(f"✅ {record.timestamp}")

    exposure = record.exposure
    if exposure.has_data():
        status.append(f"ISO {exposure.iso or '-'} f/{exposure.aperture or '-'}")
    else:
        status.append("❌ No exposure")

    status.append(record.camera)

    if record.latitude is not None:
        status.append(f"GPS ({record.latitude:.4f}, {record.longitude:.4f})")

    return " | ".join(status)

def main():
    sample_dir = Path(sys.argv[1] if len(sys.argv) > 1 else "Sample_Images")

    if not sample_dir.exists():
        print(f"❌ {sample_dir} folder not found!")
        return

    images = find_image_files(str(sample_dir))
    total = len(images)
    if not total:
        print("❌ No images found")
        return

    print(f"📸 Checking {total} images...\n")

    print("🔍 Detailed check of first 10 images:")
    records = [extract_image_metadata(path) for path in images]
    for record in records[:10]:
        print(f"  {record.file_name}: {describe(record)}")

    fallbacks = [r for r in records if r.fallback]
    with_exposure = sum(1 for r in records if r.exposure.has_data())
    with_gps = sum(1 for r in records if r.latitude is not None)

    print(f"\n📈 Summary:")
    print(f"  Total images: {total}")
    print(f"  Readable: {total - len(fallbacks)} ({(total - len(fallbacks))/total*100:.1f}%)")
    print(f"  With exposure: {with_exposure} ({with_exposure/total*100:.1f}%)")
    print(f"  With GPS data: {with_gps} ({with_gps/total*100:.1f}%)")

    if fallbacks:
        print(f"\n⚠️  Unreadable images (grouped by file time):")
        for record in fallbacks[:10]:
            print(f"    - {record.file_name}")
        if len(fallbacks) > 10:
            print(f"    ... and {len(fallbacks) - 10} more")
    else:
        print("\n✅ All images were readable!")

if __name__ == "__main__":
    main()
