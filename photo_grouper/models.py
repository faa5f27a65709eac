import os
from typing import Optional, List, Tuple, Dict, Any
from dataclasses import dataclass, field
from datetime import datetime, timedelta

@dataclass
class Exposure:
    """Camera exposure settings read from EXIF."""
    iso: Optional[float] = None
    aperture: Optional[float] = None
    shutter_speed: Optional[float] = None

    def has_data(self) -> bool:
        return self.iso is not None or self.aperture is not None

@dataclass
class ImageRecord:
    """Represents one photo under consideration for grouping."""
    file_path: str
    timestamp: datetime
    file_name: str = ""
    camera: str = "Unknown"
    exposure: Exposure = field(default_factory=Exposure)
    quality_rating: Optional[float] = None
    quality_reasoning: str = ""
    duplicate_group_id: Optional[str] = None
    is_duplicate_best: bool = False
    duplicate_description: str = ""
    file_size: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    fallback: bool = False

    def __post_init__(self):
        if not self.file_name:
            self.file_name = os.path.basename(self.file_path)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fileName': self.file_name,
            'filePath': self.file_path,
            'timestamp': self.timestamp.isoformat(),
            'camera': self.camera,
            'exposure': {
                'iso': self.exposure.iso,
                'aperture': self.exposure.aperture,
                'shutterSpeed': self.exposure.shutter_speed,
            },
            'fileSize': self.file_size,
            'dimensions': f"{self.width}x{self.height}" if self.width and self.height else None,
            'qualityRating': self.quality_rating,
            'qualityReasoning': self.quality_reasoning,
            'duplicateGroupId': self.duplicate_group_id,
            'isDuplicateBest': self.is_duplicate_best,
            'fallback': self.fallback,
        }

@dataclass
class Cluster:
    """Represents a group of photos taken during the same moment."""
    name: str = ""
    files: List[ImageRecord] = field(default_factory=list)
    start_timestamp: Optional[datetime] = None
    last_timestamp: Optional[datetime] = None
    cameras: List[str] = field(default_factory=list)
    locations: List[Tuple[float, float]] = field(default_factory=list)
    parent_cluster: Optional[str] = None

    # Running totals so that add() stays O(1)
    _offset_seconds: float = field(default=0.0, repr=False, compare=False)
    _iso_sum: float = field(default=0.0, repr=False, compare=False)
    _iso_count: int = field(default=0, repr=False, compare=False)
    _aperture_sum: float = field(default=0.0, repr=False, compare=False)
    _aperture_count: int = field(default=0, repr=False, compare=False)
    _duplicate_groups: Dict[str, int] = field(default_factory=dict, repr=False, compare=False)
    _member_names: set = field(default_factory=set, repr=False, compare=False)

    @classmethod
    def from_records(cls, name: str, records: List[ImageRecord],
                     parent_cluster: Optional[str] = None) -> 'Cluster':
        cluster = cls(name=name, parent_cluster=parent_cluster)
        for record in records:
            cluster.add(record)
        return cluster

    def add(self, record: ImageRecord):
        """Append a record; callers add records in ascending timestamp order."""
        if not self.files:
            self.start_timestamp = record.timestamp

        self.files.append(record)
        self.last_timestamp = record.timestamp
        self._offset_seconds += (record.timestamp - self.start_timestamp).total_seconds()
        self._member_names.add(record.file_name)

        if record.camera not in self.cameras:
            self.cameras.append(record.camera)

        if record.latitude is not None and record.longitude is not None:
            self.locations.append((record.latitude, record.longitude))

        # Aperture mean only counts members that carry ISO data
        if record.exposure.iso is not None:
            self._iso_sum += record.exposure.iso
            self._iso_count += 1
            if record.exposure.aperture is not None:
                self._aperture_sum += record.exposure.aperture
                self._aperture_count += 1

        if record.duplicate_group_id is not None:
            group_id = record.duplicate_group_id
            self._duplicate_groups[group_id] = self._duplicate_groups.get(group_id, 0) + 1

    def __len__(self) -> int:
        return len(self.files)

    @property
    def time_span(self) -> int:
        """Whole minutes between the first and last member."""
        if self.start_timestamp is None or self.last_timestamp is None:
            return 0
        return int((self.last_timestamp - self.start_timestamp).total_seconds() / 60)

    @property
    def average_timestamp(self) -> Optional[datetime]:
        if not self.files:
            return None
        return self.start_timestamp + timedelta(seconds=self._offset_seconds / len(self.files))

    @property
    def average_iso(self) -> Optional[float]:
        if self._iso_count == 0:
            return None
        return self._iso_sum / self._iso_count

    @property
    def average_aperture(self) -> Optional[float]:
        if self._aperture_count == 0:
            return None
        return self._aperture_sum / self._aperture_count

    @property
    def center_latitude(self) -> Optional[float]:
        if not self.locations:
            return None
        return sum(lat for lat, lon in self.locations) / len(self.locations)

    @property
    def center_longitude(self) -> Optional[float]:
        if not self.locations:
            return None
        return sum(lon for lat, lon in self.locations) / len(self.locations)

    @property
    def duplicate_group_ids(self) -> List[str]:
        """Distinct duplicate-group ids in order of first appearance."""
        return list(self._duplicate_groups)

    def has_duplicate_group(self, group_id: Optional[str]) -> bool:
        return group_id is not None and group_id in self._duplicate_groups

    def contains(self, file_name: str) -> bool:
        return file_name in self._member_names

@dataclass
class Representative:
    """An image forwarded to downstream enhancement on behalf of its cluster."""
    file_name: str
    file_path: str
    group_name: str
    duplicate_group_id: Optional[str] = None
    is_duplicate_representative: bool = False
    duplicate_count: int = 1
    quality_rating: Optional[float] = None
    reason: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            'fileName': self.file_name,
            'filePath': self.file_path,
            'groupName': self.group_name,
            'duplicateGroupId': self.duplicate_group_id,
            'isDuplicateRepresentative': self.is_duplicate_representative,
            'duplicateCount': self.duplicate_count,
            'qualityRating': self.quality_rating,
            'reason': self.reason,
        }

@dataclass
class QualityRating:
    """Per-image rating supplied by the culling stage."""
    rating: Optional[float] = None
    reasoning: str = ""

@dataclass
class DuplicateInfo:
    """Duplicate-group membership supplied by the culling stage."""
    group_id: str = ""
    is_best: bool = False
    description: str = ""

@dataclass
class GroupingWarning:
    """A veto against placing the named images in the same cluster."""
    images: List[str] = field(default_factory=list)
    severity: str = "low"
    warning_type: str = ""
    description: str = ""
    recommendation: str = ""

    @property
    def is_high_severity(self) -> bool:
        return self.severity == "high"

    def names(self, file_name: str) -> bool:
        return file_name in self.images
