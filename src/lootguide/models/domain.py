"""Domain models for vendors, their embedded deals, and regions."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

ACTIVE_OPERATING = "Active-Operating"

DAYS_OF_WEEK: tuple[str, ...] = (
    "monday",
    "tuesday",
    "wednesday",
    "thursday",
    "friday",
    "saturday",
    "sunday",
)


class Partition(str, Enum):
    """Logical vendor bucket in the remote store."""

    ACTIVE = "active"
    PRIORITY = "priority"
    OTHER = "other"


class DealType(str, Enum):
    BIRTHDAY = "birthday"
    DAILY = "daily"
    EVERYDAY = "everyday"
    SPECIAL = "special"


DEFAULT_REDEMPTION_FREQUENCY: dict[str, str] = {
    DealType.BIRTHDAY.value: "once_per_year",
    DealType.DAILY.value: "once_per_day",
    DealType.EVERYDAY.value: "once_per_day",
    DealType.SPECIAL.value: "unlimited",
}


@dataclass(slots=True)
class Coordinates:
    latitude: float
    longitude: float


@dataclass(slots=True)
class VendorLocation:
    address: str
    zip_code: Optional[str]
    coordinates: Coordinates


@dataclass(slots=True)
class SocialLinks:
    instagram: str = ""
    facebook: str = ""


@dataclass(slots=True)
class VendorContact:
    phone: str = ""
    email: str = ""
    social: SocialLinks = field(default_factory=SocialLinks)


@dataclass(slots=True)
class DealSpec:
    """A deal offer as embedded in a vendor document."""

    description: Optional[str] = None
    discount: Optional[str] = None
    title: Optional[str] = None
    restrictions: list[str] = field(default_factory=list)
    redemption_frequency: Optional[str] = None
    is_active: Optional[bool] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    category: Optional[str] = None


@dataclass(slots=True)
class VendorDeals:
    birthday: Optional[DealSpec] = None
    daily: dict[str, list[DealSpec]] = field(default_factory=dict)
    everyday: list[DealSpec] = field(default_factory=list)
    special: list[DealSpec] = field(default_factory=list)


@dataclass(slots=True)
class RegionInfo:
    in_active_region: bool = False
    in_priority_region: bool = False
    region_id: Optional[str] = None
    region_name: Optional[str] = None
    zip_code: Optional[str] = None


@dataclass(slots=True)
class Vendor:
    """Canonical vendor record produced by the normalizer."""

    id: str
    name: str
    status: str
    location: VendorLocation
    contact: VendorContact
    hours: dict
    deals: VendorDeals
    region_info: RegionInfo
    is_partner: bool = False
    regions: list[str] = field(default_factory=list)
    extra: dict = field(default_factory=dict)
    distance: Optional[float] = None

    @property
    def is_active_operating(self) -> bool:
        return self.status == ACTIVE_OPERATING


@dataclass(slots=True)
class Region:
    """Administrative grouping of postal codes."""

    id: str
    name: str
    is_active: bool = False
    is_priority: bool = False
    zip_codes: list[str] = field(default_factory=list)


@dataclass(slots=True)
class Deal:
    """A flattened deal offer derived from a vendor's embedded deals."""

    id: str
    title: str
    description: str
    discount: str
    deal_type: str
    vendor_id: str
    vendor_name: str
    restrictions: list[str] = field(default_factory=list)
    day: Optional[str] = None
    vendor_distance: Optional[float] = None
    vendor_is_partner: bool = False
    is_active: bool = True
    redemption_frequency: Optional[str] = None
    category: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    featured: bool = False
    featured_id: Optional[str] = None
    featured_priority: int = 0
    featured_expires_at: Optional[str] = None
    image_url: Optional[str] = None
