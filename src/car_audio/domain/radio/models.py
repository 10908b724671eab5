"""
Radio domain models.

Contains data structures for stations, tunable frequencies, presets and
the transient tuning/auth state.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class Network(str, Enum):
    """Radio network a station belongs to."""

    COMMERCIAL = "commercial"
    PUBLIC = "public"


class Band(str, Enum):
    """Broadcast band."""

    AM = "AM"
    FM = "FM"

    @property
    def key(self) -> str:
        """Lowercase key used in persisted preset maps."""
        return self.value.lower()


@dataclass(frozen=True)
class BandPlan:
    """Tunable range of a band.

    FM is in MHz, AM in kHz. Frequencies outside [min_freq, max_freq] are
    never displayed.
    """

    band: Band
    min_freq: float
    max_freq: float
    step: float
    default_freq: float

    @property
    def positions(self) -> int:
        """Number of dial positions, both edges included."""
        return round((self.max_freq - self.min_freq) / self.step) + 1

    @property
    def span(self) -> float:
        """Distance travelled by one full turn of the dial."""
        return self.positions * self.step

    def round_freq(self, freq: float) -> float:
        """Snap a frequency to the band's display grid and clamp it to range."""
        if self.band is Band.FM:
            snapped = round(freq * 10) / 10
        else:
            snapped = float(round(freq / self.step) * self.step)
        return min(self.max_freq, max(self.min_freq, snapped))

    def wrap(self, freq: float) -> float:
        """Fold a frequency that ran past a band edge back onto the dial."""
        half = self.step / 2
        while freq > self.max_freq + half:
            freq -= self.span
        while freq < self.min_freq - half:
            freq += self.span
        return freq


BAND_PLANS: dict[Band, BandPlan] = {
    Band.FM: BandPlan(Band.FM, 76.0, 99.0, 0.1, 76.0),
    Band.AM: BandPlan(Band.AM, 531.0, 1602.0, 9.0, 531.0),
}


@dataclass(frozen=True)
class StationDescriptor:
    """A selectable station.

    Identity is (network, id) for commercial stations and (network, url)
    for public ones. A fresh descriptor is built on every re-selection.
    """

    network: Network
    name: str
    band: Band
    id: Optional[str] = None
    url: Optional[str] = None
    frequency: Optional[float] = None
    logo_url: Optional[str] = None

    def __post_init__(self) -> None:
        if self.network is Network.COMMERCIAL and not self.id:
            raise ValueError("Commercial station descriptors require an id")
        if self.network is Network.PUBLIC and not self.url:
            raise ValueError("Public station descriptors require a url")

    @property
    def identity(self) -> tuple[str, str]:
        if self.network is Network.COMMERCIAL:
            return (self.network.value, self.id or "")
        return (self.network.value, self.url or "")

    def to_dict(self) -> dict:
        return {
            "network": self.network.value,
            "name": self.name,
            "band": self.band.value,
            "id": self.id,
            "url": self.url,
            "frequency": self.frequency,
            "logoUrl": self.logo_url,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "StationDescriptor":
        """Build a descriptor from its persisted form.

        Raises:
            ValueError/KeyError/TypeError: If the data is malformed
        """
        frequency = data.get("frequency")
        return cls(
            network=Network(data["network"]),
            name=str(data["name"]),
            band=Band(data["band"]),
            id=data.get("id"),
            url=data.get("url"),
            frequency=float(frequency) if frequency is not None else None,
            logo_url=data.get("logoUrl"),
        )


@dataclass(frozen=True)
class TunableEntry:
    """One (station, band, frequency) combination eligible for sequential tuning."""

    station_id: str
    name: str
    band: Band
    frequency: float
    logo_url: Optional[str] = None

    def to_descriptor(self) -> StationDescriptor:
        return StationDescriptor(
            network=Network.COMMERCIAL,
            id=self.station_id,
            name=self.name,
            band=self.band,
            frequency=self.frequency,
            logo_url=self.logo_url,
        )


@dataclass(frozen=True)
class ChannelPreset:
    """Station assigned to a (region, band, slot) shortcut."""

    region: str
    band: Band
    slot: int  # 1..6
    frequency: float
    station_id: str
    station_name: str

    def __post_init__(self) -> None:
        if not 1 <= self.slot <= 6:
            raise ValueError(f"Preset slot must be between 1 and 6, got {self.slot}")

    def to_descriptor(self) -> StationDescriptor:
        return StationDescriptor(
            network=Network.COMMERCIAL,
            id=self.station_id,
            name=self.station_name,
            band=self.band,
            frequency=self.frequency,
        )


@dataclass(frozen=True)
class AuthSession:
    """Playback token issued by the auth relay."""

    token: str
    region_code: str
    issued_at: float  # Unix timestamp

    def is_fresh(self, now: float, ttl_seconds: float) -> bool:
        return now - self.issued_at < ttl_seconds


@dataclass
class TuningAnimationState:
    """Displayed-frequency animation toward a target station.

    Only exists while an animation runs.
    """

    active: bool
    current_display_freq: float
    target_freq: float
    target_station: StationDescriptor
    direction: int  # +1 or -1


@dataclass(frozen=True)
class CommercialStation:
    """Station entry parsed from the commercial network's station list."""

    id: str
    name: str
    ascii_name: str = ""
    ruby: str = ""
    areafree: bool = False
    timefree: bool = False
    logos: list[str] = field(default_factory=list)
    banner: str = ""
    href: str = ""
    simul_max_delay: int = 0
    tf_max_delay: int = 0

    @property
    def logo_url(self) -> Optional[str]:
        return self.logos[0] if self.logos else None


@dataclass(frozen=True)
class PublicRegion:
    """Per-region stream URLs published by the public broadcaster."""

    areajp: str
    area: str
    apikey: int
    areakey: int
    r1hls: str
    r2hls: str
    fmhls: str


@dataclass(frozen=True)
class MediaPlaylistInfo:
    """Summary of an HLS media playlist."""

    segment_count: int
    target_duration: Optional[float]
    is_live: bool
