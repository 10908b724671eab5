"""Station and frequency directories.

Parses the commercial network's station list, the static frequency
directory and the public broadcaster's stream config, and derives the
sorted list of tunable entries.
"""

from typing import Any, Iterable, Optional
from xml.etree import ElementTree

from loguru import logger

from .exceptions import BadResponse
from .models import (
    Band,
    CommercialStation,
    Network,
    PublicRegion,
    StationDescriptor,
    TunableEntry,
)

PUBLIC_CONFIG_URL = "https://www.nhk.or.jp/radio/config/config_web.xml"


def _text(node: ElementTree.Element, tag: str, default: str = "") -> str:
    child = node.find(tag)
    if child is None or child.text is None:
        return default
    return child.text.strip()


def _int(node: ElementTree.Element, tag: str) -> int:
    try:
        return int(_text(node, tag, "0"))
    except ValueError:
        return 0


def _parse_xml(xml_text: str, what: str) -> ElementTree.Element:
    try:
        return ElementTree.fromstring(xml_text)
    except ElementTree.ParseError as e:
        raise BadResponse(f"Malformed {what} XML: {e}") from e


def parse_station_list(xml_text: str) -> list[CommercialStation]:
    """Parse <station> elements from a station/list/<region>.xml document.

    Raises:
        BadResponse: If the document is not well-formed XML
    """
    root = _parse_xml(xml_text, "station list")
    stations = []
    for node in root.iter("station"):
        station_id = _text(node, "id")
        if not station_id:
            logger.debug("Skipping station entry without id")
            continue
        stations.append(
            CommercialStation(
                id=station_id,
                name=_text(node, "name"),
                ascii_name=_text(node, "ascii_name"),
                ruby=_text(node, "ruby"),
                areafree=_int(node, "areafree") == 1,
                timefree=_int(node, "timefree") == 1,
                logos=[(logo.text or "").strip() for logo in node.iter("logo")],
                banner=_text(node, "banner"),
                href=_text(node, "href"),
                simul_max_delay=_int(node, "simul_max_delay"),
                tf_max_delay=_int(node, "tf_max_delay"),
            )
        )
    return stations


def parse_frequency_directory(data: Any) -> dict[str, dict]:
    """Validate a frequency directory mapping.

    Entries with an unexpected shape are dropped rather than failing the
    whole directory.

    Raises:
        BadResponse: If the top level is not a mapping
    """
    if not isinstance(data, dict):
        raise BadResponse("Frequency directory must be a JSON object")

    directory: dict[str, dict] = {}
    for station_id, entry in data.items():
        if not isinstance(entry, dict):
            logger.debug(f"Dropping frequency entry for {station_id}: not an object")
            continue
        cleaned = {"type": entry.get("type")}
        for key in ("frequencies_fm", "frequencies_am"):
            areas = entry.get(key) or []
            cleaned[key] = [
                area
                for area in areas
                if isinstance(area, dict)
                and isinstance(area.get("frequency"), (int, float))
            ]
        directory[station_id] = cleaned
    return directory


def _pick_area(areas: list[dict], region: Optional[str]) -> Optional[dict]:
    primaries = [area for area in areas if area.get("primary")]
    if region:
        for area in primaries:
            if region in (area.get("area") or []):
                return area
    return primaries[0] if primaries else None


def build_tunable_entries(
    stations: Iterable[CommercialStation],
    frequencies: dict[str, dict],
    region: Optional[str] = None,
) -> list[TunableEntry]:
    """Derive the tunable list: one entry per (station, band), FM first, by frequency."""
    entries: list[TunableEntry] = []
    for station in stations:
        freq_data = frequencies.get(station.id)
        if not freq_data:
            continue
        for band, key in ((Band.FM, "frequencies_fm"), (Band.AM, "frequencies_am")):
            area = _pick_area(freq_data.get(key) or [], region)
            if area is None:
                continue
            entries.append(
                TunableEntry(
                    station_id=station.id,
                    name=station.name,
                    band=band,
                    frequency=float(area["frequency"]),
                    logo_url=station.logo_url,
                )
            )

    entries.sort(key=lambda e: (0 if e.band is Band.FM else 1, e.frequency))
    return entries


def parse_public_config(xml_text: str) -> list[PublicRegion]:
    """Parse stream_url/data entries from the public broadcaster's config XML.

    Raises:
        BadResponse: If the document is not well-formed XML
    """
    root = _parse_xml(xml_text, "public broadcaster config")
    regions = []
    for stream_url in root.iter("stream_url"):
        for node in stream_url.findall("data"):
            regions.append(
                PublicRegion(
                    areajp=_text(node, "areajp"),
                    area=_text(node, "area"),
                    apikey=_int(node, "apikey"),
                    areakey=_int(node, "areakey"),
                    r1hls=_text(node, "r1hls"),
                    r2hls=_text(node, "r2hls"),
                    fmhls=_text(node, "fmhls"),
                )
            )
    return regions


def public_descriptors(region: PublicRegion) -> list[StationDescriptor]:
    """Two AM-equivalent channels and one FM channel for a region."""
    channels = [
        ("R1", Band.AM, region.r1hls),
        ("R2", Band.AM, region.r2hls),
        ("FM", Band.FM, region.fmhls),
    ]
    return [
        StationDescriptor(
            network=Network.PUBLIC,
            name=f"{label} {region.areajp}".strip(),
            band=band,
            url=url,
        )
        for label, band, url in channels
        if url
    ]
