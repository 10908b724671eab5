"""Recently played stations and last selection, persisted in the state store."""

from typing import Optional

from loguru import logger

from car_audio.core.database import StateStore

from .models import StationDescriptor

RECENT_STATIONS_KEY = "recent-stations"
LAST_STATION_KEY = "last-station"
DEFAULT_HISTORY_SIZE = 20


def merge_recent(
    history: list[StationDescriptor],
    station: StationDescriptor,
    limit: int = DEFAULT_HISTORY_SIZE,
) -> list[StationDescriptor]:
    """Put station first, dropping an older entry with the same identity."""
    merged = [station] + [s for s in history if s.identity != station.identity]
    return merged[:limit]


def _decode_stations(raw) -> list[StationDescriptor]:
    if not isinstance(raw, list):
        return []
    stations = []
    for item in raw:
        try:
            stations.append(StationDescriptor.from_dict(item))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.debug(f"Skipping malformed history entry: {e}")
    return stations


class RecentStations:
    """Deduplicated recent-station history plus the last selected station."""

    def __init__(self, store: StateStore, limit: int = DEFAULT_HISTORY_SIZE):
        self.store = store
        self.limit = limit

    def stations(self) -> list[StationDescriptor]:
        return _decode_stations(self.store.get(RECENT_STATIONS_KEY))[: self.limit]

    def record(self, station: StationDescriptor) -> list[StationDescriptor]:
        history = merge_recent(self.stations(), station, self.limit)
        self.store.set(RECENT_STATIONS_KEY, [s.to_dict() for s in history])
        self.store.set(LAST_STATION_KEY, station.to_dict())
        return history

    def last_station(self) -> Optional[StationDescriptor]:
        raw = self.store.get(LAST_STATION_KEY)
        if raw is None:
            return None
        try:
            return StationDescriptor.from_dict(raw)
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            logger.warning(f"Ignoring malformed last station: {e}")
            return None

    def clear(self) -> None:
        self.store.delete(RECENT_STATIONS_KEY)
