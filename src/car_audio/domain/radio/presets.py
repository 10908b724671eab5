"""Channel preset store.

Persists (region, band, slot 1..6) -> station assignments. The stored
shape is {region: {"fm": {"1": {...}}, "am": {...}}}. Entries that do not
decode are treated as unassigned.
"""

from typing import Optional, Union

from loguru import logger

from car_audio.core.database import StateStore

from .models import Band, ChannelPreset, StationDescriptor, TunableEntry

CHANNELS_KEY = "radio-channels-by-area"
PRESET_SLOTS = range(1, 7)


def _validate_slot(slot: int) -> None:
    if slot not in PRESET_SLOTS:
        raise ValueError(f"Preset slot must be between 1 and 6, got {slot}")


class ChannelPresetStore:
    """Preset slots for one region."""

    def __init__(self, store: StateStore, region: str):
        self.store = store
        self.region = region

    def _load_all(self) -> dict:
        data = self.store.get(CHANNELS_KEY)
        return data if isinstance(data, dict) else {}

    def _region_map(self, data: dict) -> dict:
        region_map = data.get(self.region)
        return region_map if isinstance(region_map, dict) else {}

    def _decode(self, band: Band, slot: int, raw) -> Optional[ChannelPreset]:
        if not isinstance(raw, dict):
            return None
        try:
            return ChannelPreset(
                region=self.region,
                band=band,
                slot=slot,
                frequency=float(raw["freq"]),
                station_id=str(raw["stationId"]),
                station_name=str(raw["stationName"]),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.debug(f"Ignoring malformed preset {self.region}/{band.key}/{slot}: {e}")
            return None

    def get(self, band: Band, slot: int) -> Optional[ChannelPreset]:
        _validate_slot(slot)
        band_map = self._region_map(self._load_all()).get(band.key)
        if not isinstance(band_map, dict):
            return None
        return self._decode(band, slot, band_map.get(str(slot)))

    def assigned(self, band: Band) -> list[ChannelPreset]:
        presets = []
        for slot in PRESET_SLOTS:
            preset = self.get(band, slot)
            if preset:
                presets.append(preset)
        return presets

    def assign(
        self, slot: int, station: Union[StationDescriptor, TunableEntry]
    ) -> ChannelPreset:
        """Assign a station to a slot of the station's band, overwriting any previous one."""
        _validate_slot(slot)
        if isinstance(station, TunableEntry):
            station_id, name = station.station_id, station.name
            frequency: Optional[float] = station.frequency
        else:
            station_id, name, frequency = station.id, station.name, station.frequency
        if not station_id or frequency is None:
            raise ValueError("Only tunable stations with an id and frequency can be preset")

        preset = ChannelPreset(
            region=self.region,
            band=station.band,
            slot=slot,
            frequency=frequency,
            station_id=station_id,
            station_name=name,
        )

        data = self._load_all()
        region_map = self._region_map(data)
        band_map = region_map.get(preset.band.key)
        if not isinstance(band_map, dict):
            band_map = {}
        band_map[str(slot)] = {
            "type": preset.band.value,
            "freq": preset.frequency,
            "stationId": preset.station_id,
            "stationName": preset.station_name,
        }
        region_map[preset.band.key] = band_map
        data[self.region] = region_map
        self.store.set(CHANNELS_KEY, data)

        logger.info(
            f"Preset {self.region}/{preset.band.value}/{slot} -> {name} ({frequency})"
        )
        return preset

    def clear(self, band: Band, slot: int) -> None:
        _validate_slot(slot)
        data = self._load_all()
        region_map = self._region_map(data)
        band_map = region_map.get(band.key)
        if isinstance(band_map, dict) and band_map.pop(str(slot), None) is not None:
            region_map[band.key] = band_map
            data[self.region] = region_map
            self.store.set(CHANNELS_KEY, data)
