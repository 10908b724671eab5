"""
Radio domain module.

Commercial-network authentication and playlist resolution, station and
frequency directories, the tuning engine, presets and the radio player.
"""

from .auth import AuthRelay, derive_partial_key, parse_region_code
from .client import RelayClient
from .directory import (
    build_tunable_entries,
    parse_frequency_directory,
    parse_public_config,
    parse_station_list,
    public_descriptors,
)
from .exceptions import (
    BadResponse,
    NotFound,
    PlaylistNotFound,
    RadioError,
    StationNotFound,
    UpstreamError,
)
from .history import RecentStations, merge_recent
from .models import (
    BAND_PLANS,
    AuthSession,
    Band,
    BandPlan,
    ChannelPreset,
    CommercialStation,
    MediaPlaylistInfo,
    Network,
    PublicRegion,
    StationDescriptor,
    TunableEntry,
    TuningAnimationState,
)
from .player import RadioPlayer, SourceMode, build_radio_player
from .playlist import PlaylistResolver, parse_master_playlist, parse_media_playlist
from .presets import ChannelPresetStore
from .tuning import (
    TuningEngine,
    TuningJob,
    find_tune_target,
    nearest_entry,
    preset_target,
)

__all__ = [
    # Models
    "BAND_PLANS",
    "AuthSession",
    "Band",
    "BandPlan",
    "ChannelPreset",
    "CommercialStation",
    "MediaPlaylistInfo",
    "Network",
    "PublicRegion",
    "StationDescriptor",
    "TunableEntry",
    "TuningAnimationState",
    # Errors
    "RadioError",
    "UpstreamError",
    "BadResponse",
    "NotFound",
    "PlaylistNotFound",
    "StationNotFound",
    # Auth relay + playlists
    "AuthRelay",
    "derive_partial_key",
    "parse_region_code",
    "PlaylistResolver",
    "parse_master_playlist",
    "parse_media_playlist",
    "RelayClient",
    # Directories
    "parse_station_list",
    "parse_frequency_directory",
    "build_tunable_entries",
    "parse_public_config",
    "public_descriptors",
    # Tuning
    "TuningEngine",
    "TuningJob",
    "find_tune_target",
    "nearest_entry",
    "preset_target",
    # Persistence
    "ChannelPresetStore",
    "RecentStations",
    "merge_recent",
    # Player
    "RadioPlayer",
    "SourceMode",
    "build_radio_player",
]
