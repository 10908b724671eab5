"""
Hotkey bindings persistence.

Only the action -> key table is handled here; dispatching key events is
the UI's job.
"""

from loguru import logger

from car_audio.core.database import StateStore

# Bumped when actions were added; older tables are discarded for defaults
HOTKEY_BINDINGS_KEY = "hotkey-bindings-v2"

DEFAULT_HOTKEY_BINDINGS: dict[str, str] = {
    "playPause": "space",
    "stop": "s",
    "prevOrTuneDown": "arrowleft",
    "nextOrTuneUp": "arrowright",
    "volumeUp": "arrowup",
    "volumeDown": "arrowdown",
    "mute": "m",
    "seekBack": "j",
    "seekForward": "l",
    "togglePiP": "i",
    "toggleFullscreen": "f",
    "modeFile": "e",
    "modeRadio": "r",
    "modeScreen": "t",
    "modeAux": "y",
    "openSettings": "/",
}

# Digits are reserved for the preset slots
RESERVED_KEYS = frozenset(str(slot) for slot in range(1, 7))

_KEY_NAMES = {
    " ": "space",
    "ArrowLeft": "arrowleft",
    "ArrowRight": "arrowright",
    "ArrowUp": "arrowup",
    "ArrowDown": "arrowdown",
    "Enter": "enter",
    "Escape": "escape",
    "Backspace": "backspace",
    "Tab": "tab",
    "Delete": "delete",
}

_DISPLAY_NAMES = {
    "space": "Space",
    "arrowleft": "←",
    "arrowright": "→",
    "arrowup": "↑",
    "arrowdown": "↓",
    "enter": "Enter",
    "escape": "Esc",
    "backspace": "Backspace",
    "tab": "Tab",
    "delete": "Delete",
}


def normalize_key(key: str) -> str:
    """Map a platform key name to the stored binding name."""
    return _KEY_NAMES.get(key, key.lower())


def display_key(key: str) -> str:
    return _DISPLAY_NAMES.get(key, key.upper())


def load_bindings(store: StateStore) -> dict[str, str]:
    """Stored bindings merged over the defaults; bad entries are ignored."""
    bindings = dict(DEFAULT_HOTKEY_BINDINGS)
    stored = store.get(HOTKEY_BINDINGS_KEY)
    if stored is None:
        return bindings
    if not isinstance(stored, dict):
        logger.warning("Ignoring malformed hotkey bindings")
        return bindings

    overridden = set()
    for action, key in stored.items():
        if action in bindings and isinstance(key, str) and key and key not in RESERVED_KEYS:
            bindings[action] = key
            overridden.add(action)

    # Defaults are unique, so every clash involves at least one stored key
    while True:
        actions_by_key: dict[str, list[str]] = {}
        for action, key in bindings.items():
            actions_by_key.setdefault(key, []).append(action)
        clashing = {
            action
            for actions in actions_by_key.values()
            if len(actions) > 1
            for action in actions
            if action in overridden
        }
        if not clashing:
            return bindings
        logger.warning(f"Ignoring stored hotkeys bound twice: {sorted(clashing)}")
        for action in clashing:
            bindings[action] = DEFAULT_HOTKEY_BINDINGS[action]
            overridden.discard(action)


def save_bindings(store: StateStore, bindings: dict[str, str]) -> dict[str, str]:
    """Persist bindings for known actions.

    Raises:
        ValueError: On an unknown action, a reserved key, or a key bound twice
    """
    unknown = set(bindings) - set(DEFAULT_HOTKEY_BINDINGS)
    if unknown:
        raise ValueError(f"Unknown hotkey actions: {sorted(unknown)}")

    merged = {**DEFAULT_HOTKEY_BINDINGS, **bindings}
    reserved = {action for action, key in merged.items() if key in RESERVED_KEYS}
    if reserved:
        raise ValueError(f"Keys 1-6 are reserved for presets: {sorted(reserved)}")

    seen: dict[str, str] = {}
    for action, key in merged.items():
        if key in seen:
            raise ValueError(f"Key '{key}' bound to both {seen[key]} and {action}")
        seen[key] = action

    store.set(HOTKEY_BINDINGS_KEY, merged)
    return merged
