import json
import logging
import os
import os.path
from dataclasses import dataclass

import jsonschema

from .core.blob_store import StorageError, atomic_write_text, resolve_data_directory
from .core.sorting import DEFAULT_SORT, NO_SORT

logger = logging.getLogger(__name__)

package_path = os.path.dirname(__file__)

PREFERENCES_FILENAME = "preferences.json"
schema_path = os.path.join(package_path, "schemas", "preferences-schema.json")

# Names used by older exports, mapped to the current keys
LEGACY_KEYS = {
    "folderContentsSortPrimary": "sortPrimary",
    "folderContentsSortSecondary": "sortSecondary",
    "folderContentsSortTertiary": "sortTertiary",
    "folderContentsViewType": "viewType",
    "gridSeparateSections": "separateSections",
    "defaultFolderColor": "defaultColor",
}

_FIELD_KEYS = {
    "sort_primary": "sortPrimary",
    "sort_secondary": "sortSecondary",
    "sort_tertiary": "sortTertiary",
    "view_type": "viewType",
    "show_preview_pane": "showPreviewPane",
    "separate_sections": "separateSections",
    "default_color": "defaultColor",
}


@dataclass
class Preferences:
    sort_primary: str = DEFAULT_SORT
    sort_secondary: str = NO_SORT
    sort_tertiary: str = NO_SORT
    view_type: str = "list"
    show_preview_pane: bool = True
    separate_sections: bool = True
    default_color: str | None = None

    def as_dict(self) -> dict[str, str | bool | None]:
        """Preferences under their exported key names; unset color omitted."""
        result = {key: getattr(self, name) for name, key in _FIELD_KEYS.items()}
        if result["defaultColor"] is None:
            del result["defaultColor"]
        return result

    def sort_levels(self) -> tuple[str, str, str]:
        return self.sort_primary, self.sort_secondary, self.sort_tertiary

    @classmethod
    def from_dict(cls, data: dict | None) -> "Preferences":
        """
        Build preferences from a stored or imported dictionary.

        Older key names are accepted. A dictionary that fails schema validation is
        logged and the defaults are used instead.
        """
        if not data:
            return cls()

        data = normalize_preference_keys(data)
        if not validate_preferences(data):
            return cls()

        values = {name: data[key] for name, key in _FIELD_KEYS.items() if key in data}
        return cls(**values)

    def update_from(self, data: dict | None) -> bool:
        """
        Override these preferences with the keys present in ``data``, in place.

        Returns:
            True when anything changed; invalid data changes nothing
        """
        if not data:
            return False
        data = normalize_preference_keys(data)
        if not validate_preferences(data):
            return False
        changed = False
        for name, key in _FIELD_KEYS.items():
            if key in data and getattr(self, name) != data[key]:
                setattr(self, name, data[key])
                changed = True
        return changed


def normalize_preference_keys(data: dict) -> dict:
    normalized = {}
    for key, value in data.items():
        current_key = LEGACY_KEYS.get(key, key)
        # Current names win over legacy ones
        if current_key in normalized and key != current_key:
            continue
        normalized[current_key] = value
    return {key: value for key, value in normalized.items() if value is not None or key == "defaultColor"}


def validate_preferences(data: dict) -> bool:
    with open(schema_path, "r") as schema_file:
        try:
            jsonschema.validate(data, json.load(schema_file))
        except jsonschema.ValidationError as e:
            logger.error(f"Preferences failed to validate against expected schema: {e.message}")
            return False
    return True


def preferences_path(data_dir: str | None = None) -> str:
    return os.path.join(resolve_data_directory(data_dir), PREFERENCES_FILENAME)


def load_preferences(data_dir: str | None = None) -> Preferences:
    """
    Load preferences from the data directory.

    A missing file gives the defaults; an unreadable or invalid file is logged and
    gives the defaults too.
    """
    path = preferences_path(data_dir)
    if not os.path.exists(path):
        logger.info(f"No preferences found at {path}, using defaults")
        return Preferences()

    try:
        with open(path, "r", encoding="utf-8") as preferences_file:
            data = json.load(preferences_file)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning(f"Failed to read preferences from {path}, using defaults: {e}")
        return Preferences()

    if not isinstance(data, dict):
        logger.warning(f"Preferences in {path} are not an object, using defaults")
        return Preferences()

    return Preferences.from_dict(data)


def save_preferences(preferences: Preferences, data_dir: str | None = None) -> str:
    """
    Write preferences to the data directory.

    Returns:
        Path of the preferences file

    Raises:
        StorageError: If the file cannot be written
    """
    path = preferences_path(data_dir)
    try:
        os.makedirs(os.path.dirname(path), exist_ok=True)
    except OSError as e:
        raise StorageError(f"Failed to create preferences directory: {e}")
    atomic_write_text(path, json.dumps(preferences.as_dict(), indent=2))
    logger.info(f"Saved preferences to {path}")
    return path
