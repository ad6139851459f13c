import json
import logging
import os
from typing import Any, Dict, List, Optional

from packaging.version import InvalidVersion, Version

from export_ops.models import DEFAULT_SOFT_FAIL_FOLDERS, ExclusionConfig

logger = logging.getLogger(__name__)

SETTINGS_VERSION = "1.1.0"
PROJECT_SETTINGS_DIR = "ProjectSettings"
SETTINGS_FILE_NAME = "ExportProjectToZipSettings.json"

DEFAULT_FOLDERS_TO_EXCLUDE = [
    ".git",
    ".vs",
    ".vscode",
    "Build",
    "Builds",
    "Library",
    "Logs",
    "obj",
    "Obj",
    "UserSettings",
    "Temp",
]
DEFAULT_TOP_LEVEL_EXTENSIONS_TO_EXCLUDE = [".gitignore", ".sln", ".csproj", ".zip"]
BUILD_FOLDERS = ("Build", "Builds")

# Always excluded, whatever the user configures
MANDATORY_EXCLUDED_FOLDERS = frozenset({".git", "Library", "Logs", "Temp"})
# Structurally required project folders; never excluded
FORBIDDEN_EXCLUDED_FOLDERS = frozenset({"Assets", "Packages", "ProjectSettings"})


class SettingsError(ValueError):
    """A settings change that would break a mandatory or forbidden rule."""


class ExportSettings:
    """
    Loads, validates and saves the export settings of one project.

    The file lives in ``<project>/ProjectSettings/ExportProjectToZipSettings.json``
    unless another path is given. A missing file is created with defaults.
    """

    def __init__(
        self, settings_file: Optional[str] = None, project_path: Optional[str] = None
    ) -> None:
        """
        :param settings_file: Explicit path to the JSON file.
        :param project_path: Project root used to locate the default file
            (defaults to the current directory).
        """
        if settings_file is None:
            project_path = project_path or os.getcwd()
            settings_file = os.path.join(
                project_path, PROJECT_SETTINGS_DIR, SETTINGS_FILE_NAME
            )
        self.settings_file = settings_file
        self._apply({})

        if os.path.isfile(settings_file):
            raw = self._load_json(settings_file)
            if isinstance(raw, dict):
                self._apply(raw)
                self._check_version()
                logger.info("Export settings loaded from '%s'.", settings_file)
            else:
                logger.error(
                    "Export settings at '%s' are invalid; using defaults.",
                    settings_file,
                )
        else:
            logger.info("No export settings found; creating '%s'.", settings_file)
            self.save()

    def _apply(self, raw: Dict[str, Any]) -> None:
        self.version: str = str(raw.get("version", SETTINGS_VERSION))
        self.folders_to_exclude: List[str] = _string_list(
            raw, "folders_to_exclude", DEFAULT_FOLDERS_TO_EXCLUDE
        )
        self.top_level_extensions_to_exclude: List[str] = _string_list(
            raw,
            "top_level_extensions_to_exclude",
            DEFAULT_TOP_LEVEL_EXTENSIONS_TO_EXCLUDE,
        )
        self.should_include_builds: bool = _flag(raw, "should_include_builds", False)
        self.should_name_root_level_folder_with_zip_name: bool = _flag(
            raw, "should_name_root_level_folder_with_zip_name", True
        )
        self.soft_fail_folders: List[str] = _string_list(
            raw, "soft_fail_folders", sorted(DEFAULT_SOFT_FAIL_FOLDERS)
        )

        forbidden = FORBIDDEN_EXCLUDED_FOLDERS.intersection(self.folders_to_exclude)
        if forbidden:
            logger.warning(
                "Ignoring folders that can never be excluded: %s",
                ", ".join(sorted(forbidden)),
            )
            self.folders_to_exclude = [
                name for name in self.folders_to_exclude if name not in forbidden
            ]

    def _load_json(self, path: str) -> Any:
        """
        Loads JSON from the given file path.

        :return: The parsed JSON if valid, otherwise None.
        """
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.error("Error loading JSON file '%s': %s", path, e)
            return None

    def _check_version(self) -> None:
        try:
            if Version(self.version) > Version(SETTINGS_VERSION):
                logger.warning(
                    "Settings file was written by a newer version (%s > %s); "
                    "unknown options are ignored.",
                    self.version,
                    SETTINGS_VERSION,
                )
        except InvalidVersion:
            logger.warning("Settings file has an invalid version number: %s", self.version)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": SETTINGS_VERSION,
            "folders_to_exclude": list(self.folders_to_exclude),
            "top_level_extensions_to_exclude": list(
                self.top_level_extensions_to_exclude
            ),
            "should_include_builds": self.should_include_builds,
            "should_name_root_level_folder_with_zip_name": (
                self.should_name_root_level_folder_with_zip_name
            ),
            "soft_fail_folders": list(self.soft_fail_folders),
        }

    def save(self) -> None:
        """Write the settings file, creating its folder if needed."""
        directory = os.path.dirname(self.settings_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(self.settings_file, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=4)
        logger.debug("Export settings saved to '%s'.", self.settings_file)

    def restore_defaults(self) -> None:
        self._apply({})

    def exclude_folder(self, name: str) -> None:
        name = name.strip().strip("/\\")
        if not name:
            raise SettingsError("Folder name cannot be empty")
        if name in FORBIDDEN_EXCLUDED_FOLDERS:
            raise SettingsError(f"The '{name}' folder can never be excluded")
        if name not in self.folders_to_exclude:
            self.folders_to_exclude.append(name)

    def include_folder(self, name: str) -> None:
        name = name.strip().strip("/\\")
        if name in MANDATORY_EXCLUDED_FOLDERS:
            raise SettingsError(f"The '{name}' folder is always excluded")
        if name in self.folders_to_exclude:
            self.folders_to_exclude.remove(name)

    def exclude_extension(self, extension: str) -> None:
        extension = _as_extension(extension)
        if not extension:
            raise SettingsError("Extension cannot be empty")
        if extension not in self.top_level_extensions_to_exclude:
            self.top_level_extensions_to_exclude.append(extension)

    def include_extension(self, extension: str) -> None:
        extension = _as_extension(extension)
        if extension in self.top_level_extensions_to_exclude:
            self.top_level_extensions_to_exclude.remove(extension)

    def effective_excluded_folders(self) -> List[str]:
        """Configured folders plus mandatory ones, minus builds when included."""
        folders = set(self.folders_to_exclude) | MANDATORY_EXCLUDED_FOLDERS
        if self.should_include_builds:
            folders.difference_update(BUILD_FOLDERS)
        return sorted(folders)

    def to_exclusion_config(self) -> ExclusionConfig:
        """Snapshot these settings for a single export run."""
        return ExclusionConfig(
            excluded_folders=frozenset(self.effective_excluded_folders()),
            excluded_extensions=frozenset(self.top_level_extensions_to_exclude),
            name_root_with_zip_name=self.should_name_root_level_folder_with_zip_name,
            soft_fail_folders=frozenset(self.soft_fail_folders),
        )


def _as_extension(extension: str) -> str:
    extension = extension.strip()
    if extension and not extension.startswith("."):
        extension = f".{extension}"
    return extension


def _string_list(raw: Dict[str, Any], key: str, default: List[str]) -> List[str]:
    """Return ``raw[key]`` if it is a list of strings, otherwise the default."""
    value = raw.get(key, default)
    if isinstance(value, list) and all(isinstance(item, str) for item in value):
        return list(value)
    logger.warning(
        "Setting '%s' must be a list of names, got %r; using the default.", key, value
    )
    return list(default)


def _flag(raw: Dict[str, Any], key: str, default: bool) -> bool:
    value = raw.get(key, default)
    if isinstance(value, bool):
        return value
    logger.warning(
        "Setting '%s' must be true or false, got %r; using the default.", key, value
    )
    return default
