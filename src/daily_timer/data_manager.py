"""
Data Manager for Daily Timer

Handles JSON persistence of the participant roster and application
settings, plus the CRUD operations used by the roster editor.
"""

import json
import logging
import uuid
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional


DEFAULT_TIMER_SECONDS = 90
DEFAULT_PARTICIPANT_NAMES = ("Alice", "Bob", "Charlie")
NEW_PARTICIPANT_NAME = "New User"
APP_VERSION = "1.0.0"

logger = logging.getLogger(__name__)


class DataManagerError(Exception):
    """Base exception for DataManager operations"""
    pass


class DataFileCorruptedError(DataManagerError):
    """Raised when the data file or its roster cannot be decoded"""

    def __init__(self, message: str, settings: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        # Settings that were still readable when only the roster was broken
        self.settings = settings


class DataSaveError(DataManagerError):
    """Raised when saving data fails"""
    pass


class DataValidationError(DataManagerError):
    """Raised when data validation fails"""
    pass


def _new_id() -> str:
    return str(uuid.uuid4())


@dataclass
class Participant:
    """A roster entry taking part in the daily"""
    name: str
    selected: bool = True
    is_admin: bool = False
    id: str = field(default_factory=_new_id)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "isSelected": self.selected,
            "isAdmin": self.is_admin
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Participant':
        if not isinstance(data, dict):
            raise DataFileCorruptedError(f"Participant record must be an object, got {type(data).__name__}")
        name = data.get("name")
        if not isinstance(name, str):
            raise DataFileCorruptedError(f"Participant record has no valid name: {data!r}")

        # Older files used "selected" instead of "isSelected"
        selected = data.get("isSelected", data.get("selected", True))
        is_admin = data.get("isAdmin", False)
        if not isinstance(selected, bool) or not isinstance(is_admin, bool):
            raise DataFileCorruptedError(f"Participant record has non-boolean flags: {data!r}")

        return cls(
            id=str(data.get("id") or _new_id()),
            name=name,
            selected=selected,
            is_admin=is_admin
        )


def default_roster() -> List[Participant]:
    """Built-in roster used when nothing usable is persisted"""
    return [Participant(name=name) for name in DEFAULT_PARTICIPANT_NAMES]


class DataManager:
    """Owns the roster and settings and persists them to a JSON file"""

    def __init__(self, data_file: str = "data/daily_timer.json"):
        if data_file == "data/daily_timer.json":
            # Use path relative to the package directory
            data_file = Path(__file__).parent.parent / "data" / "daily_timer.json"
        self.data_file = Path(data_file)
        self._subscribers: List[Callable[[], None]] = []
        self.settings: Dict[str, Any] = {}
        self.participants: List[Participant] = []
        self.reload()

    # Loading
    def reload(self):
        """Re-read the data file, falling back to defaults on any decode failure"""
        data = self._load_or_create_data()
        self.settings = data["settings"]
        self.participants = data["participants"]
        self._notify()

    def _load_or_create_data(self) -> Dict[str, Any]:
        """Load existing data or create defaults, recovering from backup when possible"""
        backup_file = self.data_file.with_suffix('.bak')
        salvaged_settings = None

        if self.data_file.exists():
            try:
                return self._read_file(self.data_file)
            except DataFileCorruptedError as e:
                logger.error(f"Error loading data file {self.data_file}: {e}")
                salvaged_settings = e.settings
            except IOError as e:
                logger.error(f"Error loading data file {self.data_file}: {e}")
        elif not backup_file.exists():
            logger.info("No data file found, using default roster")
            return self._create_default_data()

        if backup_file.exists():
            try:
                logger.info(f"Attempting recovery from backup file {backup_file}")
                data = self._read_file(backup_file)
                backup_file.replace(self.data_file)
                logger.info("Successfully recovered data from backup")
                return data
            except (DataFileCorruptedError, IOError) as backup_e:
                logger.error(f"Backup file also unusable: {backup_e}")

        logger.info("Using default roster due to unreadable data files")
        data = self._create_default_data()
        if salvaged_settings is not None:
            data["settings"] = salvaged_settings
        return data

    def _read_file(self, path: Path) -> Dict[str, Any]:
        with open(path, 'r', encoding='utf-8') as f:
            try:
                raw = json.load(f)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise DataFileCorruptedError(f"Invalid JSON in {path}: {e}") from e
        return self._validate_and_migrate_data(raw)

    def _validate_and_migrate_data(self, raw: Any) -> Dict[str, Any]:
        """Turn a decoded document into settings and participants"""
        if not isinstance(raw, dict):
            raise DataFileCorruptedError("Data file root must be an object")

        defaults = self._create_default_data()
        settings = raw.get("settings")
        if not isinstance(settings, dict):
            settings = {}
        for key, value in defaults["settings"].items():
            settings.setdefault(key, value)

        timer_seconds = settings.get("timerSeconds")
        if not isinstance(timer_seconds, int) or isinstance(timer_seconds, bool) or timer_seconds < 0:
            logger.warning(f"Ignoring invalid timerSeconds setting: {timer_seconds!r}")
            settings["timerSeconds"] = DEFAULT_TIMER_SECONDS

        user_list = raw.get("userList")
        if user_list is None:
            logger.info("No roster stored, using default roster")
            participants = defaults["participants"]
        else:
            try:
                participants = self._decode_roster(user_list)
            except DataFileCorruptedError as e:
                # Let the caller try the backup before settling for defaults
                raise DataFileCorruptedError(f"Stored roster is undecodable: {e}", settings=settings) from e

        return {"settings": settings, "participants": participants}

    def _decode_roster(self, user_list: Any) -> List[Participant]:
        if not isinstance(user_list, list):
            raise DataFileCorruptedError("userList must be a list")

        participants = []
        seen_ids = set()
        for record in user_list:
            participant = Participant.from_dict(record)
            if participant.id in seen_ids:
                logger.warning(f"Duplicate participant id {participant.id}, assigning a new one")
                participant.id = _new_id()
            seen_ids.add(participant.id)
            participants.append(participant)
        return participants

    def _create_default_data(self) -> Dict[str, Any]:
        return {
            "settings": {
                "appVersion": APP_VERSION,
                "timerSeconds": DEFAULT_TIMER_SECONDS
            },
            "participants": default_roster()
        }

    # Saving
    def _prepare_data_for_json(self) -> Dict[str, Any]:
        return {
            "settings": dict(self.settings, appVersion=APP_VERSION),
            "userList": [p.to_dict() for p in self.participants]
        }

    def _write_data(self):
        """Write the data file atomically, keeping the previous file as backup"""
        temp_file = self.data_file.with_suffix('.tmp')
        backup_file = self.data_file.with_suffix('.bak')

        try:
            payload = json.dumps(self._prepare_data_for_json(), indent=2, ensure_ascii=False)
            self.data_file.parent.mkdir(parents=True, exist_ok=True)

            with open(temp_file, 'w', encoding='utf-8') as f:
                f.write(payload)

            if self.data_file.exists():
                self.data_file.replace(backup_file)
            temp_file.replace(self.data_file)

        except (TypeError, ValueError) as e:
            raise DataSaveError(f"Failed to serialize data: {e}") from e
        except OSError as e:
            raise DataSaveError(f"Failed to save data due to I/O error: {e}") from e
        finally:
            if temp_file.exists():
                try:
                    temp_file.unlink()
                except OSError as cleanup_e:
                    logger.error(f"Failed to clean up temporary file {temp_file}: {cleanup_e}")

    def save_data(self) -> bool:
        """Best-effort save; failures are logged and reported as False"""
        try:
            self._write_data()
            return True
        except DataSaveError as e:
            logger.warning(f"Could not persist data to {self.data_file}: {e}")
            return False

    # Observers
    def subscribe(self, callback: Callable[[], None]):
        if callback not in self._subscribers:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Callable[[], None]):
        if callback in self._subscribers:
            self._subscribers.remove(callback)

    def _notify(self):
        for callback in list(self._subscribers):
            callback()

    def _commit(self):
        """Persist and notify after a mutation"""
        self.save_data()
        self._notify()

    # Participant queries
    def get_participants(self) -> List[Participant]:
        """Get copies of all participants in roster order"""
        return [replace(p) for p in self.participants]

    def get_selected_participants(self) -> List[Participant]:
        return [replace(p) for p in self.participants if p.selected]

    def get_participant(self, participant_id: str) -> Optional[Participant]:
        found = self._find(participant_id)
        return replace(found) if found else None

    def _find(self, participant_id: str) -> Optional[Participant]:
        for participant in self.participants:
            if participant.id == participant_id:
                return participant
        return None

    # Roster editing
    def add_participant(self, name: str = NEW_PARTICIPANT_NAME) -> Participant:
        """Append a new selected, non-admin participant"""
        participant = Participant(name=name)
        self.participants.append(participant)
        logger.info(f"Added participant '{name}' ({participant.id})")
        self._commit()
        return replace(participant)

    def rename_participant(self, participant_id: str, name: str) -> bool:
        participant = self._find(participant_id)
        if participant is None:
            return False
        if participant.name != name:
            participant.name = name
            self._commit()
        return True

    def set_selected(self, participant_id: str, selected: bool) -> bool:
        participant = self._find(participant_id)
        if participant is None:
            return False
        participant.selected = bool(selected)
        self._commit()
        return True

    def set_admin(self, participant_id: str, is_admin: bool) -> bool:
        participant = self._find(participant_id)
        if participant is None:
            return False
        participant.is_admin = bool(is_admin)
        self._commit()
        return True

    def toggle_admin(self, participant_id: str) -> bool:
        participant = self._find(participant_id)
        if participant is None:
            return False
        return self.set_admin(participant_id, not participant.is_admin)

    def delete_participants(self, indices: Iterable[int]) -> int:
        """Delete participants at the given roster positions; returns how many were removed"""
        doomed = {i for i in indices if 0 <= i < len(self.participants)}
        if not doomed:
            return 0

        for i in doomed:
            logger.info(f"Deleting participant '{self.participants[i].name}' ({self.participants[i].id})")
        self.participants = [p for i, p in enumerate(self.participants) if i not in doomed]
        self._commit()
        return len(doomed)

    def move_participants(self, indices: Iterable[int], destination: int) -> bool:
        """
        Move the participants at `indices` so they land before the element
        originally at `destination`. Moved items keep their relative order;
        a destination equal to the roster length appends them.
        """
        count = len(self.participants)
        source = sorted({i for i in indices if 0 <= i < count})
        if not source:
            return False
        destination = max(0, min(destination, count))

        moving = [self.participants[i] for i in source]
        remaining = [p for i, p in enumerate(self.participants) if i not in source]
        insert_at = destination - sum(1 for i in source if i < destination)
        reordered = remaining[:insert_at] + moving + remaining[insert_at:]

        if reordered == self.participants:
            return False
        self.participants = reordered
        self._commit()
        return True

    # Settings
    def get_setting(self, key: str, default=None):
        return self.settings.get(key, default)

    def set_setting(self, key: str, value):
        self.settings[key] = value
        self._commit()

    def get_timer_seconds(self) -> int:
        return self.settings.get("timerSeconds", DEFAULT_TIMER_SECONDS)

    def set_timer_seconds(self, seconds: int):
        """Set the per-participant countdown length"""
        if not isinstance(seconds, int) or isinstance(seconds, bool) or seconds < 0:
            raise DataValidationError(f"Timer seconds must be a non-negative integer, got {seconds!r}")
        if seconds != self.get_timer_seconds():
            self.set_setting("timerSeconds", seconds)
