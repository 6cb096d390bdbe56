"""Data models for Sitewrap.

This module defines the domain models using dataclasses, together with
their conversion to and from the plain dictionaries stored as TOML.
"""

from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional
from uuid import UUID, uuid4

from ..utils.validators import InvalidUrlError, host_of, normalize_url, origin_for
from ..utils.xdg import build_icon_id

DEFAULT_WEBAPP_NAME = "Web App"


class ModelError(ValueError):
    """Raised when stored data does not describe a valid model."""

    pass


def utc_now() -> datetime:
    """Current time in UTC, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(microsecond=0)


def format_timestamp(value: datetime) -> str:
    """Serialize a timestamp as RFC 3339 in UTC (``...Z``)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat().replace("+00:00", "Z")


def parse_timestamp(value: Any) -> datetime:
    """Parse an RFC 3339 string (or a TOML datetime) into an aware datetime.

    Raises:
        ModelError: If the value is not a valid timestamp
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
        except ValueError as e:
            raise ModelError(f"Invalid timestamp: {value!r}") from e
    else:
        raise ModelError(f"Invalid timestamp: {value!r}")

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class PermissionState(str, Enum):
    """Decision stored for one permission of one origin."""

    ASK = "ask"
    ALLOW = "allow"
    BLOCK = "block"

    @classmethod
    def parse(cls, value: Any) -> "PermissionState":
        if isinstance(value, PermissionState):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError as e:
            raise ModelError(f"Invalid permission state: {value!r}") from e

    @property
    def label(self) -> str:
        return self.value.capitalize()


class PermissionKind(str, Enum):
    """Permissions tracked per origin."""

    NOTIFICATIONS = "notifications"
    CAMERA = "camera"
    MICROPHONE = "microphone"
    LOCATION = "location"

    @property
    def label(self) -> str:
        return self.value.capitalize()


@dataclass
class PerOriginPermissions:
    """Permission decisions for a single origin.

    Attributes:
        notifications: Web notifications
        camera: Camera capture
        microphone: Microphone capture
        location: Geolocation
    """

    notifications: PermissionState = PermissionState.ASK
    camera: PermissionState = PermissionState.ASK
    microphone: PermissionState = PermissionState.ASK
    location: PermissionState = PermissionState.ASK

    def get(self, kind: PermissionKind) -> PermissionState:
        return getattr(self, PermissionKind(kind).value)

    def set(self, kind: PermissionKind, state: PermissionState) -> None:
        setattr(self, PermissionKind(kind).value, PermissionState.parse(state))

    def to_dict(self) -> Dict[str, str]:
        return {f.name: getattr(self, f.name).value for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Any) -> "PerOriginPermissions":
        """Build from a stored table; missing keys default to ``ask``."""
        if not isinstance(data, dict):
            raise ModelError(f"Expected a table of permissions, got {data!r}")

        values = {}
        for f in fields(cls):
            if f.name in data:
                values[f.name] = PermissionState.parse(data[f.name])
        return cls(**values)


@dataclass
class PermissionStore:
    """All permission decisions of one webapp, keyed by origin."""

    origins: Dict[str, PerOriginPermissions] = field(default_factory=dict)

    def get_or_default(self, origin: str) -> PerOriginPermissions:
        """Return the entry for ``origin``, inserting defaults if absent."""
        entry = self.origins.get(origin)
        if entry is None:
            entry = PerOriginPermissions()
            self.origins[origin] = entry
        return entry

    def sorted_origins(self) -> List[str]:
        return sorted(self.origins)

    def to_dict(self) -> Dict[str, Dict[str, str]]:
        return {origin: self.origins[origin].to_dict() for origin in self.sorted_origins()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PermissionStore":
        return cls(
            origins={
                str(origin): PerOriginPermissions.from_dict(entry)
                for origin, entry in data.items()
            }
        )


@dataclass
class BehaviorConfig:
    """Per-webapp behavior switches.

    Attributes:
        open_external_links: Hand cross-origin navigations to the desktop
        show_navigation: Show back/forward/reload controls in the shell
    """

    open_external_links: bool = True
    show_navigation: bool = False

    def to_dict(self) -> Dict[str, bool]:
        return {
            "open_external_links": self.open_external_links,
            "show_navigation": self.show_navigation,
        }

    @classmethod
    def from_dict(cls, data: Any) -> "BehaviorConfig":
        if data is None:
            return cls()
        if not isinstance(data, dict):
            raise ModelError(f"Expected a behavior table, got {data!r}")

        config = cls()
        for key in ("open_external_links", "show_navigation"):
            if key in data:
                if not isinstance(data[key], bool):
                    raise ModelError(f"Behavior flag {key} must be a boolean")
                setattr(config, key, data[key])
        return config


@dataclass
class WebAppDefinition:
    """Represents a web application.

    ``primary_origin`` is derived from ``start_url``; use
    :meth:`set_start_url` so both stay in step.

    Attributes:
        id: Unique identifier (UUID4), immutable
        name: Display name
        start_url: Normalized absolute http(s) URL
        primary_origin: Origin of ``start_url``
        icon_id: Prefix of the cached icons and the launcher id
        created_at: Creation time (UTC)
        last_launched_at: Time of the last launch (None if never launched)
        behavior: Behavior switches
    """

    id: UUID
    name: str
    start_url: str
    primary_origin: str
    icon_id: str
    created_at: datetime = field(default_factory=utc_now)
    last_launched_at: Optional[datetime] = None
    behavior: BehaviorConfig = field(default_factory=BehaviorConfig)

    @staticmethod
    def generate_id() -> UUID:
        """Generate a unique UUID for a new webapp."""
        return uuid4()

    @staticmethod
    def default_name(start_url: str, name: str = "") -> str:
        """Return the trimmed name, or the URL host when it is empty."""
        cleaned = (name or "").strip()
        if cleaned:
            return cleaned
        return host_of(start_url) or DEFAULT_WEBAPP_NAME

    @classmethod
    def new(
        cls,
        name: str,
        url: str,
        behavior: Optional[BehaviorConfig] = None,
    ) -> "WebAppDefinition":
        """Create a definition for a new webapp.

        Args:
            name: Display name; empty means "use the host"
            url: URL as typed by the user
            behavior: Behavior switches (defaults if None)

        Returns:
            New WebAppDefinition

        Raises:
            InvalidUrlError: If the URL is not valid
        """
        start_url = normalize_url(url)
        webapp_id = cls.generate_id()
        return cls(
            id=webapp_id,
            name=cls.default_name(start_url, name),
            start_url=start_url,
            primary_origin=origin_for(start_url),
            icon_id=build_icon_id(str(webapp_id)),
            behavior=behavior or BehaviorConfig(),
        )

    def set_start_url(self, url: str) -> bool:
        """Normalize and store a new start URL, recomputing the origin.

        Returns:
            True if the stored start URL changed
        """
        start_url = normalize_url(url)
        changed = start_url != self.start_url
        self.start_url = start_url
        self.primary_origin = origin_for(start_url)
        return changed

    def set_name(self, name: str) -> None:
        self.name = self.default_name(self.start_url, name)

    def mark_launched(self, when: Optional[datetime] = None) -> None:
        self.last_launched_at = when or utc_now()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": str(self.id),
            "name": self.name,
            "start_url": self.start_url,
            "primary_origin": self.primary_origin,
            "icon_id": self.icon_id,
            "created_at": format_timestamp(self.created_at),
        }
        # TOML has no null; absence means "never launched"
        if self.last_launched_at is not None:
            data["last_launched_at"] = format_timestamp(self.last_launched_at)
        data["behavior"] = self.behavior.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WebAppDefinition":
        """Build a definition from a stored table.

        Raises:
            ModelError: If a field is missing or invalid
        """
        try:
            webapp_id = UUID(str(data["id"]))
            name = data["name"]
            start_url = data["start_url"]
            created_at = parse_timestamp(data["created_at"])
        except KeyError as e:
            raise ModelError(f"Missing field: {e.args[0]}") from e
        except ValueError as e:
            raise ModelError(str(e)) from e

        if not isinstance(name, str) or not isinstance(start_url, str):
            raise ModelError("Fields name and start_url must be strings")

        try:
            primary_origin = origin_for(start_url)
        except InvalidUrlError as e:
            raise ModelError(str(e)) from e

        last_launched = data.get("last_launched_at")
        return cls(
            id=webapp_id,
            name=name,
            start_url=start_url,
            primary_origin=primary_origin,
            icon_id=build_icon_id(str(webapp_id)),
            created_at=created_at,
            last_launched_at=parse_timestamp(last_launched) if last_launched else None,
            behavior=BehaviorConfig.from_dict(data.get("behavior")),
        )

    @property
    def last_launched_label(self) -> str:
        if self.last_launched_at is None:
            return "Never"
        return format_timestamp(self.last_launched_at)

