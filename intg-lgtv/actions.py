"""
Actions of a LG webOS TV.

Each action name is one variant with a typed input, parsed from the raw invocation input
and mapped onto one or more protocol commands.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from types import MappingProxyType
from typing import Any

from const import (
    Actions,
    Endpoints,
    KEYPRESS_ENDPOINTS,
    POINTER_KEYS,
    Keypress,
)


class ActionError(Exception):
    """An action invocation cannot be performed."""


class UnknownActionError(ActionError):
    """The action name is not supported."""


class ActionInputError(ActionError):
    """The action input is missing, of the wrong type or not in the enumeration."""


class AppNotFoundError(ActionError):
    """No installed app has the requested title."""


class ActionStatus(StrEnum):
    """Status of an action invocation."""

    CREATED = "created"
    PENDING = "pending"
    FINISHED = "finished"
    ERROR = "error"


@dataclass
class ActionInvocation:
    """One request to perform an action."""

    name: str
    input: Any = None
    status: ActionStatus = ActionStatus.CREATED
    error: Exception | None = None

    def start(self) -> None:
        """Mark the invocation as started."""
        self.status = ActionStatus.PENDING

    def finish(self) -> None:
        """Mark the invocation as completed successfully."""
        self.status = ActionStatus.FINISHED

    def fail(self, error: Exception) -> None:
        """Mark the invocation as failed."""
        self.status = ActionStatus.ERROR
        self.error = error


class AppTable:
    """Installed apps of a TV: immutable title to id lookup built from ``listApps``."""

    def __init__(self, apps: Iterable[Mapping[str, Any]]):
        """Build the table. The first app in device order wins for a duplicate title."""
        by_title: dict[str, str] = {}
        by_id: dict[str, str] = {}
        for app in apps:
            app_id = app.get("id")
            title = app.get("title")
            if not app_id or not title:
                continue
            by_title.setdefault(title, app_id)
            by_id.setdefault(app_id, title)
        self._by_title = MappingProxyType(by_title)
        self._by_id = MappingProxyType(by_id)

    @property
    def titles(self) -> list[str]:
        """Return the sorted launchable app titles."""
        return sorted(self._by_title)

    def app_id(self, title: str) -> str:
        """
        Return the app id for a title.

        :raises AppNotFoundError: if no app has that title.
        """
        try:
            return self._by_title[title]
        except KeyError:
            raise AppNotFoundError(f"App not found: {title}") from None

    def title(self, app_id: str | None) -> str | None:
        """Return the title of an app id, or None if it is unknown."""
        if app_id is None:
            return None
        return self._by_id.get(app_id)

    def __len__(self) -> int:
        return len(self._by_title)


@dataclass(frozen=True)
class Request:
    """A single request to the TV."""

    uri: Endpoints
    payload: dict[str, Any] | None = None


@dataclass(frozen=True)
class PointerEvent:
    """One button or click event on the pointer input connection."""

    kind: str
    name: str | None = None


Command = Request | PointerEvent


def _require_str(name: str, value: Any) -> str:
    if not isinstance(value, str) or not value:
        raise ActionInputError(f"{name} requires a non-empty string, got {value!r}")
    return value


@dataclass(frozen=True)
class InsertText:
    """Type text into the focused input field."""

    text: str

    def command(self) -> Command:
        return Request(Endpoints.INSERT_TEXT, {"text": self.text, "replace": 0})


@dataclass(frozen=True)
class DeleteText:
    """Delete characters before the cursor."""

    count: int

    def command(self) -> Command:
        return Request(Endpoints.DELETE_CHARACTERS, {"count": self.count})


@dataclass(frozen=True)
class CreateToast:
    """Show a notification toast."""

    message: str

    def command(self) -> Command:
        return Request(Endpoints.CREATE_TOAST, {"message": self.message})


@dataclass(frozen=True)
class SendKeypress:
    """Press a remote control key."""

    key: Keypress

    def command(self) -> Command:
        if self.key == Keypress.CLICK:
            return PointerEvent("click")
        if self.key in POINTER_KEYS:
            return PointerEvent("button", self.key.value.upper())
        if self.key == Keypress.DELETE:
            return Request(Endpoints.DELETE_CHARACTERS, {"count": 1})
        return Request(KEYPRESS_ENDPOINTS[self.key])


@dataclass(frozen=True)
class TuneToChannel:
    """Switch to a TV channel by number."""

    channel: str

    def command(self) -> Command:
        return Request(Endpoints.OPEN_CHANNEL, {"channelNumber": self.channel})


@dataclass(frozen=True)
class OpenUrl:
    """Open a URL in the TV browser."""

    url: str

    def command(self) -> Command:
        return Request(Endpoints.OPEN, {"target": self.url})


@dataclass(frozen=True)
class LaunchApp:
    """Launch an installed app."""

    app_id: str

    def command(self) -> Command:
        return Request(Endpoints.LAUNCH, {"id": self.app_id})


Action = (
    InsertText
    | DeleteText
    | CreateToast
    | SendKeypress
    | TuneToChannel
    | OpenUrl
    | LaunchApp
)


def parse_action(name: str, value: Any, apps: AppTable) -> Action:
    """
    Validate an invocation input and build the matching action.

    :raises UnknownActionError: for an unsupported action name.
    :raises ActionInputError: for an invalid input.
    :raises AppNotFoundError: if ``launchApp`` names an app that is not installed.
    """
    try:
        action = Actions(name)
    except ValueError:
        raise UnknownActionError(f"Unknown action: {name}") from None

    match action:
        case Actions.INSERT_TEXT:
            return InsertText(_require_str(name, value))
        case Actions.DELETE_TEXT:
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise ActionInputError(f"{name} requires a positive integer")
            return DeleteText(value)
        case Actions.CREATE_TOAST:
            return CreateToast(_require_str(name, value))
        case Actions.SEND_KEYPRESS:
            try:
                return SendKeypress(Keypress(value))
            except ValueError:
                raise ActionInputError(f"Unknown key: {value}") from None
        case Actions.TUNE_TO_CHANNEL:
            return TuneToChannel(_require_str(name, value))
        case Actions.OPEN_URL:
            return OpenUrl(_require_str(name, value))
        case Actions.LAUNCH_APP:
            return LaunchApp(apps.app_id(_require_str(name, value)))
    raise UnknownActionError(f"Unknown action: {name}")
