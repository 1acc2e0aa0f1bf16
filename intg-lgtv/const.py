"""LG webOS TV integration constants."""

from dataclasses import dataclass
from enum import IntEnum, StrEnum

from ucapi.media_player import States as MediaStates

DISCOVERY_INTERVAL = 30
"""Seconds between discovery cycles."""
POLL_INTERVAL = 5
"""Seconds between state polls of a connected TV."""

SSDP_SERVICE = "urn:lge-com:service:webos-second-screen:1"
SSDP_TIMEOUT = 2

UNKNOWN_MAC = "00:00:00:00:00:00"
DEVICE_ID_PREFIX = "lg-tv-"
DEFAULT_NAME = "LG webOS TV"


def device_id(mac_address: str) -> str:
    """Return the externally visible device identifier for a MAC address."""
    return f"{DEVICE_ID_PREFIX}{mac_address}"


@dataclass
class DeviceIdentity:
    """One physical TV as seen by discovery."""

    mac_address: str
    """Stable hardware address, primary key across address changes."""
    address: str
    """Current IP address of the TV. Changes when the DHCP lease rotates."""
    name: str = DEFAULT_NAME
    """Friendly name of the device."""

    @property
    def identifier(self) -> str:
        """Return the device identifier."""
        return device_id(self.mac_address)


class Events(IntEnum):
    """Internal events between the session layer and the integration driver."""

    DEVICE_ADDED = 1
    DEVICE_REMOVED = 2
    UPDATE = 3
    ACTION = 4


class SessionState(IntEnum):
    """Connection state of a TV session."""

    CONNECTING = 0
    CONNECTED = 1
    DISCONNECTED = 2


class Properties(StrEnum):
    """Properties exposed for each TV."""

    ON = "on"
    VOLUME = "volume"
    MUTE = "mute"
    ACTIVE_APP = "activeApp"


class Actions(StrEnum):
    """Actions a TV can perform."""

    INSERT_TEXT = "insertText"
    DELETE_TEXT = "deleteText"
    CREATE_TOAST = "createToast"
    SEND_KEYPRESS = "sendKeypress"
    TUNE_TO_CHANNEL = "tuneToChannel"
    OPEN_URL = "openUrl"
    LAUNCH_APP = "launchApp"


class Keypress(StrEnum):
    """Keypress labels accepted by the sendKeypress action."""

    BACK = "Back"
    CHANNEL_DOWN = "Channel Down"
    CHANNEL_UP = "Channel Up"
    CLICK = "Click"
    DASH = "Dash"
    DELETE = "Delete"
    DOWN = "Down"
    ENTER = "Enter"
    FAST_FORWARD = "Fast Forward"
    HOME = "Home"
    INFO = "Info"
    LEFT = "Left"
    OK = "Ok"
    PAUSE = "Pause"
    PLAY = "Play"
    POWER = "Power"
    REWIND = "Rewind"
    RIGHT = "Right"
    STOP = "Stop"
    UP = "Up"
    VOLUME_DOWN = "Volume Down"
    VOLUME_UP = "Volume Up"


class Endpoints(StrEnum):
    """Second screen API endpoints, relative to ``ssap://``."""

    LIST_APPS = "com.webos.applicationManager/listApps"
    GET_FOREGROUND_APP = "com.webos.applicationManager/getForegroundAppInfo"
    GET_VOLUME = "audio/getVolume"
    SET_VOLUME = "audio/setVolume"
    SET_MUTE = "audio/setMute"
    VOLUME_UP = "audio/volumeUp"
    VOLUME_DOWN = "audio/volumeDown"
    POWER_OFF = "system/turnOff"
    LAUNCH = "system.launcher/launch"
    OPEN = "system.launcher/open"
    CREATE_TOAST = "system.notifications/createToast"
    OPEN_CHANNEL = "tv/openChannel"
    CHANNEL_UP = "tv/channelUp"
    CHANNEL_DOWN = "tv/channelDown"
    INSERT_TEXT = "com.webos.service.ime/insertText"
    DELETE_CHARACTERS = "com.webos.service.ime/deleteCharacters"
    SEND_ENTER = "com.webos.service.ime/sendEnterKey"
    PLAY = "media.controls/play"
    PAUSE = "media.controls/pause"
    STOP = "media.controls/stop"
    REWIND = "media.controls/rewind"
    FAST_FORWARD = "media.controls/fastForward"


KEYPRESS_ENDPOINTS: dict[Keypress, Endpoints] = {
    Keypress.VOLUME_UP: Endpoints.VOLUME_UP,
    Keypress.VOLUME_DOWN: Endpoints.VOLUME_DOWN,
    Keypress.ENTER: Endpoints.SEND_ENTER,
    Keypress.PLAY: Endpoints.PLAY,
    Keypress.STOP: Endpoints.STOP,
    Keypress.PAUSE: Endpoints.PAUSE,
    Keypress.REWIND: Endpoints.REWIND,
    Keypress.FAST_FORWARD: Endpoints.FAST_FORWARD,
    Keypress.POWER: Endpoints.POWER_OFF,
    Keypress.CHANNEL_DOWN: Endpoints.CHANNEL_DOWN,
    Keypress.CHANNEL_UP: Endpoints.CHANNEL_UP,
}

# Keys sent on the pointer input connection instead of as a request.
POINTER_KEYS = frozenset(
    {
        Keypress.CLICK,
        Keypress.LEFT,
        Keypress.RIGHT,
        Keypress.UP,
        Keypress.DOWN,
        Keypress.HOME,
        Keypress.BACK,
        Keypress.OK,
        Keypress.DASH,
        Keypress.INFO,
    }
)

LG_STATE_MAPPING = {
    True: MediaStates.ON,
    False: MediaStates.OFF,
}
