"""
Remote entity functions.

:license: Mozilla Public License Version 2.0, see LICENSE for more details.
"""

import asyncio
import logging
from typing import Any

from const import Actions, Keypress, Properties
from media_player import action_status, write_property
from tv import LgTv
from ucapi import EntityTypes, Remote, StatusCodes
from ucapi.remote import Attributes, Commands, Features
from ucapi.remote import States as RemoteStates
from ucapi.ui import Buttons, DeviceButtonMapping
from ucapi_framework import create_entity_id

_LOG = logging.getLogger(__name__)

LG_REMOTE_STATE_MAPPING = {
    True: RemoteStates.ON,
    False: RemoteStates.OFF,
}

# send_cmd prefixes for actions taking a free-form input
COMMAND_PREFIXES = {
    "app": Actions.LAUNCH_APP,
    "text": Actions.INSERT_TEXT,
    "delete": Actions.DELETE_TEXT,
    "toast": Actions.CREATE_TOAST,
    "channel": Actions.TUNE_TO_CHANNEL,
    "url": Actions.OPEN_URL,
}


def parse_command(command: str) -> tuple[str, Any]:
    """
    Map a ``send_cmd`` command onto an action name and input.

    ``app:Netflix`` launches an app, ``delete:3`` deletes three characters, anything
    without a known prefix is a keypress label.
    """
    prefix, sep, argument = command.partition(":")
    action = COMMAND_PREFIXES.get(prefix.lower()) if sep else None
    if action is None:
        return Actions.SEND_KEYPRESS, command
    if action == Actions.DELETE_TEXT:
        try:
            return action, int(argument)
        except ValueError:
            return action, argument
    return action, argument


def remote_attributes(update: dict[str, Any]) -> dict[str, Any]:
    """Map changed TV properties onto remote attributes."""
    if Properties.ON in update:
        return {Attributes.STATE: LG_REMOTE_STATE_MAPPING[bool(update[Properties.ON])]}
    return {}


class LgTvRemote(Remote):
    """Representation of a LG webOS TV Remote entity."""

    def __init__(self, device: LgTv):
        """Initialize the class."""
        self._device = device
        _LOG.debug("LgTv Remote init")
        entity_id = create_entity_id(EntityTypes.REMOTE, device.identifier)
        features = [Features.SEND_CMD, Features.ON_OFF, Features.TOGGLE]
        super().__init__(
            entity_id,
            f"{device.name} Remote",
            features,
            attributes={
                Attributes.STATE: LG_REMOTE_STATE_MAPPING[
                    bool(device.value(Properties.ON))
                ],
            },
            simple_commands=LG_REMOTE_SIMPLE_COMMANDS,
            button_mapping=LG_REMOTE_BUTTONS_MAPPING,
            ui_pages=LG_REMOTE_UI_PAGES,
            cmd_handler=self.command,
        )

    def bind(self, device: LgTv) -> None:
        """Route commands to a new session of the same TV."""
        self._device = device
        self.attributes.update(remote_attributes(device.values))

    def get_int_param(self, param: str, params: dict[str, Any], default: int):
        """Get parameter in integer format."""
        try:
            value = params.get(param, default)
        except AttributeError:
            return default

        if isinstance(value, int):
            return value
        if isinstance(value, str) and len(value) > 0:
            try:
                return int(float(value))
            except ValueError:
                return default
        return default

    async def command(
        self, cmd_id: str, params: dict[str, Any] | None = None
    ) -> StatusCodes:
        """
        Remote entity command handler.

        Called by the integration-API if a command is sent to a configured remote entity.

        :param cmd_id: command
        :param params: optional command parameters
        :return: status code of the command request
        """
        _LOG.info("Got %s command request: %s %s", self.id, cmd_id, params)

        if self._device is None:
            _LOG.warning("No LG TV instance for entity: %s", self.id)
            return StatusCodes.SERVICE_UNAVAILABLE

        device = self._device
        match cmd_id:
            case Commands.ON:
                return await write_property(device, Properties.ON, True)
            case Commands.OFF:
                return await write_property(device, Properties.ON, False)
            case Commands.TOGGLE:
                on = bool(device.value(Properties.ON))
                return await write_property(device, Properties.ON, not on)

        if params is None:
            return StatusCodes.BAD_REQUEST

        repeat = self.get_int_param("repeat", params, 1)
        delay = self.get_int_param("delay", params, 0)

        if cmd_id == Commands.SEND_CMD:
            command = params.get("command", "")
            if not isinstance(command, str) or not command:
                return StatusCodes.BAD_REQUEST
            res = StatusCodes.OK
            for _ in range(repeat):
                res = await self.send_command(command)
                if res != StatusCodes.OK:
                    break
            return res

        if cmd_id == Commands.SEND_CMD_SEQUENCE:
            sequence = params.get("sequence", [])
            if not isinstance(sequence, list) or not all(
                isinstance(command, str) and command for command in sequence
            ):
                return StatusCodes.BAD_REQUEST
            res = StatusCodes.OK
            for command in sequence:
                for _ in range(repeat):
                    res = await self.send_command(command)
                    if res != StatusCodes.OK:
                        return res
                if delay > 0:
                    await asyncio.sleep(float(delay) / 1000)
            return res

        return StatusCodes.NOT_IMPLEMENTED

    async def send_command(self, command: str) -> StatusCodes:
        """Perform the action behind one ``send_cmd`` command."""
        action, value = parse_command(command)
        invocation = await self._device.perform_action(action, value)
        return action_status(invocation)


LG_REMOTE_SIMPLE_COMMANDS = [key.value for key in Keypress]

LG_REMOTE_BUTTONS_MAPPING: list[DeviceButtonMapping] = [
    {"button": Buttons.BACK, "short_press": {"cmd_id": Keypress.BACK.value}},
    {"button": Buttons.HOME, "short_press": {"cmd_id": Keypress.HOME.value}},
    {
        "button": Buttons.CHANNEL_DOWN,
        "short_press": {"cmd_id": Keypress.CHANNEL_DOWN.value},
    },
    {
        "button": Buttons.CHANNEL_UP,
        "short_press": {"cmd_id": Keypress.CHANNEL_UP.value},
    },
    {"button": Buttons.DPAD_UP, "short_press": {"cmd_id": Keypress.UP.value}},
    {"button": Buttons.DPAD_DOWN, "short_press": {"cmd_id": Keypress.DOWN.value}},
    {"button": Buttons.DPAD_LEFT, "short_press": {"cmd_id": Keypress.LEFT.value}},
    {"button": Buttons.DPAD_RIGHT, "short_press": {"cmd_id": Keypress.RIGHT.value}},
    {"button": Buttons.DPAD_MIDDLE, "short_press": {"cmd_id": Keypress.OK.value}},
    {
        "button": Buttons.VOLUME_UP,
        "short_press": {"cmd_id": Keypress.VOLUME_UP.value},
    },
    {
        "button": Buttons.VOLUME_DOWN,
        "short_press": {"cmd_id": Keypress.VOLUME_DOWN.value},
    },
    {"button": Buttons.POWER, "short_press": {"cmd_id": Commands.TOGGLE}},
]


def _ui_button(command: str, x: int, y: int, text: str | None = None) -> dict:
    return {
        "command": {
            "cmd_id": "remote.send",
            "params": {"command": command, "repeat": 1},
        },
        "location": {"x": x, "y": y},
        "size": {"height": 1, "width": 1},
        "type": "text",
        "text": text or command,
    }


LG_REMOTE_UI_PAGES = [
    {
        "page_id": "LG commands",
        "name": "TV commands",
        "grid": {"width": 4, "height": 6},
        "items": [
            _ui_button(Keypress.HOME.value, 0, 0),
            _ui_button(Keypress.BACK.value, 1, 0),
            _ui_button(Keypress.INFO.value, 2, 0),
            _ui_button(Keypress.DASH.value, 3, 0, "-"),
            _ui_button(Keypress.UP.value, 1, 1),
            _ui_button(Keypress.LEFT.value, 0, 2),
            _ui_button(Keypress.OK.value, 1, 2, "OK"),
            _ui_button(Keypress.RIGHT.value, 2, 2),
            _ui_button(Keypress.DOWN.value, 1, 3),
            _ui_button(Keypress.REWIND.value, 0, 4, "<<"),
            _ui_button(Keypress.PLAY.value, 1, 4),
            _ui_button(Keypress.PAUSE.value, 2, 4),
            _ui_button(Keypress.FAST_FORWARD.value, 3, 4, ">>"),
            _ui_button(Keypress.CHANNEL_UP.value, 0, 5, "CH+"),
            _ui_button(Keypress.CHANNEL_DOWN.value, 1, 5, "CH-"),
            _ui_button(Keypress.VOLUME_UP.value, 2, 5, "VOL+"),
            _ui_button(Keypress.VOLUME_DOWN.value, 3, 5, "VOL-"),
        ],
    }
]
