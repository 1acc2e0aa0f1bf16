"""
Media-player entity functions.

:license: Mozilla Public License Version 2.0, see LICENSE for more details.
"""

import logging
from typing import Any

import ucapi
from actions import ActionError, ActionInvocation, ActionStatus
from const import LG_STATE_MAPPING, Actions, Keypress, Properties
from tv import LgTv, PropertyError
from transport import TransportError
from ucapi import EntityTypes, MediaPlayer, media_player
from ucapi.media_player import Attributes, DeviceClasses
from ucapi_framework import create_entity_id

_LOG = logging.getLogger(__name__)


features = [
    media_player.Features.ON_OFF,
    media_player.Features.TOGGLE,
    media_player.Features.VOLUME,
    media_player.Features.VOLUME_UP_DOWN,
    media_player.Features.MUTE_TOGGLE,
    media_player.Features.MUTE,
    media_player.Features.UNMUTE,
    media_player.Features.SELECT_SOURCE,
    media_player.Features.HOME,
    media_player.Features.DPAD,
    media_player.Features.INFO,
    media_player.Features.CHANNEL_SWITCHER,
    media_player.Features.PLAY_PAUSE,
    media_player.Features.STOP,
    media_player.Features.FAST_FORWARD,
    media_player.Features.REWIND,
]

KEYPRESS_COMMANDS = {
    media_player.Commands.VOLUME_UP: Keypress.VOLUME_UP,
    media_player.Commands.VOLUME_DOWN: Keypress.VOLUME_DOWN,
    media_player.Commands.CURSOR_UP: Keypress.UP,
    media_player.Commands.CURSOR_DOWN: Keypress.DOWN,
    media_player.Commands.CURSOR_LEFT: Keypress.LEFT,
    media_player.Commands.CURSOR_RIGHT: Keypress.RIGHT,
    media_player.Commands.CURSOR_ENTER: Keypress.OK,
    media_player.Commands.HOME: Keypress.HOME,
    media_player.Commands.BACK: Keypress.BACK,
    media_player.Commands.INFO: Keypress.INFO,
    media_player.Commands.CHANNEL_UP: Keypress.CHANNEL_UP,
    media_player.Commands.CHANNEL_DOWN: Keypress.CHANNEL_DOWN,
    media_player.Commands.STOP: Keypress.STOP,
    media_player.Commands.FAST_FORWARD: Keypress.FAST_FORWARD,
    media_player.Commands.REWIND: Keypress.REWIND,
}


def media_player_attributes(update: dict[str, Any]) -> dict[str, Any]:
    """Map changed TV properties onto media-player attributes."""
    attributes: dict[str, Any] = {}
    for name, value in update.items():
        match name:
            case Properties.ON:
                attributes[Attributes.STATE] = LG_STATE_MAPPING[bool(value)]
            case Properties.VOLUME:
                attributes[Attributes.VOLUME] = value
            case Properties.MUTE:
                attributes[Attributes.MUTED] = value
            case Properties.ACTIVE_APP:
                attributes[Attributes.SOURCE] = value if value else ""
    return attributes


def action_status(invocation: ActionInvocation) -> ucapi.StatusCodes:
    """Return the status code for a completed action invocation."""
    if invocation.status == ActionStatus.FINISHED:
        return ucapi.StatusCodes.OK
    if isinstance(invocation.error, ActionError):
        return ucapi.StatusCodes.BAD_REQUEST
    return ucapi.StatusCodes.SERVER_ERROR


async def write_property(device: LgTv, name: str, value: Any) -> ucapi.StatusCodes:
    """Write a TV property and return the status code of the outcome."""
    try:
        await device.set_value(name, value)
    except PropertyError as ex:
        _LOG.warning("[%s] Rejected %s=%s: %s", device.log_id, name, value, ex)
        return ucapi.StatusCodes.BAD_REQUEST
    except TransportError as ex:
        _LOG.error("[%s] Failed to set %s: %s", device.log_id, name, ex)
        return ucapi.StatusCodes.SERVER_ERROR
    return ucapi.StatusCodes.OK


class LgTvMediaPlayer(MediaPlayer):
    """Representation of a LG webOS TV MediaPlayer entity."""

    def __init__(self, device: LgTv):
        """Initialize the class."""
        self._device = device
        self._playing = False
        _LOG.debug("LgTvMediaPlayer init")
        entity_id = create_entity_id(EntityTypes.MEDIA_PLAYER, device.identifier)
        attributes = media_player_attributes(device.values)
        attributes[Attributes.SOURCE_LIST] = device.source_list

        super().__init__(
            entity_id,
            device.name,
            features,
            attributes=attributes,
            device_class=DeviceClasses.TV,
            cmd_handler=self.media_player_cmd_handler,
        )

    def bind(self, device: LgTv) -> None:
        """Route commands to a new session of the same TV."""
        self._device = device
        self._playing = False
        self.attributes.update(media_player_attributes(device.values))
        self.attributes[Attributes.SOURCE_LIST] = device.source_list

    # pylint: disable=too-many-return-statements
    async def media_player_cmd_handler(
        self, entity: MediaPlayer, cmd_id: str, params: dict[str, Any] | None
    ) -> ucapi.StatusCodes:
        """
        Media-player entity command handler.

        Called by the integration-API if a command is sent to a configured media-player entity.

        :param entity: media-player entity
        :param cmd_id: command
        :param params: optional command parameters
        :return: status code of the command. StatusCodes.OK if the command succeeded.
        """
        _LOG.info(
            "Got %s command request: %s %s", entity.id, cmd_id, params if params else ""
        )
        device = self._device
        params = params or {}

        match cmd_id:
            case media_player.Commands.ON:
                return await write_property(device, Properties.ON, True)
            case media_player.Commands.OFF:
                return await write_property(device, Properties.ON, False)
            case media_player.Commands.TOGGLE:
                on = bool(device.value(Properties.ON))
                return await write_property(device, Properties.ON, not on)
            case media_player.Commands.VOLUME:
                try:
                    volume = int(float(params.get("volume")))
                except (TypeError, ValueError):
                    return ucapi.StatusCodes.BAD_REQUEST
                return await write_property(device, Properties.VOLUME, volume)
            case media_player.Commands.MUTE:
                return await write_property(device, Properties.MUTE, True)
            case media_player.Commands.UNMUTE:
                return await write_property(device, Properties.MUTE, False)
            case media_player.Commands.MUTE_TOGGLE:
                muted = bool(device.value(Properties.MUTE))
                return await write_property(device, Properties.MUTE, not muted)
            case media_player.Commands.SELECT_SOURCE:
                invocation = await device.perform_action(
                    Actions.LAUNCH_APP, params.get("source")
                )
                return action_status(invocation)
            case media_player.Commands.PLAY_PAUSE:
                # the TV does not report playback state, alternate between the keys
                key = Keypress.PAUSE if self._playing else Keypress.PLAY
                invocation = await device.perform_action(
                    Actions.SEND_KEYPRESS, key.value
                )
                status = action_status(invocation)
                if status == ucapi.StatusCodes.OK:
                    self._playing = not self._playing
                return status

        key = KEYPRESS_COMMANDS.get(cmd_id)
        if key is None:
            return ucapi.StatusCodes.NOT_IMPLEMENTED
        invocation = await device.perform_action(Actions.SEND_KEYPRESS, key.value)
        return action_status(invocation)
