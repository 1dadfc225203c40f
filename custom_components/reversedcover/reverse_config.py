"""
Level-reverse configuration handler for reversed covers.

Some window-covering actuators are wired backwards relative to the Home
Assistant convention (for instance a motor reporting 100% when closed). This
module holds the per-channel flags telling whether on/off and percent values
must be inverted, the catalogue describing those flags to a config form, the
diff-and-apply protocol used to update them at runtime and the pure inversion
functions applied on the command and state paths.

The handler never decides when inversion happens: callers consult
should_invert_on_off() / should_invert_percent() and apply the matching
invert_* function when it returns True.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum
from typing import Any

import voluptuous as vol
from homeassistant.exceptions import HomeAssistantError

from . import const

_LOGGER = logging.getLogger(__name__)

# Flags are strictly typed, no coercion from strings or ints
_FLAG_SCHEMA = vol.Schema(bool)


class InvalidParameterValue(HomeAssistantError):
    """Raised when a recognized configuration parameter holds a wrong-typed value."""

    def __init__(self, key: str, value: Any) -> None:
        super().__init__(f"Invalid value {value!r} for configuration parameter {key}")
        self.key = key
        self.value = value


class OnOff(Enum):
    """Two-valued on/off command."""
    ON = "on"
    OFF = "off"


class UpDown(Enum):
    """Two-valued up/down command, also used for a direction of motion."""
    UP = "up"
    DOWN = "down"


class ParameterType(Enum):
    """Value type of a configuration parameter, mapped to a python type for forms."""
    BOOLEAN = bool


@dataclass(frozen=True)
class ConfigParameter:
    """
    Describe one editable configuration parameter.

    The default is kept stringified, the way it is stored alongside other
    channel configuration. default_value() turns it back into a python value.
    """
    name: str
    type: ParameterType
    label: str
    description: str
    default: str

    def default_value(self):
        return self.default == "true"


def _stringify(value) -> str:
    if isinstance(value, bool):
        return str(value).lower()
    return str(value)


def invert_on_off(value: OnOff) -> OnOff:
    """Return the opposite on/off command."""
    if value is OnOff.ON:
        return OnOff.OFF
    if value is OnOff.OFF:
        return OnOff.ON
    raise ValueError(f"Not an on/off value: {value!r}")


def invert_up_down(value: UpDown) -> UpDown:
    """Return the opposite up/down command."""
    if value is UpDown.UP:
        return UpDown.DOWN
    if value is UpDown.DOWN:
        return UpDown.UP
    raise ValueError(f"Not an up/down value: {value!r}")


def invert_bool(value: bool) -> bool:
    """Return the opposite boolean value."""
    return not value


def invert_percent(value: int) -> int:
    """
    Return the complement of a percent value (100 - value).

    Values outside 0..100 are not clamped.
    """
    return const.PERCENT_MAX - value


class ClusterConfigHandler(ABC):
    """
    Base class of a channel configuration handler.

    A handler owns a set of parameters whose identifiers share a namespace
    prefix, so that several handlers can be fed the same change set.
    """

    def initialize(self) -> bool:
        """Prepare the handler once its channel is ready. Returns True on success."""
        return True

    @staticmethod
    @abstractmethod
    def get_configuration() -> list[ConfigParameter]:
        """Return the descriptors of the parameters handled."""

    @abstractmethod
    def update_configuration(
        self,
        current_configuration: Mapping[str, Any],
        configuration_parameters: Mapping[str, Any],
    ) -> bool:
        """Apply the changed parameters and return True if anything changed."""


class LevelReverseConfig(ClusterConfigHandler):
    """
    Configuration handler inverting commands sent to and from a level channel.

    One instance belongs to one reversed cover entity and is only ever used
    from the Home Assistant event loop.
    """

    def __init__(self, configuration: Mapping[str, Any]):
        self._invert_on_off = const.REVERSE_ONOFF_DEFAULT
        self._invert_percent = const.REVERSE_PERCENT_DEFAULT
        # Exposed for compatibility, not read from configuration
        self._reporting_change = const.DEFAULT_REPORTING_CHANGE

        if const.CONFIG_REVERSEONOFF in configuration:
            self._invert_on_off = _validate_flag(
                const.CONFIG_REVERSEONOFF, configuration[const.CONFIG_REVERSEONOFF])
        if const.CONFIG_REVERSEPERCENT in configuration:
            self._invert_percent = _validate_flag(
                const.CONFIG_REVERSEPERCENT, configuration[const.CONFIG_REVERSEPERCENT])

    @staticmethod
    def get_configuration() -> list[ConfigParameter]:
        """
        Build the list of parameters handled, on/off inversion first.

        Defaults shown are the compiled-in ones, never the current values.
        """
        return [
            ConfigParameter(
                name=const.CONFIG_REVERSEONOFF,
                type=ParameterType.BOOLEAN,
                label="Invert On/Off Commands",
                description=(
                    "Invert the value of ON and OFF commands sent to and received from device. "
                    "Useful for devices that use the OnOffCluster for rollershutter control."
                ),
                default=_stringify(const.REVERSE_ONOFF_DEFAULT),
            ),
            ConfigParameter(
                name=const.CONFIG_REVERSEPERCENT,
                type=ParameterType.BOOLEAN,
                label="Invert Percent Commands",
                description=(
                    "Invert the value of percent commands sent to and received from device. "
                    "Useful for devices that use the LevelControlCluster for rollershutter control."
                ),
                default=_stringify(const.REVERSE_PERCENT_DEFAULT),
            ),
        ]

    def update_configuration(self, current_configuration, configuration_parameters):
        """
        Apply the parameters of this handler that differ from the current configuration.

        Keys outside the level-reverse namespace are skipped silently so that
        the same change set can be handed to every handler of the channel.

        Args:
          current_configuration: Snapshot of the configuration before the change
          configuration_parameters: Candidate parameter values

        Returns:
          bool: True if at least one flag now holds a different value. A key
            absent from the snapshot whose value matches the flag already held
            is applied but not reported.

        Raises:
          InvalidParameterValue: If a recognized parameter is not a boolean
        """
        updated = False
        for key, value in configuration_parameters.items():
            if not key.startswith(const.CONFIG_ID):
                continue
            # Recognized flags are type-checked before the no-op comparison
            if key in (const.CONFIG_REVERSEONOFF, const.CONFIG_REVERSEPERCENT):
                value = _validate_flag(key, value)
            if value == current_configuration.get(key):
                _LOGGER.debug("Configuration update: Ignored %s as no change", key)
                continue

            if key == const.CONFIG_REVERSEONOFF:
                updated = updated or value != self._invert_on_off
                self._invert_on_off = value
            elif key == const.CONFIG_REVERSEPERCENT:
                updated = updated or value != self._invert_percent
                self._invert_percent = value
            else:
                _LOGGER.warning("Unhandled configuration property %s", key)

        return updated

    def should_invert_on_off(self) -> bool:
        """Tell whether on/off commands and directions must be inverted."""
        return self._invert_on_off

    def should_invert_percent(self) -> bool:
        """Tell whether percent values must be inverted."""
        return self._invert_percent

    def get_reporting_change(self) -> int:
        """Return the reporting change threshold, always the default."""
        return self._reporting_change


def _validate_flag(key: str, value: Any) -> bool:
    try:
        return _FLAG_SCHEMA(value)
    except vol.Invalid as exc:
        raise InvalidParameterValue(key, value) from exc
