"""
Config flow for reversedcover integration.

This module handles the UI configuration flow for setting up reversed covers.
It provides a two-step process: first selecting source covers, then choosing
which values to invert along with the naming options.
"""
from __future__ import annotations

import voluptuous as vol
from homeassistant import config_entries
from homeassistant.helpers import entity_registry
from homeassistant.helpers.selector import selector
from homeassistant.config_entries import SOURCE_RECONFIGURE
import logging

from . import const
from .reverse_config import LevelReverseConfig

_LOGGER = logging.getLogger(__name__)


def build_reverse_schema(data=None):
    """
    Build the configuration schema of the configure step.

    The level-reverse fields are generated from the parameter catalogue so the
    form always matches what LevelReverseConfig understands.

    Args:
      data: Existing configuration data for default values

    Returns:
      vol.Schema: Voluptuous schema for the configuration form
    """
    data = data or {}
    schema_dict = {
        vol.Required("rename_pattern", default=data.get("rename_pattern", const.DEFAULT_RENAME_PATTERN)): str,
        vol.Required("rename_replacement", default=data.get("rename_replacement", const.DEFAULT_RENAME_REPLACEMENT)): str,
    }

    for parameter in LevelReverseConfig.get_configuration():
        default = data.get(parameter.name, parameter.default_value())
        schema_dict[vol.Optional(parameter.name, default=default)] = parameter.type.value

    schema_dict[vol.Optional("throttle", default=data.get(
        "throttle", const.DEFAULT_THROTTLE))] = vol.All(int, vol.Range(min=0))
    return vol.Schema(schema_dict)


def only_reverse_parameters_changed(old_data, new_data):
    """Tell whether the two configurations differ only by level-reverse parameters."""
    keys = set(old_data) | set(new_data)
    return all(
        old_data.get(key) == new_data.get(key)
        for key in keys
        if not key.startswith(const.CONFIG_ID)
    )


class ReversedCoverConfigFlow(config_entries.ConfigFlow, domain=const.DOMAIN):
    """
    Handle configuration flow for reversedcover integration.

    This config flow provides a two-step setup process:
    1. Select source cover entities to be reversed
    2. Choose the values to invert and the naming options

    The flow also handles reconfiguration of existing entries.
    """

    VERSION = 1

    def __init__(self):
        """Initialize the config flow with default values."""
        super().__init__()
        self._data = {
            "label": const.DEFAULT_LABEL,
            "covers": [],
            "rename_pattern": const.DEFAULT_RENAME_PATTERN,
            "rename_replacement": const.DEFAULT_RENAME_REPLACEMENT,
            "throttle": const.DEFAULT_THROTTLE,
        }
        for parameter in LevelReverseConfig.get_configuration():
            self._data[parameter.name] = parameter.default_value()

    async def async_step_user(self, user_input=None):
        """
        First step: Select source cover entities to be reversed.

        Covers already created by this integration are excluded from the
        selection to prevent reversing a reversed cover.
        """
        _LOGGER.debug(
            "Starting async_step_user with user_input: %s", user_input)
        if user_input is not None:
            self._data.update(user_input)
            _LOGGER.debug("Going to configure with data=%s", self._data)
            return await self.async_step_configure()

        try:
            entity_reg = entity_registry.async_get(self.hass)
            covers = [entity.entity_id for entity in entity_reg.entities.values(
            ) if entity.platform == const.DOMAIN]
            _LOGGER.debug("Found covers to exclude: %s", covers)
        except Exception as exc:
            _LOGGER.error("Error while fetching covers: %s",
                          exc, exc_info=True)
            return self.async_abort(reason="internal_error")

        schema = vol.Schema({
            vol.Required("label", default=self._data["label"]): str,
            vol.Required("covers", default=self._data["covers"]): vol.All(
                selector({
                    "entity": {
                        "multiple": True,
                        "exclude_entities": covers,
                        "filter": {"domain": "cover"},
                    },
                }),
                vol.Length(min=1),
            )
        })

        return self.async_show_form(
            step_id="user",
            data_schema=schema,
            errors={},
        )

    async def async_step_configure(self, user_input=None):
        """
        Second step: Configure inversion and naming, then create/update the entry.

        On reconfiguration, a change limited to the level-reverse parameters is
        written in place: live entities pick it up through their update
        listener. Any other change reloads the entry.
        """
        if self.source == SOURCE_RECONFIGURE:
            entry = self._get_reconfigure_entry()
            if entry.unique_id:
                await self.async_set_unique_id(entry.unique_id)
                self._abort_if_unique_id_mismatch()

        if user_input is not None:
            self._data.update(user_input)
            _LOGGER.debug("Updating entry with: %s", self._data)
            title = self._data["label"]
            data = self._data.copy()
            del data["label"]  # Title is stored separately from data

            if self.source != SOURCE_RECONFIGURE:
                return self.async_create_entry(title=title, data=data)

            if only_reverse_parameters_changed(entry.data, data):
                _LOGGER.debug("Only reverse parameters changed, updating %s in place", entry.entry_id)
                self.hass.config_entries.async_update_entry(entry, title=title, data=data)
                return self.async_abort(reason="reconfigure_successful")
            return self.async_update_reload_and_abort(
                entry=entry,
                title=title,
                data=data,
            )

        return self.async_show_form(
            step_id="configure",
            data_schema=build_reverse_schema(self._data),
            errors={},
        )

    async def async_step_reconfigure(self, user_input=None):
        """
        Handle reconfiguration of an existing config entry.

        Loads the existing configuration data and redirects to the user step
        to allow modification of all settings including cover selection.
        """
        entry = self._get_reconfigure_entry()
        self._data.update(entry.data)
        self._data["label"] = entry.title
        return await self.async_step_user(user_input)
