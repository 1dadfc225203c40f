"""
Cover platform for reversedcover integration.
"""
import logging
import asyncio
import re
from homeassistant.components.cover import (
  CoverEntity,
  CoverEntityFeature,
  CoverState,
)
from homeassistant.helpers.event import async_track_state_change_event
from homeassistant.helpers import entity_registry
from homeassistant.helpers import device_registry
from homeassistant.core import callback
from homeassistant.exceptions import HomeAssistantError
from . import const
from .reverse_config import (
  LevelReverseConfig,
  OnOff,
  UpDown,
  invert_bool,
  invert_on_off,
  invert_percent,
  invert_up_down,
)
from homeassistant.config_entries import ConfigEntry
from asyncio_throttle import Throttler

_LOGGER = logging.getLogger(__name__)

async def async_setup_entry(hass, entry, async_add_entities):
  """Set up the reversed covers from a config entry."""
  covers = entry.data.get("covers", [])
  throttler = hass.data[const.DOMAIN][entry.entry_id]
  ent_reg = entity_registry.async_get(hass)
  dev_reg = device_registry.async_get(hass)

  # Remove entities whose source cover is no longer selected
  expected_ids = {f"{entry.entry_id}_{cover}" for cover in covers}
  for entity in entity_registry.async_entries_for_config_entry(ent_reg, entry.entry_id):
    if entity.platform == const.DOMAIN and entity.unique_id not in expected_ids:
      _LOGGER.debug("Removing outdated entity %s", entity.entity_id)
      ent_reg.async_remove(entity.entity_id)
      if entity.device_id:
        dev_reg.async_remove_device(entity.device_id)

  async_add_entities([ReversedCover(hass, entry, cover, throttler) for cover in covers])

class ReversedCover(CoverEntity):
  """
  Cover mirroring a source cover whose polarity may be reversed.

  Inversion is driven by the LevelReverseConfig owned by the entity: percent
  values (positions) by the percent flag, open/close commands and the
  direction of motion by the on/off flag.
  """

  _attr_should_poll = False

  def __init__(self, hass, entry: ConfigEntry, cover, throttler: Throttler):
    self.hass = hass
    self._throttler = throttler
    self._entry = entry
    self._source_entity_id = cover
    self._reverse_config = LevelReverseConfig(entry.data)
    self._reverse_config.initialize()
    # Configuration the flags were last computed from
    self._applied_config = dict(entry.data)
    ent_reg = entity_registry.async_get(self.hass)
    dev_reg = device_registry.async_get(self.hass)
    source = ent_reg.async_get(self._source_entity_id)
    self._device = dev_reg.async_get(source.device_id) if source and source.device_id else None
    _LOGGER.debug("[%s] Created reversed cover entity", self._source_entity_id)

  async def async_added_to_hass(self):
    await super().async_added_to_hass()
    self.async_on_remove(
      async_track_state_change_event(self.hass, [self._source_entity_id], self._async_source_changed)
    )
    self.async_on_remove(self._entry.add_update_listener(self._async_entry_updated))
    self._async_copy_source_area()

  @callback
  def _async_source_changed(self, event):
    self.async_write_ha_state()

  async def _async_entry_updated(self, hass, entry):
    """Apply a config entry change to the reverse flags without reloading."""
    changed = self._reverse_config.update_configuration(self._applied_config, entry.data)
    self._applied_config = dict(entry.data)
    if changed:
      _LOGGER.debug(
        "[%s] Reverse configuration updated: on_off=%s, percent=%s",
        self._source_entity_id,
        self._reverse_config.should_invert_on_off(),
        self._reverse_config.should_invert_percent(),
      )
      self.async_write_ha_state()

  @callback
  def _async_copy_source_area(self):
    """Put the reversed device in the area of the source device (or entity), unless it already has one."""
    ent_reg = entity_registry.async_get(self.hass)
    dev_reg = device_registry.async_get(self.hass)
    src_entity = ent_reg.async_get(self._source_entity_id)
    area_id = (self._device and self._device.area_id) or (src_entity and src_entity.area_id)
    if not area_id or self.registry_entry is None or self.registry_entry.device_id is None:
      return
    device = dev_reg.async_get(self.registry_entry.device_id)
    if device and not device.area_id:
      dev_reg.async_update_device(device.id, area_id=area_id)

  @property
  def reverse_config(self):
    return self._reverse_config

  @property
  def _source_state(self):
    src = self.hass.states.get(self._source_entity_id)
    if src and src.state not in ("unavailable", "unknown"):
      return src
    return None

  @property
  def _source_current_position(self):
    src = self._source_state
    return src.attributes.get("current_position") if src else None

  @property
  def _source_current_tilt_position(self):
    src = self._source_state
    return src.attributes.get("current_tilt_position") if src else None

  @property
  def _source_motion(self):
    src = self._source_state
    if src is None:
      return None
    if src.state == CoverState.OPENING:
      return UpDown.UP
    if src.state == CoverState.CLOSING:
      return UpDown.DOWN
    return None

  @property
  def _rename_pattern(self):
    return self._entry.data.get("rename_pattern", const.DEFAULT_RENAME_PATTERN)
  @property
  def _rename_replacement(self):
    return self._entry.data.get("rename_replacement", const.DEFAULT_RENAME_REPLACEMENT)

  @property
  def name(self):
    return re.sub(self._rename_pattern, self._rename_replacement, self._device and self._device.name or self._source_entity_id, count=1)

  @property
  def device_info(self):
    return {
      "identifiers": {(const.DOMAIN, self.unique_id)},
      "name": self.name,
      "manufacturer": "Reversed Cover Integration",
      "model": "Virtual Cover",
    }

  @property
  def unique_id(self):
    return f"{self._entry.entry_id}_{self._source_entity_id}"

  @property
  def supported_features(self):
    src = self.hass.states.get(self._source_entity_id)
    if not src:
      _LOGGER.debug("[%s] Source entity not found for supported_features", self._source_entity_id)
      return 0
    features = src.attributes.get("supported_features", 0)
    feature_mask = (
      CoverEntityFeature.OPEN | CoverEntityFeature.CLOSE | CoverEntityFeature.SET_POSITION | CoverEntityFeature.STOP |
      CoverEntityFeature.OPEN_TILT | CoverEntityFeature.CLOSE_TILT | CoverEntityFeature.SET_TILT_POSITION | CoverEntityFeature.STOP_TILT
    )
    return features & feature_mask

  @property
  def current_cover_position(self):
    pos = self._source_current_position
    if pos is not None and self._reverse_config.should_invert_percent():
      return invert_percent(pos)
    return pos

  @property
  def current_cover_tilt_position(self):
    return self._source_current_tilt_position

  @property
  def is_closed(self):
    pos = self.current_cover_position
    if pos is not None:
      return pos == 0
    src = self._source_state
    if src is None or src.state not in (CoverState.OPEN, CoverState.CLOSED):
      return None
    closed = src.state == CoverState.CLOSED
    if self._reverse_config.should_invert_on_off():
      closed = invert_bool(closed)
    return closed

  @property
  def _motion(self):
    motion = self._source_motion
    if motion is not None and self._reverse_config.should_invert_on_off():
      motion = invert_up_down(motion)
    return motion

  @property
  def is_opening(self):
    return self._motion is UpDown.UP

  @property
  def is_closing(self):
    return self._motion is UpDown.DOWN

  @property
  def available(self):
    return self._source_state is not None

  @property
  def device_class(self):
    """Reflect the device_class ("Shown As") of the underlying cover by default."""
    src = self.hass.states.get(self._source_entity_id)
    if src is not None:
      return src.attributes.get("device_class")
    return None

  async def _call_service(self, command, data, retry=0):
    """
    Call a Home Assistant cover service through the throttler.

    Args:
      command (str): The cover service to call, must be one of the allowed commands.
      data (dict): The service data to send with the command.
      retry (int, optional): Number of times to retry after a failed call. Defaults to 0.
    Returns:
      bool: True if the service call succeeded, False otherwise.
    Raises:
      ValueError: If the command is not in the allowed set.
    """
    allowed_commands = {
      "open_cover",
      "close_cover",
      "set_cover_position",
      "stop_cover",
      "open_cover_tilt",
      "close_cover_tilt",
      "set_cover_tilt_position",
      "stop_cover_tilt",
    }
    if command not in allowed_commands:
      raise ValueError(f"Command {command} not allowed")
    attempt = 0
    while True:
      try:
        async with self._throttler:
          await self.hass.services.async_call(
            "cover", command, data, blocking=True
          )
        return True
      except HomeAssistantError as e:
        _LOGGER.warning("[%s] _call_service: Exception on %s: %s (attempt %d)", self._source_entity_id, command, e, attempt + 1)
      attempt += 1
      if attempt > retry:
        if retry > 0:
          _LOGGER.warning("[%s] _call_service: Max retries (%s) reached for %s", self._source_entity_id, retry, command)
        break
      await asyncio.sleep(1)
    return False

  async def _async_send_on_off(self, command: OnOff):
    if self._reverse_config.should_invert_on_off():
      command = invert_on_off(command)
    service = "open_cover" if command is OnOff.ON else "close_cover"
    _LOGGER.debug("[%s] Sending %s", self._source_entity_id, service)
    await self._call_service(service, {"entity_id": self._source_entity_id}, retry=3)

  async def async_open_cover(self, **kwargs):
    await self._async_send_on_off(OnOff.ON)

  async def async_close_cover(self, **kwargs):
    await self._async_send_on_off(OnOff.OFF)

  async def async_set_cover_position(self, **kwargs):
    position = kwargs.get("position")
    if position is None:
      _LOGGER.debug("[%s] async_set_cover_position: No position provided", self._source_entity_id)
      return
    if self._reverse_config.should_invert_percent():
      position = invert_percent(position)
    await self._call_service(
      "set_cover_position",
      {"entity_id": self._source_entity_id, "position": position},
      retry=3
    )

  async def async_stop_cover(self, **kwargs):
    _LOGGER.debug("[%s] Calling stop_cover", self._source_entity_id)
    await self._call_service("stop_cover", {"entity_id": self._source_entity_id}, retry=3)

  async def async_set_cover_tilt_position(self, **kwargs):
    tilt = kwargs.get("tilt_position")
    if tilt is None:
      _LOGGER.debug("[%s] async_set_cover_tilt_position: No tilt_position provided", self._source_entity_id)
      return
    await self._call_service(
      "set_cover_tilt_position",
      {"entity_id": self._source_entity_id, "tilt_position": tilt},
      retry=3
    )

  async def async_open_cover_tilt(self, **kwargs):
    await self._call_service("open_cover_tilt", {"entity_id": self._source_entity_id}, retry=3)

  async def async_close_cover_tilt(self, **kwargs):
    await self._call_service("close_cover_tilt", {"entity_id": self._source_entity_id}, retry=3)

  async def async_stop_cover_tilt(self, **kwargs):
    _LOGGER.debug("[%s] Calling stop_cover_tilt", self._source_entity_id)
    await self._call_service("stop_cover_tilt", {"entity_id": self._source_entity_id}, retry=3)
