"""
Home Assistant custom component for reversedcover.

This integration wraps source covers whose actuator is wired backwards and
exposes them with the Home Assistant polarity: positions can be inverted
(100 - value) and open/close commands swapped, per source cover.
The main functionality is implemented in the cover platform.
"""
import logging
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from asyncio_throttle import Throttler

from .const import DOMAIN, DEFAULT_THROTTLE

_LOGGER = logging.getLogger(__name__)

PLATFORMS = ["cover"]


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """
    Set up reversedcover from a config entry.

    Creates the throttler shared by every cover of the entry, then forwards
    the setup to the cover platform where the entities are created.

    Args:
      hass: Home Assistant instance
      entry: ConfigEntry containing the integration configuration

    Returns:
      bool: True if setup was successful
    """
    _LOGGER.debug("Setting up entry %s", entry.entry_id)
    throttle = entry.data.get("throttle", DEFAULT_THROTTLE)
    hass.data.setdefault(DOMAIN, {})[entry.entry_id] = Throttler(1, throttle / 1000)
    await hass.config_entries.async_forward_entry_setups(entry, PLATFORMS)
    return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
    """
    Unload a config entry and clean up integration data.

    Args:
      hass: Home Assistant instance
      entry: ConfigEntry being unloaded

    Returns:
      bool: True if unload was successful
    """
    unload_ok = await hass.config_entries.async_unload_platforms(entry, PLATFORMS)

    # Clean up any stored data for this config entry
    if entry.entry_id in hass.data.get(DOMAIN, {}):
        del hass.data[DOMAIN][entry.entry_id]
        if not hass.data[DOMAIN]:
            hass.data.pop(DOMAIN, None)

    return unload_ok
