"""Shared test helpers for reversedcover tests."""
from typing import Dict, List, Optional
import pytest_check as check
from homeassistant.core import HomeAssistant
from homeassistant.config_entries import SOURCE_RECONFIGURE
from homeassistant.helpers import entity_registry
from homeassistant.helpers.area_registry import async_get as get_area_registry
from homeassistant.helpers.device_registry import async_get as get_device_registry
from homeassistant.setup import async_setup_component
from pytest_homeassistant_custom_component.common import MockConfigEntry
from custom_components.reversedcover.const import DOMAIN
from tests.constants import (
    TEST_ENTRY_ID,
    TEST_COVER_ID,
    TEST_AREA_ID,
    TEST_DEVICE_NAME,
    FLOW_COVER_ID,
    FEATURES_WITH_TILT,
    STANDARD_CONFIG_DATA,
)


class MockThrottler:
    """Throttler stand-in that never waits."""

    def __init__(self, *args, **kwargs):
        pass

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args, **kwargs):
        pass


async def cleanup_platform_timers(hass: HomeAssistant):
    """Clean up any lingering platform timers to avoid test warnings."""
    all_platforms = hass.data.get("entity_platform", {})

    for domain, platforms in all_platforms.items():
        for platform in platforms:
            if hasattr(platform, '_async_polling_timer') and platform._async_polling_timer:
                platform._async_polling_timer.cancel()
                platform._async_polling_timer = None


def create_mock_cover_entity(
    hass: HomeAssistant,
    entity_id: str = TEST_COVER_ID,
    state: str = "closed",
    supported_features: int = FEATURES_WITH_TILT,
    current_position: Optional[int] = 0,
    current_tilt_position: Optional[int] = 0,
    device_class: str = "blind",
):
    """Set the state of a source cover in the state machine."""
    attributes = {
        "supported_features": supported_features,
        "device_class": device_class,
    }
    if current_position is not None:
        attributes["current_position"] = current_position
    if current_tilt_position is not None:
        attributes["current_tilt_position"] = current_tilt_position
    hass.states.async_set(entity_id, state, attributes)


def create_mock_config_entry(
    hass: HomeAssistant,
    entry_id: str = TEST_ENTRY_ID,
    title: str = "Test Reversed Cover",
    covers: Optional[List[str]] = None,
    **kwargs
) -> MockConfigEntry:
    """Create a config entry with standard test data and add it to hass.

    Args:
      hass: HomeAssistant instance
      entry_id: ID of the config entry
      title: Title for the config entry
      covers: List of source cover entity IDs
      **kwargs: Configuration values overriding the defaults

    Returns:
      MockConfigEntry: The entry, not set up yet
    """
    if covers is None:
        covers = [TEST_COVER_ID]

    data = {"covers": covers, **STANDARD_CONFIG_DATA}
    data.update(kwargs)

    entry = MockConfigEntry(
        domain=DOMAIN,
        title=title,
        data=data,
        entry_id=entry_id,
        unique_id=entry_id,
    )
    entry.add_to_hass(hass)
    return entry


def setup_source_registries(
    hass: HomeAssistant,
    with_device: bool = True,
    device_area: bool = True,
    entity_area: bool = False,
    source_entity_id: str = TEST_COVER_ID,
) -> Dict:
    """Register the source cover, its device and an area like a real integration would.

    Args:
      hass: HomeAssistant instance
      with_device: Attach the source entity to a device named TEST_DEVICE_NAME
      device_area: Put the source device in the test area
      entity_area: Put the source entity itself in the test area

    Returns:
      Dict containing the created area, device (or None) and entity
    """
    source_entry = MockConfigEntry(domain="test")
    source_entry.add_to_hass(hass)

    area = get_area_registry(hass).async_create(TEST_AREA_ID)

    device_registry = get_device_registry(hass)
    device = None
    if with_device:
        device = device_registry.async_get_or_create(
            config_entry_id=source_entry.entry_id,
            identifiers={("test", "test_source_device")},
            name=TEST_DEVICE_NAME,
            manufacturer="Test Manufacturer",
            model="Test Model",
        )
        if device_area:
            device = device_registry.async_update_device(device.id, area_id=area.id)

    ent_reg = entity_registry.async_get(hass)
    object_id = source_entity_id.split(".", 1)[1]
    entity = ent_reg.async_get_or_create(
        "cover",
        "test",
        object_id,
        suggested_object_id=object_id,
        config_entry=source_entry,
        device_id=device.id if device else None,
    )
    if entity_area:
        entity = ent_reg.async_update_entity(entity.entity_id, area_id=area.id)

    return {"area": area, "device": device, "entity": entity}


def get_reversed_device(hass: HomeAssistant, entry, source_entity_id: str = TEST_COVER_ID):
    """Return the device registry entry of the reversed cover created for a source cover."""
    ent_reg = entity_registry.async_get(hass)
    reg_entry = ent_reg.async_get(get_reversed_entity_id(hass, entry, source_entity_id))
    return get_device_registry(hass).async_get(reg_entry.device_id)


async def setup_config_entry(hass: HomeAssistant, entry: MockConfigEntry) -> None:
    """Set up a config entry and wait for its entities."""
    assert await hass.config_entries.async_setup(entry.entry_id)
    await hass.async_block_till_done()


def get_reversed_entity_id(hass: HomeAssistant, entry, source_entity_id: str = TEST_COVER_ID) -> Optional[str]:
    """Return the entity_id of the reversed cover created for a source cover."""
    ent_reg = entity_registry.async_get(hass)
    return ent_reg.async_get_entity_id("cover", DOMAIN, f"{entry.entry_id}_{source_entity_id}")


async def start_config_flow(hass: HomeAssistant, context: Dict = None) -> Dict:
    """Start a config flow and return the initial result."""
    await async_setup_component(hass, DOMAIN, {})

    if context is None:
        context = {"source": "user"}

    return await hass.config_entries.flow.async_init(DOMAIN, context=context)


async def start_reconfigure_flow(hass: HomeAssistant, config_entry) -> Dict:
    """Start a reconfigure flow for an existing config entry."""
    return await hass.config_entries.flow.async_init(
        DOMAIN,
        context={"source": SOURCE_RECONFIGURE, "entry_id": config_entry.entry_id},
        data=None,
    )


async def complete_user_step(hass, flow_id: str, label: str = "Test Covers", covers: List[str] = None) -> Dict:
    """Complete the user step of config flow."""
    data = {"label": label, "covers": covers if covers is not None else [FLOW_COVER_ID]}
    return await hass.config_entries.flow.async_configure(flow_id, user_input=data)


async def complete_configure_step(hass, flow_id: str, config_data: Dict = None) -> Dict:
    """Complete the configure step of config flow."""
    if config_data is None:
        config_data = {**STANDARD_CONFIG_DATA}
    return await hass.config_entries.flow.async_configure(flow_id, user_input=config_data)


async def complete_full_config_flow(hass, label: str = "Test Covers", covers: List[str] = None, config_data: Dict = None):
    """Run the whole config flow and return the created entry and the last result."""
    result = await start_config_flow(hass)
    result = await complete_user_step(hass, result["flow_id"], label, covers)
    result = await complete_configure_step(hass, result["flow_id"], config_data)
    await hass.async_block_till_done()
    entries = hass.config_entries.async_entries(DOMAIN)
    return (entries[-1] if entries else None), result


async def complete_full_reconfigure_flow(hass, config_entry, label: str = "Test Covers", covers: List[str] = None, config_data: Dict = None) -> Dict:
    """Run the whole reconfigure flow of an entry."""
    result = await start_reconfigure_flow(hass, config_entry)
    if covers is None:
        covers = list(config_entry.data["covers"])
    result = await complete_user_step(hass, result["flow_id"], label, covers)
    result = await complete_configure_step(hass, result["flow_id"], config_data)
    await hass.async_block_till_done()
    return result


def assert_form_step(result: Dict, step_id: str, expected_fields: Optional[List[str]] = None) -> None:
    """Assert that a flow result is a form step with expected fields."""
    check.equal(result["type"], "form",
                f"Expected form step, got {result['type']}")
    check.equal(result["step_id"], step_id,
                f"Expected step_id {step_id}, got {result['step_id']}")
    check.is_not_none(result["data_schema"], "Data schema should not be None")
    if expected_fields:
        schema_str = str(result["data_schema"]).lower()
        for field in expected_fields:
            check.is_true(
                field.lower() in schema_str,
                f"Expected field '{field}' not found in schema"
            )


def assert_create_entry(result: Dict, expected_title: str, expected_data: Optional[Dict] = None) -> None:
    """Assert that a flow result creates an entry with expected properties."""
    check.equal(result["type"], "create_entry",
                f"Expected create_entry, got {result['type']}")
    check.equal(result["title"], expected_title,
                f"Expected title {expected_title}, got {result['title']}")
    if expected_data:
        data = result["data"]
        for key, value in expected_data.items():
            check.equal(data[key], value, f"Expected {key}={value}, got {data[key]}")


def assert_abort(result: Dict, expected_reason: str) -> None:
    """Assert that a flow result is an abort with expected reason."""
    check.equal(result["type"], "abort",
                f"Expected abort, got {result['type']}")
    check.equal(result["reason"], expected_reason,
                f"Expected reason {expected_reason}, got {result['reason']}")
