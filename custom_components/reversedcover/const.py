"""
Constants for the reversedcover integration.

This module defines all configuration defaults and constant values used
throughout the integration. The level-reverse parameter identifiers are a
stable contract shared with already persisted configurations, do not rename
them.
"""

# Integration identification
DOMAIN = "reversedcover"

# UI and naming defaults
DEFAULT_LABEL = "Covers"  # Default integration instance name
DEFAULT_RENAME_PATTERN = "^.*$"  # Regex pattern to match source cover names
# Replacement pattern for reversed cover names
DEFAULT_RENAME_REPLACEMENT = "Reversed \\g<0>"

# Behavior options
DEFAULT_THROTTLE = 100  # Throttle delay in milliseconds between service calls

# Level-reverse configuration namespace
CONFIG_ID = "zigbee_levelreverse_"
CONFIG_REVERSEONOFF = CONFIG_ID + "reverseonoff"
CONFIG_REVERSEPERCENT = CONFIG_ID + "reversepercent"

# Level-reverse defaults
REVERSE_ONOFF_DEFAULT = False
REVERSE_PERCENT_DEFAULT = False
DEFAULT_REPORTING_CHANGE = 1

# Full scale of a percent command
PERCENT_MAX = 100
