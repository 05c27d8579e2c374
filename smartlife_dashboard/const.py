"""Constants for the SmartLife dashboard engine."""

from datetime import timedelta

DOMAIN = "smartlife"

# Raw category codes reported by the cloud platform.
CATEGORY_LIGHT = "dj"
CATEGORY_SWITCH = "kg"

# Status codes understood by the codec.
CODE_SWITCH_LED = "switch_led"
CODE_SWITCH_1 = "switch_1"
CODE_BRIGHTNESS = "bright_value_v2"
CODE_COLOR_TEMP = "temp_value_v2"
CODE_WORK_MODE = "work_mode"
CODE_COLOUR_DATA = "colour_data_v2"

# Device-space defaults used when a status code is absent.
DEFAULT_POWER = False
DEFAULT_BRIGHTNESS = 500
DEFAULT_COLOR_TEMP = 500
DEFAULT_WORK_MODE = "white"
DEFAULT_HUE = 0
DEFAULT_SATURATION = 1000
DEFAULT_VALUE = 1000

SCALE_MIN = 10
SCALE_MAX = 1000
GAMMA = 2.5

SNAP_POINTS = (10, 250, 500, 750, 1000)
SNAP_THRESHOLD = 50
HUE_MATCH_TOLERANCE = 15

DEBOUNCE_DELAY = timedelta(milliseconds=350)
POLL_INTERVAL = timedelta(seconds=5)
NOTICE_DURATION = timedelta(seconds=4)
REQUEST_TIMEOUT = timedelta(seconds=10)

SETTINGS_STORE_KEY = "smartlife_device_settings"
SETTINGS_STORE_VERSION = 1

GENERIC_ERROR = "Error"
