"""Shared runtime constants for the AstroUSB switch driver.

This is the canonical source of truth for switch defaults, serial settings
and profile key names.  Other modules should import from here rather than
defining their own copies.
"""

# ---------------------------------------------------------------------------
# Switch definition defaults (binary on/off port)
# ---------------------------------------------------------------------------

DEFAULT_MINIMUM = 0.0
DEFAULT_MAXIMUM = 1.0
DEFAULT_STEP_SIZE = 1.0
DEFAULT_VALUE = 0.0

# The state count may miss an integer by at most step_size / STATE_COUNT_DIVISOR
STATE_COUNT_DIVISOR = 10

# Number of USB ports on the controller board, internal ids "0".."6"
DEFAULT_PORT_COUNT = 7

# ---------------------------------------------------------------------------
# Serial / runtime defaults
# ---------------------------------------------------------------------------

DEFAULT_PORT = "/dev/ttyUSB0"
DEFAULT_BAUD = 9600
DEFAULT_TIMEOUT = 1.0
DEFAULT_COMMAND_TEMPLATE = "{internal_id} {value}"

# ---------------------------------------------------------------------------
# Profile keys
# ---------------------------------------------------------------------------

DRIVER_ID = "ASCOM.mytjaAstroUSB.Switch"
SWITCH_SUBKEY = "Switch {index}"
