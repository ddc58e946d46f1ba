"""Constants for zonebridge."""

PROTOCOL_CBUS = "cbus"
PROTOCOL_MRC88 = "mrc88"
PROTOCOLS = (PROTOCOL_CBUS, PROTOCOL_MRC88)

DEFAULT_PORT = 10001  # serial-to-ethernet adapters
DEFAULT_BAUDRATE = 9600  # both devices are locked to 9600 8N1
DEFAULT_SEND_TIMEOUT = 0.3  # seconds
DEFAULT_CONNECT_TIMEOUT = 5.0  # seconds

CONF_PROTOCOL = "protocol"
CONF_HOST = "host"
CONF_PORT = "port"
CONF_SERIAL_PORT = "serial_port"
CONF_BAUDRATE = "baudrate"
CONF_ZONE_COUNT = "zone_count"
CONF_EXPANDED = "expanded"
CONF_ZONE_NAMES = "zone_names"
CONF_SOURCE_NAMES = "source_names"
CONF_POLL_INTERVAL = "poll_interval"
CONF_REFRESH_THRESHOLD = "refresh_threshold"
CONF_READINESS_THRESHOLD = "readiness_threshold"
CONF_SEND_TIMEOUT = "send_timeout"
CONF_MONITOR_TIMEOUT = "monitor_timeout"

# Zone attributes (store keys and change notification names)
ATTR_POWER = "power"
ATTR_MUTE = "mute"
ATTR_LEVEL = "level"
ATTR_VOLUME = "volume"
ATTR_BASS = "bass"
ATTR_TREBLE = "treble"
ATTR_BALANCE = "balance"
ATTR_SOURCE = "source"
ATTR_GROUP_STATE = "group_state"

ATTRIBUTES = (
    ATTR_POWER,
    ATTR_MUTE,
    ATTR_LEVEL,
    ATTR_VOLUME,
    ATTR_BASS,
    ATTR_TREBLE,
    ATTR_BALANCE,
    ATTR_SOURCE,
    ATTR_GROUP_STATE,
)

# ============================================================================
# C-BUS LIGHTING GATEWAY
# ============================================================================

CBUS_MAX_GROUPS = 256  # group addresses 0x00-0xFF (group 0 should not be used)
CBUS_FIRST_GROUP = 0
CBUS_BLOCK_SIZE = 32  # groups per status request
CBUS_TX_TERMINATOR = "\r"
CBUS_RX_DELIMITER = "\r"

CBUS_FRAME_PREFIX = "\\"
CBUS_HEADER_P2MP = 0x05  # point-to-multipoint, lowest priority class
CBUS_APP_LIGHTING = 0x38  # standard lighting application (56)
CBUS_STATUS_REQUEST = (0x05, 0xFF, 0x00, 0x73, 0x07, CBUS_APP_LIGHTING)

CBUS_LEVEL_CODINGS = (0x07, 0x47)  # level status from this interface / elsewhere

# Reset, then application address 1 = lighting, interface options 3 =
# LOCAL_SAL|EXSTAT, interface options 1 = CONNECT|SRCHK|SMART|MONITOR|IDMON
CBUS_RESET = "~~~"
CBUS_INIT_FRAMES = ("@A3210038", "@A3420006", "@A3300079")

CBUS_POLL_INTERVAL = 180.0
CBUS_REFRESH_THRESHOLD = 120.0
CBUS_READINESS_THRESHOLD = 600.0

# Traffic must arrive at least this often; there is no test request, the link
# is dropped and reopened
CBUS_MONITOR_TIMEOUT = 60.0

# ============================================================================
# MRC88 AUDIO MATRIX
# ============================================================================

MRC88_MAX_ZONES = 16
MRC88_SINGLE_ZONES = 8
MRC88_FIRST_ZONE = 1
MRC88_MAX_SOURCES = 8
MRC88_TX_TERMINATOR = ""  # commands carry their own '+' terminator
MRC88_RX_DELIMITER = "\r"

MRC88_ACTIVITY_ON = "!ZA1+"  # also the idle-link keepalive
MRC88_MONITOR_TIMEOUT = 60.0

MRC88_POLL_INTERVAL = 20.0
MRC88_REFRESH_THRESHOLD = 90.0
MRC88_READINESS_THRESHOLD = 180.0

DEFAULT_SOURCE_NAMES = {i: f"Source {i}" for i in range(1, MRC88_MAX_SOURCES + 1)}
