STATE_DIR_NAME = ".tt"
STORE_FILE = "tasks.yaml"
STORE_LOCK_FILE = "tasks.lock"
CONFIG_FILE = "config.yaml"
STORE_VERSION = 1

ORDER_STEP = 10.0
WINDOWS_LOCK_BYTES = 4096

DEFAULT_LOG_LEVEL = "WARNING"
DEFAULT_OUTPUT_FORMAT = "text"
DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 8765

TARGET_CONFIG_KEY = "target_id"
