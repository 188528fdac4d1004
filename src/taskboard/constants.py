STATE_DIR_NAME = ".taskboard"
BOARD_FILE = "board.yaml"
LOCK_FILE = "board.lock"
CONFIG_FILE = "config.yaml"

STATE_SCHEMA_VERSION = 1
WINDOWS_LOCK_BYTES = 4096

STATE_DIR_ENV = "TASKBOARD_STATE_DIR"
LOG_LEVEL_ENV = "TASKBOARD_LOG_LEVEL"

DEFAULT_COLUMNS = (
    ("todo", "To Do"),
    ("inprogress", "In Progress"),
    ("done", "Done"),
)

PROJECT_NAME_MAX = 100
PROJECT_DESCRIPTION_MAX = 500
TASK_TITLE_MAX = 200
TASK_DESCRIPTION_MAX = 1000

DEFAULT_MOVE_TIMEOUT_SECONDS = 10.0
DEFAULT_MOVE_MAX_RETRIES = 3  # Conditional-write retries before StorageFailure
DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_SERVER_HOST = "127.0.0.1"
DEFAULT_SERVER_PORT = 8000
