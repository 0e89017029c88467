"""
Core Module - Constants.

============================================================
RESPONSIBILITY
============================================================
Defines all system-wide constants.

- Provides single source of truth for magic values
- Documents the meaning of each constant
- Prevents hardcoding throughout codebase

============================================================
"""

from typing import Tuple


# ============================================================
# SYSTEM IDENTIFICATION
# ============================================================

SYSTEM_NAME = "IoT Control System Setup"
SYSTEM_VERSION = "4.8.0"


# ============================================================
# FILES AND DIRECTORIES
# ============================================================

PROGRESS_FILE_NAME = "setup_progress.txt"
"""Progress snapshot, relative to the base directory."""

LOG_DIR_NAME = "log"
LOG_FILE_NAME = "iot_setup.log"

ENV_FILE_NAME = "credentials.env"
"""Credentials and network parameters, dotenv format."""

MODULES_DIR_NAME = "modules"
"""Directory holding the module shell scripts."""

DEFAULT_LOCK_FILE = "/tmp/setup_iot_system.lock"
"""Process singleton lock."""

PROGRESS_LOCK_SUFFIX = ".lock"
"""Sidecar lock guarding progress file writes."""


# ============================================================
# EXECUTION
# ============================================================

DEFAULT_MODULE_TIMEOUT_SECONDS = 300.0
"""Wall-clock limit for a single module action."""

TERMINATE_GRACE_SECONDS = 5.0
"""Time between SIGTERM and SIGKILL for a timed-out action."""

CHILD_POLL_INTERVAL_SECONDS = 0.05
"""How often the supervisor polls the action process."""

EXIT_CODE_SUCCESS = 0
EXIT_CODE_FAILURE = 1
EXIT_CODE_TERMINATED = 143
EXIT_CODE_INTERRUPTED = 130


# ============================================================
# PRECONDITIONS
# ============================================================

DEFAULT_NETWORK_PROBE_HOST = "8.8.8.8"
DEFAULT_NETWORK_PROBE_PORT = 53
NETWORK_PROBE_TIMEOUT_SECONDS = 3.0
NETWORK_RECOVERY_WAIT_SECONDS = 5.0

DEFAULT_REQUIRED_SERVICE = "ssh"

MIN_FREE_MEMORY_KB = 100_000
MIN_FREE_DISK_KB = 1_000_000


# ============================================================
# MAINTENANCE
# ============================================================

# Services offered by the Restart System menu
RESTARTABLE_SERVICES: Tuple[str, ...] = (
    "nginx",
    "mosquitto",
    "iot-backend",
    "openvpn",
    "prometheus",
    "grafana-server",
)


# ============================================================
# ENVIRONMENT
# ============================================================

REQUIRED_ENV_VARS: Tuple[str, ...] = (
    "WIFI_SSID",
    "WIFI_PASSPHRASE",
    "AP_SSID",
    "AP_PASSPHRASE",
    "MQTT_USER",
    "MQTT_PASSWORD",
)


# ============================================================
# LOGGING
# ============================================================

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"
