# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

revision = "1.2.0"

TOOL_NAME = "distup"

DEFAULT_STATE_DIR = "/var/lib/distup"
DEFAULT_LOG_DIR = "/var/log"
DEFAULT_SNAPSHOT_RECORD_DIR = "/tmp"
DEFAULT_HOOKS_DIR = "/etc/distup/hooks.d"

DEFAULT_MIN_DISK_SPACE_GIB = 5
DEFAULT_MIN_BATTERY_PERCENT = 50
DEFAULT_NETWORK_HOSTS = ("1.1.1.1", "8.8.8.8", "9.9.9.9")

LOG_TIMESTAMP_FORMAT = "%Y%m%d-%H%M%S"
