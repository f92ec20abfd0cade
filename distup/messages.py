# Copyright 2023-2025. WebPros International GmbH. All rights reserved.

UPGRADE_COMPLETED_MESSAGE = """
\033[92m**************************************************************************************
The upgrade of {distro} to {channel} {target_version} has finished.
The log is saved to {logfile_path}.
**************************************************************************************\033[0m
"""

DRY_RUN_COMPLETED_MESSAGE = """
\033[92m**************************************************************************************
Dry run finished. No changes were made to the system.
**************************************************************************************\033[0m
"""

ALREADY_LATEST_MESSAGE = """
\033[92m**************************************************************************************
{distro} is already running the latest {channel} release ({current_version}). Nothing to do.
**************************************************************************************\033[0m
"""

REBOOT_RECOMMENDED_MESSAGE = """
\033[93m**************************************************************************************
A reboot is required to finish the upgrade. Run '{reboot_command}' when ready.
**************************************************************************************\033[0m
"""

ROLLBACK_FINISHED_MESSAGE = """
\033[93m**************************************************************************************
The package manager configuration has been restored from the backup.
Packages which were already upgraded are not downgraded.
**************************************************************************************\033[0m
"""

FAIL_MESSAGE_HEAD = """
\033[91m**************************************************************************************
The upgrade process has failed. Here are the last 100 lines of the {logfile_path} file:
**************************************************************************************\033[0m
"""

FAIL_MESSAGE_TAIL = """
\033[91m**************************************************************************************
The upgrade process has failed. See the {logfile_path} file for more information.
The last 100 lines of the file are shown above.{additional_message}
**************************************************************************************\033[0m
"""

INTERRUPTED_MESSAGE = """
\033[91m**************************************************************************************
The upgrade process was stopped by signal {signum}. The system may be partially upgraded.
Backups of the package manager configuration are listed in {backups_path}.
**************************************************************************************\033[0m
"""

NOT_SUPPORTED_ERROR = "Your distribution is not supported by {util_name}."

SNAPSHOT_TOOL_MISSING_WARNING = (
    "Warning: no snapshot tool (timeshift, snapper, btrfs, LVM) is available. "
    "Make sure you have a backup of the system before continuing.\n"
)
