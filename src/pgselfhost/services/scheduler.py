"""Nightly backup registration through the invoking user's crontab."""

import os

from pgselfhost.constants import BACKUP_CRON_SCHEDULE, BACKUP_SCRIPT_FILE


class BackupScheduler:
    """Adds the backup script to crontab once."""

    def __init__(self, command_runner, logger, schedule: str = BACKUP_CRON_SCHEDULE):
        self.command_runner = command_runner
        self.logger = logger
        self.schedule = schedule

    def cron_line(self, directory: str) -> str:
        script = os.path.join(directory, *BACKUP_SCRIPT_FILE.split("/"))
        return f"{self.schedule} {script}"

    def install(self, directory: str) -> bool:
        """Return True when a new entry was added, False when already present."""
        line = self.cron_line(directory)
        # "crontab -l" exits non-zero when the user has no crontab yet.
        current = self.command_runner.run(["crontab", "-l"], check=False)
        existing = current.stdout if current.returncode == 0 else ""

        if any(entry.strip() == line for entry in existing.splitlines()):
            self.logger.info("Backup cron entry already present: %s", line)
            return False

        content = existing if not existing or existing.endswith("\n") else existing + "\n"
        self.command_runner.run(["crontab", "-"], input_text=f"{content}{line}\n")
        self.logger.info("Registered backup cron entry: %s", line)
        return True
