"""Subprocess execution service for pgselfhost."""

import subprocess
from typing import List, Optional

from pgselfhost.errors import ProvisionerError


class CommandRunner:
    """Runs external commands with consistent error handling."""

    def __init__(self, logger, default_timeout: Optional[float] = 30.0, subprocess_module=subprocess):
        self.logger = logger
        self.default_timeout = default_timeout
        self.subprocess = subprocess_module

    def run(
        self,
        cmd: List[str],
        check: bool = True,
        input_text: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> subprocess.CompletedProcess:
        cmd_str = " ".join(cmd)
        self.logger.debug("Executing: %s", cmd_str)
        effective_timeout = timeout if timeout is not None else self.default_timeout

        try:
            result = self.subprocess.run(
                cmd,
                text=True,
                input=input_text,
                capture_output=True,
                timeout=effective_timeout,
            )
        except FileNotFoundError as exc:
            raise ProvisionerError(
                f"Required command not found: {cmd[0]}. Please install it and try again."
            ) from exc
        except self.subprocess.TimeoutExpired as exc:
            raise ProvisionerError(f"Command timed out after {effective_timeout}s: {cmd_str}") from exc

        if result.stdout:
            self.logger.debug("Command output: %s", result.stdout.strip())

        if result.returncode == 0 or not check:
            return result

        message = f"Command failed ({result.returncode}): {cmd_str}"
        stderr = (result.stderr or "").strip()
        if stderr:
            message = f"{message}\n{stderr}"
        raise ProvisionerError(message)
