"""Where raw run inputs come from: terminal prompts or flags/environment."""

from typing import List, Optional, Sequence, Tuple

import click

from pgselfhost.errors import UserCancelled
from pgselfhost.errors_catalog import actionable_error

# (permitted addresses, open access, internal only)
AccessChoice = Tuple[List[str], bool, bool]

ACCESS_CHOICES = ("internal", "whitelist", "open")


class ParameterSource:
    """Supplies the directory, access choice and write confirmation."""

    interactive = False

    def __init__(
        self,
        directory: Optional[str] = None,
        permitted_addresses: Sequence[str] = (),
        open_access: bool = False,
        internal_only: bool = False,
        assume_yes: bool = False,
    ):
        self._directory = directory
        self._permitted_addresses = list(permitted_addresses)
        self._open_access = open_access
        self._internal_only = internal_only
        self.assume_yes = assume_yes

    def directory(self, default: str) -> str:
        raise NotImplementedError

    def access(self) -> AccessChoice:
        raise NotImplementedError

    def confirm(self, message: str) -> bool:
        raise NotImplementedError

    def _flag_access(self) -> AccessChoice:
        return list(self._permitted_addresses), self._open_access, self._internal_only


class FlagParameterSource(ParameterSource):
    """Non-interactive: never reads from the terminal."""

    def directory(self, default: str) -> str:
        return self._directory or default

    def access(self) -> AccessChoice:
        return self._flag_access()

    def confirm(self, message: str) -> bool:
        if not self.assume_yes:
            raise UserCancelled(actionable_error("confirmation_required"))
        return True


class InteractiveParameterSource(ParameterSource):
    """Prompts on the terminal for anything the flags did not settle."""

    interactive = True

    def __init__(self, *args, prompt=click.prompt, confirm_prompt=click.confirm, **kwargs):
        super().__init__(*args, **kwargs)
        self.prompt = prompt
        self.confirm_prompt = confirm_prompt

    def directory(self, default: str) -> str:
        if self._directory:
            return self._directory
        return self.prompt("Installation directory", default=default)

    def access(self) -> AccessChoice:
        if self._permitted_addresses or self._open_access or self._internal_only:
            return self._flag_access()

        mode = self.prompt(
            "PostgreSQL access (internal = Docker network only, whitelist = specific IPs, open = any IP)",
            type=click.Choice(ACCESS_CHOICES),
            default="internal",
        )
        if mode == "internal":
            return [], False, True

        if mode == "whitelist":
            answer = self.prompt(
                "Allowed client addresses (comma-separated IPs/CIDRs, blank for Docker network only)",
                default="",
                show_default=False,
            )
            if answer.strip():
                return [answer], False, False
            return [], False, True

        if not self.confirm_prompt(
            "Accept database logins from ANY address (open access)?",
            default=False,
        ):
            raise UserCancelled("Open access declined.")
        return [], True, False

    def confirm(self, message: str) -> bool:
        if self.assume_yes:
            return True
        return self.confirm_prompt(message, default=False)
