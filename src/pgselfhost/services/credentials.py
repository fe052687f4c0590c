"""Credential generation and opt-in preservation for pgselfhost."""

import os
import secrets
from typing import Dict, Sequence

from pgselfhost.constants import ENV_FILE, SECRET_ALPHABET, SECRET_LENGTH
from pgselfhost.errors import RandomSourceError, ValidationError
from pgselfhost.errors_catalog import actionable_error
from pgselfhost.models import ROLES, CredentialSet, Role


def is_safe_secret(value: str) -> bool:
    """True when the value is non-empty and needs no escaping in any artifact."""
    return bool(value) and all(char in SECRET_ALPHABET for char in value)


class CredentialGenerator:
    """Draws one alphanumeric secret per role from the OS entropy source."""

    def __init__(
        self,
        logger,
        roles: Sequence[Role] = ROLES,
        length: int = SECRET_LENGTH,
        random_module=secrets,
    ):
        self.logger = logger
        self.roles = tuple(roles)
        self.length = length
        self.random = random_module

    def generate_secret(self) -> str:
        try:
            value = "".join(self.random.choice(SECRET_ALPHABET) for _ in range(self.length))
        except (OSError, NotImplementedError) as exc:
            raise RandomSourceError(f"Secure random source unavailable: {exc}") from exc

        if len(value) != self.length or not is_safe_secret(value):
            raise RandomSourceError("Random source produced a secret outside the allowed alphabet.")
        return value

    def generate(self) -> CredentialSet:
        self.logger.info("Generating %s credentials...", len(self.roles))
        return CredentialSet({role.name: self.generate_secret() for role in self.roles})


class CredentialStore:
    """Reads a previous run's environment file back into a CredentialSet."""

    ENV_FILE_NAME = ENV_FILE

    def __init__(self, logger, roles: Sequence[Role] = ROLES):
        self.logger = logger
        self.roles = tuple(roles)

    def load(self, directory: str) -> CredentialSet:
        path = os.path.join(directory, self.ENV_FILE_NAME)
        if not os.path.isfile(path):
            raise ValidationError(actionable_error("credentials_not_found", path=path))

        try:
            with open(path, "r", encoding="utf-8") as file_obj:
                values = self.parse_env(file_obj.read())
        except OSError as exc:
            raise ValidationError(f"Could not read environment file '{path}': {exc}") from exc

        loaded = {}
        invalid = []
        for role in self.roles:
            value = values.get(role.env_key, "")
            if not is_safe_secret(value):
                invalid.append(role.env_key)
                continue
            loaded[role.name] = value

        if invalid:
            raise ValidationError(
                actionable_error("credentials_incomplete", path=path, keys=", ".join(invalid))
            )

        self.logger.info("Reusing %s credentials from %s", len(loaded), path)
        return CredentialSet(loaded)

    @staticmethod
    def parse_env(content: str) -> Dict[str, str]:
        values: Dict[str, str] = {}
        for line in content.splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#") or "=" not in stripped:
                continue
            key, value = stripped.split("=", 1)
            value = value.strip()
            if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
                value = value[1:-1]
            values[key.strip()] = value
        return values
