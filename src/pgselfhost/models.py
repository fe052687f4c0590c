"""Shared domain models for pgselfhost."""

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Iterator, Mapping, Optional, Tuple

from .constants import (
    DEFAULT_ADMIN_UI_EMAIL,
    DEFAULT_ADMIN_UI_PORT,
    DEFAULT_DATABASE_NAME,
    DEFAULT_DATABASE_PORT,
)


@dataclass(frozen=True)
class Role:
    """A logical identity that receives its own generated credential."""

    name: str
    label: str
    login: Optional[str]
    env_key: str
    description: str


ADMINISTRATOR = "administrator"
APPLICATION = "application"
READONLY = "readonly"
BACKUP = "backup"
ADMIN_UI = "admin_ui"

ROLES: Tuple[Role, ...] = (
    Role(ADMINISTRATOR, "Admin User", "postgres", "POSTGRES_PASSWORD", "Superuser"),
    Role(APPLICATION, "App User", "app_user", "APP_USER_PASSWORD", "Full Access"),
    Role(READONLY, "Read-Only User", "readonly_user", "READONLY_PASSWORD", "Read Only"),
    Role(BACKUP, "Backup User", "backup_user", "BACKUP_PASSWORD", "Backup & Monitoring"),
    # The admin UI login is an e-mail address, not a database role.
    Role(ADMIN_UI, "pgAdmin", None, "PGADMIN_DEFAULT_PASSWORD", "Web Interface"),
)

ROLES_BY_NAME = {role.name: role for role in ROLES}


@dataclass(frozen=True)
class DeploymentParameters:
    """Resolved inputs for one provisioning run."""

    directory: str
    host_address: str
    host_address_origin: str
    permitted_addresses: Tuple[str, ...] = ()
    open_access: bool = False
    internal_only: bool = False
    database_port: int = DEFAULT_DATABASE_PORT
    admin_ui_port: int = DEFAULT_ADMIN_UI_PORT
    database_name: str = DEFAULT_DATABASE_NAME
    admin_ui_email: str = DEFAULT_ADMIN_UI_EMAIL

    @property
    def host_address_degraded(self) -> bool:
        return self.host_address_origin == "placeholder"

    @property
    def database_exposed(self) -> bool:
        """False when the database port is reachable only on the compose network."""
        return not self.internal_only

    @property
    def is_open(self) -> bool:
        """True when nothing restricts which addresses may attempt a login."""
        return not self.permitted_addresses and not self.internal_only

    @property
    def access_mode(self) -> str:
        if self.internal_only:
            return "internal"
        return "open" if self.is_open else "whitelist"


@dataclass(frozen=True)
class CredentialSet:
    """One secret per role, generated once per run."""

    secrets: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "secrets", MappingProxyType(dict(self.secrets)))

    def __getitem__(self, role_name: str) -> str:
        return self.secrets[role_name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.secrets)

    def __len__(self) -> int:
        return len(self.secrets)

    def items(self):
        return self.secrets.items()


@dataclass(frozen=True)
class AccessRule:
    """One pg_hba row; the compiled list is matched top to bottom."""

    priority: int
    connection_type: str
    source: str
    method: str
    scope: str
    database: str = "all"
    user: str = "all"

    @property
    def is_reject(self) -> bool:
        return self.method == "reject"


@dataclass(frozen=True)
class Artifact:
    """A rendered output file, relative to the install directory."""

    kind: str
    relative_path: str
    content: str
    mode: int
    owner: Optional[Tuple[int, int]] = None
    secret: bool = False
