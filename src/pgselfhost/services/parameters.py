"""Input validation and parameter resolution for pgselfhost."""

import ipaddress
import os
import re
from typing import Iterable, List, Optional, Tuple

from pgselfhost.constants import (
    DEFAULT_ADMIN_UI_EMAIL,
    DEFAULT_ADMIN_UI_PORT,
    DEFAULT_BASE_DIR,
    DEFAULT_DATABASE_NAME,
    DEFAULT_DATABASE_PORT,
)
from pgselfhost.errors import ValidationError
from pgselfhost.errors_catalog import actionable_error
from pgselfhost.models import DeploymentParameters

_HOSTNAME_LABEL = re.compile(r"^(?!-)[A-Za-z0-9-]{1,63}(?<!-)$")
_DATABASE_NAME = re.compile(r"^[a-z_][a-z0-9_]{0,62}$")
_EMAIL = re.compile(r"^[A-Za-z0-9._%+-]+@[A-Za-z0-9-]+(\.[A-Za-z0-9-]+)+$")
_ADDRESS_SEPARATORS = re.compile(r"[\s,]+")


class ParameterResolver:
    """Validates raw inputs and produces immutable DeploymentParameters."""

    def __init__(self, address_detector, logger):
        self.address_detector = address_detector
        self.logger = logger

    def resolve(
        self,
        directory: Optional[str] = None,
        host_address: Optional[str] = None,
        permitted_addresses: Optional[Iterable[str]] = None,
        open_access: bool = False,
        internal_only: bool = False,
        database_port: int = DEFAULT_DATABASE_PORT,
        admin_ui_port: int = DEFAULT_ADMIN_UI_PORT,
        database_name: str = DEFAULT_DATABASE_NAME,
        admin_ui_email: str = DEFAULT_ADMIN_UI_EMAIL,
    ) -> DeploymentParameters:
        resolved_directory = self.resolve_directory(directory)
        addresses = self.normalize_permitted_addresses(permitted_addresses or [])

        chosen = [bool(addresses), bool(open_access), bool(internal_only)]
        if sum(chosen) > 1:
            raise ValidationError(actionable_error("access_mode_conflict"))
        if not any(chosen):
            raise ValidationError(actionable_error("access_mode_required"))

        self.validate_ports(database_port, admin_ui_port)
        if not _DATABASE_NAME.match(database_name or ""):
            raise ValidationError(
                f"Invalid database name '{database_name}'. Use lowercase letters, digits and '_'."
            )
        if not _EMAIL.match(admin_ui_email or ""):
            raise ValidationError(f"Invalid pgAdmin e-mail address '{admin_ui_email}'.")

        if host_address is not None:
            address, origin = self.validate_host_address(host_address), "explicit"
        else:
            address, origin = self.address_detector.detect()

        return DeploymentParameters(
            directory=resolved_directory,
            host_address=address,
            host_address_origin=origin,
            permitted_addresses=addresses,
            open_access=bool(open_access),
            internal_only=bool(internal_only),
            database_port=int(database_port),
            admin_ui_port=int(admin_ui_port),
            database_name=database_name,
            admin_ui_email=admin_ui_email,
        )

    def resolve_directory(self, directory: Optional[str]) -> str:
        raw = DEFAULT_BASE_DIR if directory is None else directory
        clean = raw.strip()

        if not clean or any(char in clean for char in ("\x00", "\n", "\r", ":")):
            raise ValidationError(actionable_error("invalid_directory", path=repr(raw)))

        resolved = os.path.abspath(os.path.expanduser(clean))
        if os.path.exists(resolved) and not os.path.isdir(resolved):
            raise ValidationError(actionable_error("directory_is_file", path=resolved))
        return resolved

    def validate_host_address(self, value: str) -> str:
        clean = (value or "").strip()
        try:
            return str(ipaddress.ip_address(clean))
        except ValueError:
            pass

        hostname = clean[:-1] if clean.endswith(".") else clean
        labels = hostname.split(".")
        if hostname and len(hostname) <= 253 and all(_HOSTNAME_LABEL.match(label) for label in labels):
            if not labels[-1].isdigit():
                return hostname

        raise ValidationError(actionable_error("invalid_host_address", value=repr(value)))

    def normalize_permitted_addresses(self, entries: Iterable[str]) -> Tuple[str, ...]:
        """Split, validate and normalize to CIDR, keeping first-seen order."""
        normalized: List[str] = []
        seen = set()

        for entry in entries:
            for token in _ADDRESS_SEPARATORS.split(entry or ""):
                if not token:
                    continue
                cidr = self._to_cidr(token)
                if cidr in seen:
                    self.logger.debug("Ignoring duplicate permitted address %s", token)
                    continue
                seen.add(cidr)
                normalized.append(cidr)

        return tuple(normalized)

    def validate_ports(self, database_port, admin_ui_port):
        for label, value in (("database", database_port), ("pgAdmin", admin_ui_port)):
            try:
                port = int(value)
            except (TypeError, ValueError):
                port = 0
            if isinstance(value, bool) or not 1 <= port <= 65535:
                raise ValidationError(
                    actionable_error("invalid_port", label=label, value=repr(value))
                )

        if int(database_port) == int(admin_ui_port):
            raise ValidationError(
                actionable_error("invalid_port", label="pgAdmin", value=repr(admin_ui_port))
            )

    def _to_cidr(self, token: str) -> str:
        try:
            network = ipaddress.ip_network(token, strict=False)
        except ValueError as exc:
            raise ValidationError(
                actionable_error("invalid_permitted_address", value=repr(token))
            ) from exc

        if network.with_prefixlen != token and "/" in token:
            self.logger.warning("Permitted range %s normalized to %s", token, network.with_prefixlen)
        return network.with_prefixlen
