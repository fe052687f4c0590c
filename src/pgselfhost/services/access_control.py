"""Compiles permitted addresses into ordered pg_hba rules."""

from typing import List, Sequence, Tuple

from pgselfhost.constants import (
    INTERNAL_SUBNET,
    NETWORK_AUTH_METHOD,
    REJECT_METHOD,
    TRUSTED_AUTH_METHOD,
)
from pgselfhost.models import AccessRule, DeploymentParameters

# (connection type, source, scope); the socket rule has no address.
TRUSTED_SOURCES: Tuple[Tuple[str, str, str], ...] = (
    ("local", "", "local"),
    ("host", "127.0.0.1/32", "local"),
    ("host", "::1/128", "local"),
    ("host", INTERNAL_SUBNET, "internal"),
)

UNIVERSAL_SOURCES = ("0.0.0.0/0", "::/0")


class AccessControlCompiler:
    """Builds the first-match-wins rule list for the database engine.

    Trusted sources come first, then one rule per permitted address in input
    order, then a reject pair covering both address families. The reject pair
    is omitted when no permitted addresses are given: in open access the
    image's stock rules take over, and in internal-only mode unmatched
    connections are refused by pg_hba itself.
    """

    def __init__(self, logger, trusted_sources: Sequence[Tuple[str, str, str]] = TRUSTED_SOURCES):
        self.logger = logger
        self.trusted_sources = tuple(trusted_sources)

    def compile(self, parameters: DeploymentParameters) -> Tuple[AccessRule, ...]:
        entries: List[Tuple[str, str, str, str]] = []

        for connection_type, source, scope in self.trusted_sources:
            entries.append((connection_type, source, TRUSTED_AUTH_METHOD, scope))

        for cidr in parameters.permitted_addresses:
            entries.append(("host", cidr, NETWORK_AUTH_METHOD, "network"))

        if parameters.permitted_addresses:
            for source in UNIVERSAL_SOURCES:
                entries.append(("host", source, REJECT_METHOD, "network"))
        elif parameters.internal_only:
            self.logger.info("Internal-only access: the database port is not published.")
        else:
            self.logger.warning(
                "No permitted addresses supplied: access control runs in OPEN mode."
            )

        rules = tuple(
            AccessRule(
                priority=index,
                connection_type=connection_type,
                source=source,
                method=method,
                scope=scope,
            )
            for index, (connection_type, source, method, scope) in enumerate(entries, start=1)
        )
        self.logger.debug("Compiled %s access rules", len(rules))
        return rules
