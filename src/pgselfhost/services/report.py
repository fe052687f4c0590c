"""Human-readable credentials report for pgselfhost."""

from typing import List, Sequence

from pgselfhost.constants import (
    BACKUP_SCRIPT_FILE,
    CREDENTIALS_FILE,
    MONITOR_SCRIPT_FILE,
    NETWORK_NAME,
    POSTGRES_CONTAINER,
    SECRET_LENGTH,
)
from pgselfhost.models import (
    ADMIN_UI,
    ADMINISTRATOR,
    APPLICATION,
    BACKUP,
    READONLY,
    ROLES_BY_NAME,
    AccessRule,
    CredentialSet,
    DeploymentParameters,
)

OPEN_ACCESS_WARNING = (
    "WARNING: OPEN ACCESS - no permitted-address list was supplied. "
    "The database accepts password logins from ANY address."
)
INTERNAL_ONLY_NOTE = (
    "The PostgreSQL port is not published; connect from containers on the {network} network."
)
PLACEHOLDER_WARNING = (
    "WARNING: The server address could not be detected and '{address}' is a placeholder. "
    "Update SERVER_IP and the connection strings before use."
)

RULE = "=" * 67
SECTION = "-" * 67


def url_host(address: str) -> str:
    return f"[{address}]" if ":" in address else address


def connection_string(
    parameters: DeploymentParameters, credentials: CredentialSet, role_name: str
) -> str:
    role = ROLES_BY_NAME[role_name]
    return (
        f"postgresql://{role.login}:{credentials[role_name]}"
        f"@{url_host(parameters.host_address)}:{parameters.database_port}"
        f"/{parameters.database_name}"
    )


class CredentialsReport:
    """Renders CREDENTIALS.txt from the same values as every other artifact."""

    def render(
        self,
        parameters: DeploymentParameters,
        credentials: CredentialSet,
        rules: Sequence[AccessRule],
        timestamp: str,
    ) -> str:
        base = parameters.directory
        host = url_host(parameters.host_address)
        lines: List[str] = [
            RULE,
            "           PostgreSQL 16 + TimescaleDB + pgAdmin 4",
            "                   Installation Credentials",
            RULE,
            f"Generated: {timestamp}",
            f"Server IP: {parameters.host_address}",
            f"Directory: {base}",
        ]

        warnings = self.warnings(parameters)
        if warnings:
            lines.append("")
            lines.extend(warnings)

        admin = ROLES_BY_NAME[ADMINISTRATOR]
        exposure = "(Exposed)" if parameters.database_exposed else "(Docker network only)"
        lines.extend(
            self._section("POSTGRESQL DATABASE")
            + [
                f"Host: {parameters.host_address}",
                f"Port: {parameters.database_port} {exposure}",
                f"Admin User: {admin.login}",
                f"Admin Password: {credentials[ADMINISTRATOR]}",
                f"Database: postgres / {parameters.database_name}",
            ]
        )

        lines.extend(
            self._section("PGADMIN WEB INTERFACE")
            + [
                f"URL: http://{host}:{parameters.admin_ui_port}",
                f"Email: {parameters.admin_ui_email}",
                f"Password: {credentials[ADMIN_UI]}",
            ]
        )

        lines.extend(self._section("DATABASE USERS"))
        for role_name in (APPLICATION, READONLY, BACKUP):
            role = ROLES_BY_NAME[role_name]
            lines.extend(
                [
                    f"{role.label} ({role.description}):",
                    f"  Username: {role.login}",
                    f"  Password: {credentials[role_name]}",
                    "",
                ]
            )
        lines.pop()

        lines.extend(self._section("CONNECTION STRINGS"))
        for role_name in (APPLICATION, READONLY, BACKUP):
            role = ROLES_BY_NAME[role_name]
            lines.extend(
                [
                    f"{role.label} ({role.description}):",
                    connection_string(parameters, credentials, role_name),
                    "",
                ]
            )
        lines.pop()

        lines.extend(self._section(f"ACCESS CONTROL ({parameters.access_mode.upper()})"))
        if parameters.internal_only:
            lines.append(INTERNAL_ONLY_NOTE.format(network=NETWORK_NAME))
        for rule in rules:
            source = rule.source or "unix socket"
            lines.append(f"{rule.priority:>2}. {rule.connection_type:<5} {source:<24} {rule.method}")

        lines.extend(
            self._section("QUICK COMMANDS")
            + [
                f"View this file: cat {base}/{CREDENTIALS_FILE}",
                f"Monitor status: {base}/{MONITOR_SCRIPT_FILE}",
                f"Run backup: {base}/{BACKUP_SCRIPT_FILE}",
                f"Connect to DB: docker exec -it {POSTGRES_CONTAINER} psql -U {admin.login}",
                "",
                RULE,
                f"Keep this file secure! All passwords are {SECRET_LENGTH} characters alphanumeric.",
                RULE,
            ]
        )
        return "\n".join(lines) + "\n"

    def warnings(self, parameters: DeploymentParameters) -> List[str]:
        warnings = []
        if parameters.is_open:
            warnings.append(OPEN_ACCESS_WARNING)
        if parameters.host_address_degraded:
            warnings.append(PLACEHOLDER_WARNING.format(address=parameters.host_address))
        return warnings

    @staticmethod
    def _section(title: str) -> List[str]:
        return ["", SECTION, f"{title}:", SECTION]
