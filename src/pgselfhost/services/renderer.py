"""Artifact rendering for pgselfhost.

Every artifact is derived from the same DeploymentParameters, CredentialSet and
access rule list. Secrets are alphanumeric, so no encoder escapes anything;
the renderer rejects any credential that would need it.
"""

import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

import yaml

from pgselfhost.constants import (
    BACKUP_RETENTION_DAYS,
    BACKUP_SCRIPT_FILE,
    COMPOSE_FILE,
    CREDENTIALS_FILE,
    ENV_FILE,
    FILE_MODE,
    HBA_FILE,
    INIT_SQL_FILE,
    INTERNAL_SUBNET,
    MONITOR_SCRIPT_FILE,
    NETWORK_AUTH_METHOD,
    NETWORK_NAME,
    PGADMIN_CONTAINER,
    PGADMIN_IMAGE,
    POSTGRES_CONF_FILE,
    POSTGRES_CONTAINER,
    POSTGRES_GID,
    POSTGRES_IMAGE,
    POSTGRES_UID,
    SCRIPT_MODE,
    SECRET_MODE,
)
from pgselfhost.errors import ValidationError
from pgselfhost.models import (
    ADMIN_UI,
    ADMINISTRATOR,
    APPLICATION,
    BACKUP,
    READONLY,
    ROLES,
    ROLES_BY_NAME,
    AccessRule,
    Artifact,
    CredentialSet,
    DeploymentParameters,
)
from pgselfhost.services.credentials import is_safe_secret
from pgselfhost.services.report import CredentialsReport, connection_string

CONTAINER_CONF_PATH = "/etc/postgresql/postgresql.conf"
CONTAINER_HBA_PATH = "/etc/postgresql/pg_hba.conf"

# Values the shell and compose both read verbatim when left unquoted.
_PLAIN_ENV_VALUE = re.compile(r"^[A-Za-z0-9_@%+=:,./-]*$")


def env_value(value: str) -> str:
    """Double-quote values that bash would split when backup.sh sources .env."""
    if _PLAIN_ENV_VALUE.match(value):
        return value
    return f'"{value}"'


class ArtifactRenderer:
    """Maps the resolved run inputs onto every output artifact."""

    def __init__(self, logger, report: Optional[CredentialsReport] = None):
        self.logger = logger
        self.report = report or CredentialsReport()

    def render(
        self,
        parameters: DeploymentParameters,
        credentials: CredentialSet,
        rules: Sequence[AccessRule],
        generated_at: Optional[datetime] = None,
    ) -> List[Artifact]:
        self.validate_credentials(credentials)
        timestamp = (generated_at or datetime.now(timezone.utc)).strftime("%Y-%m-%d %H:%M:%S %Z")
        postgres_owner = (POSTGRES_UID, POSTGRES_GID)

        artifacts = [
            Artifact(
                kind="environment",
                relative_path=ENV_FILE,
                content=self.render_env(parameters, credentials, timestamp),
                mode=SECRET_MODE,
                secret=True,
            ),
            Artifact(
                kind="compose",
                relative_path=COMPOSE_FILE,
                content=self.render_compose(parameters),
                mode=FILE_MODE,
            ),
            Artifact(
                kind="access_control",
                relative_path=HBA_FILE,
                content=self.render_hba(parameters, rules, timestamp),
                mode=FILE_MODE,
                owner=postgres_owner,
            ),
            Artifact(
                kind="engine_config",
                relative_path=POSTGRES_CONF_FILE,
                content=self.render_postgresql_conf(parameters),
                mode=FILE_MODE,
                owner=postgres_owner,
            ),
            Artifact(
                kind="init_script",
                relative_path=INIT_SQL_FILE,
                content=self.render_init_sql(parameters, credentials, timestamp),
                mode=SECRET_MODE,
                owner=postgres_owner,
                secret=True,
            ),
            Artifact(
                kind="credentials_report",
                relative_path=CREDENTIALS_FILE,
                content=self.report.render(parameters, credentials, rules, timestamp),
                mode=SECRET_MODE,
                secret=True,
            ),
            Artifact(
                kind="backup_script",
                relative_path=BACKUP_SCRIPT_FILE,
                content=self.render_backup_script(parameters),
                mode=SCRIPT_MODE,
            ),
            Artifact(
                kind="monitor_script",
                relative_path=MONITOR_SCRIPT_FILE,
                content=self.render_monitor_script(parameters),
                mode=SCRIPT_MODE,
            ),
        ]
        self.logger.debug("Rendered %s artifacts", len(artifacts))
        return artifacts

    def validate_credentials(self, credentials: CredentialSet):
        missing = [role.name for role in ROLES if role.name not in credentials]
        if missing:
            raise ValidationError(f"Credential set is missing roles: {', '.join(missing)}")

        unsafe = [name for name, value in credentials.items() if not is_safe_secret(value)]
        if unsafe:
            raise ValidationError(
                f"Credentials for {', '.join(sorted(unsafe))} contain characters outside [A-Za-z0-9]."
            )

    def render_env(
        self, parameters: DeploymentParameters, credentials: CredentialSet, timestamp: str
    ) -> str:
        sections = [
            (
                "POSTGRESQL CONFIGURATION",
                [
                    ("POSTGRES_USER", ROLES_BY_NAME[ADMINISTRATOR].login),
                    ("POSTGRES_PASSWORD", credentials[ADMINISTRATOR]),
                    ("POSTGRES_DB", "postgres"),
                    ("APP_DB_NAME", parameters.database_name),
                ],
            ),
            (
                "PGADMIN CONFIGURATION",
                [
                    ("PGADMIN_DEFAULT_EMAIL", parameters.admin_ui_email),
                    ("PGADMIN_DEFAULT_PASSWORD", credentials[ADMIN_UI]),
                    ("PGADMIN_CONFIG_SERVER_MODE", "True"),
                    ("PGADMIN_CONFIG_MASTER_PASSWORD_REQUIRED", "True"),
                ],
            ),
            (
                "DATABASE USERS",
                [
                    (ROLES_BY_NAME[role].env_key, credentials[role])
                    for role in (APPLICATION, READONLY, BACKUP)
                ],
            ),
            (
                "SERVER CONFIGURATION",
                [
                    ("SERVER_IP", parameters.host_address),
                    ("SERVER_PORT", str(parameters.database_port)),
                    ("PGADMIN_PORT", str(parameters.admin_ui_port)),
                    ("EXPOSE_POSTGRES", "true" if parameters.database_exposed else "false"),
                    ("ACCESS_MODE", parameters.access_mode),
                    ("ALLOWED_IPS", ",".join(parameters.permitted_addresses)),
                ],
            ),
            (
                "SECURITY SETTINGS",
                [
                    ("POSTGRES_HOST_AUTH_METHOD", NETWORK_AUTH_METHOD),
                    (
                        "POSTGRES_INITDB_ARGS",
                        f"--auth-host={NETWORK_AUTH_METHOD} --auth-local={NETWORK_AUTH_METHOD}",
                    ),
                    ("TIMESCALEDB_TELEMETRY", "off"),
                ],
            ),
            (
                "CONNECTION STRINGS",
                [
                    ("DATABASE_URL", connection_string(parameters, credentials, APPLICATION)),
                    ("DATABASE_URL_READONLY", connection_string(parameters, credentials, READONLY)),
                    ("DATABASE_URL_BACKUP", connection_string(parameters, credentials, BACKUP)),
                ],
            ),
        ]

        lines = [
            "# PostgreSQL 16 + TimescaleDB Configuration",
            f"# Generated: {timestamp}",
            f"# Server: {parameters.host_address}",
        ]
        for title, pairs in sections:
            lines.extend(["", f"# {title}"])
            lines.extend(f"{key}={env_value(value)}" for key, value in pairs)
        return "\n".join(lines) + "\n"

    def render_compose(self, parameters: DeploymentParameters) -> str:
        base = parameters.directory
        postgres_volumes = [
            f"{base}/data:/var/lib/postgresql/data",
            f"{base}/init:/docker-entrypoint-initdb.d:ro",
            f"{base}/backups:/backups",
            f"{base}/logs:/var/log/postgresql",
            f"{base}/{POSTGRES_CONF_FILE}:{CONTAINER_CONF_PATH}:ro",
        ]
        if not parameters.is_open:
            postgres_volumes.append(f"{base}/{HBA_FILE}:{CONTAINER_HBA_PATH}:ro")

        env_refs = [
            "POSTGRES_USER",
            "POSTGRES_PASSWORD",
            "POSTGRES_DB",
            "POSTGRES_HOST_AUTH_METHOD",
            "POSTGRES_INITDB_ARGS",
            "TIMESCALEDB_TELEMETRY",
        ]
        pgadmin_env_refs = [
            "PGADMIN_DEFAULT_EMAIL",
            "PGADMIN_DEFAULT_PASSWORD",
            "PGADMIN_CONFIG_SERVER_MODE",
            "PGADMIN_CONFIG_MASTER_PASSWORD_REQUIRED",
        ]

        pgadmin_environment = {key: f"${{{key}}}" for key in pgadmin_env_refs}
        pgadmin_environment["PGADMIN_CONFIG_ENHANCED_COOKIE_PROTECTION"] = "True"
        pgadmin_environment["PGADMIN_CONFIG_LOGIN_BANNER"] = '"Authorized access only!"'

        manifest: Dict[str, Any] = {
            "services": {
                "postgres": {
                    "image": POSTGRES_IMAGE,
                    "container_name": POSTGRES_CONTAINER,
                    "restart": "always",
                    "env_file": [ENV_FILE],
                    "environment": {key: f"${{{key}}}" for key in env_refs},
                    "volumes": postgres_volumes,
                    "command": ["postgres", "-c", f"config_file={CONTAINER_CONF_PATH}"],
                    "networks": [NETWORK_NAME],
                    "healthcheck": {
                        "test": ["CMD-SHELL", "pg_isready -U ${POSTGRES_USER} -d ${POSTGRES_DB}"],
                        "interval": "10s",
                        "timeout": "5s",
                        "retries": 5,
                        "start_period": "30s",
                    },
                },
                "pgadmin": {
                    "image": PGADMIN_IMAGE,
                    "container_name": PGADMIN_CONTAINER,
                    "restart": "always",
                    "environment": pgadmin_environment,
                    "volumes": [f"{base}/pgadmin:/var/lib/pgadmin"],
                    "ports": ["${PGADMIN_PORT}:80"],
                    "networks": [NETWORK_NAME],
                    "depends_on": {"postgres": {"condition": "service_healthy"}},
                },
            },
            "networks": {
                NETWORK_NAME: {
                    "driver": "bridge",
                    "ipam": {"config": [{"subnet": INTERNAL_SUBNET}]},
                }
            },
        }
        if parameters.database_exposed:
            manifest["services"]["postgres"]["ports"] = ["${SERVER_PORT}:5432"]
        return yaml.safe_dump(manifest, sort_keys=False, default_flow_style=False)

    def render_hba(
        self, parameters: DeploymentParameters, rules: Sequence[AccessRule], timestamp: str
    ) -> str:
        lines = [
            "# PostgreSQL client authentication",
            f"# Generated: {timestamp}",
            f"# Access mode: {parameters.access_mode}",
        ]
        if parameters.is_open:
            lines.append(
                "# OPEN ACCESS: this file is not mounted; the image's default host rules apply."
            )
        elif parameters.internal_only:
            lines.append("# INTERNAL ONLY: the database port is not published outside the Docker network.")
        lines.extend(["", f"# {'TYPE':<6} {'DATABASE':<10} {'USER':<10} {'ADDRESS':<24} METHOD"])

        for rule in rules:
            lines.append(
                f"{rule.connection_type:<8} {rule.database:<10} {rule.user:<10} "
                f"{rule.source:<24} {rule.method}"
            )
        return "\n".join(lines) + "\n"

    def render_postgresql_conf(self, parameters: DeploymentParameters) -> str:
        lines = [
            "# PostgreSQL 16 Optimized Configuration",
            "listen_addresses = '*'",
            "port = 5432",
            "max_connections = 200",
            "shared_buffers = 256MB",
            "effective_cache_size = 1GB",
            "maintenance_work_mem = 64MB",
            "work_mem = 4MB",
            "random_page_cost = 1.1",
            "effective_io_concurrency = 200",
            "",
            "# Logging",
            "logging_collector = on",
            "log_directory = '/var/log/postgresql'",
            "log_filename = 'postgresql-%Y-%m-%d_%H%M%S.log'",
            "log_rotation_age = 1d",
            "log_rotation_size = 100MB",
            "log_line_prefix = '%t [%p]: user=%u,db=%d,app=%a,client=%h '",
            "log_checkpoints = on",
            "log_connections = on",
            "log_disconnections = on",
            "log_lock_waits = on",
            "log_statement = 'ddl'",
            "",
            "# Security",
            f"password_encryption = {NETWORK_AUTH_METHOD}",
        ]
        if not parameters.is_open:
            lines.append(f"hba_file = '{CONTAINER_HBA_PATH}'")
        lines.extend(
            [
                "",
                "# TimescaleDB",
                "shared_preload_libraries = 'timescaledb,pg_stat_statements'",
                "timescaledb.telemetry_level = off",
            ]
        )
        return "\n".join(lines) + "\n"

    def render_init_sql(
        self, parameters: DeploymentParameters, credentials: CredentialSet, timestamp: str
    ) -> str:
        database = parameters.database_name
        admin = ROLES_BY_NAME[ADMINISTRATOR].login
        app = ROLES_BY_NAME[APPLICATION].login
        readonly = ROLES_BY_NAME[READONLY].login
        backup = ROLES_BY_NAME[BACKUP].login

        statements = [
            "-- PostgreSQL 16 + TimescaleDB Initialization",
            f"-- Generated: {timestamp}",
            "",
            "-- Enable extensions",
            "CREATE EXTENSION IF NOT EXISTS timescaledb CASCADE;",
            "CREATE EXTENSION IF NOT EXISTS pg_stat_statements;",
            "CREATE EXTENSION IF NOT EXISTS pgcrypto;",
            'CREATE EXTENSION IF NOT EXISTS "uuid-ossp";',
            "",
            "-- Administrator",
            f"ALTER USER {admin} WITH PASSWORD '{credentials[ADMINISTRATOR]}';",
            "",
            "-- Database users",
            f"CREATE USER {app} WITH PASSWORD '{credentials[APPLICATION]}';",
            f"CREATE USER {readonly} WITH PASSWORD '{credentials[READONLY]}';",
            f"CREATE USER {backup} WITH PASSWORD '{credentials[BACKUP]}';",
            "",
            "-- Application database",
            f"CREATE DATABASE {database} OWNER {app};",
            f"GRANT ALL PRIVILEGES ON DATABASE {database} TO {app};",
            f"GRANT CONNECT ON DATABASE {database} TO {readonly};",
            f"GRANT CONNECT ON DATABASE {database} TO {backup};",
            f"GRANT pg_read_all_data TO {backup};",
            f"GRANT pg_monitor TO {backup};",
            "",
            f"\\c {database}",
            "",
            "CREATE EXTENSION IF NOT EXISTS timescaledb CASCADE;",
            "CREATE EXTENSION IF NOT EXISTS pgcrypto;",
            'CREATE EXTENSION IF NOT EXISTS "uuid-ossp";',
            "",
            "-- Schema privileges",
            f"GRANT ALL ON SCHEMA public TO {app};",
            f"GRANT USAGE ON SCHEMA public TO {readonly};",
            f"ALTER DEFAULT PRIVILEGES FOR ROLE {app} IN SCHEMA public GRANT SELECT ON TABLES TO {readonly};",
            f"ALTER DEFAULT PRIVILEGES FOR ROLE {app} IN SCHEMA public GRANT SELECT ON SEQUENCES TO {readonly};",
            f"ALTER DEFAULT PRIVILEGES IN SCHEMA public GRANT ALL ON TABLES TO {app};",
            f"ALTER DEFAULT PRIVILEGES IN SCHEMA public GRANT ALL ON SEQUENCES TO {app};",
            "",
            "-- Audit table",
            "CREATE TABLE IF NOT EXISTS audit_log (",
            "    id SERIAL PRIMARY KEY,",
            "    timestamp TIMESTAMPTZ DEFAULT NOW(),",
            "    user_name TEXT,",
            "    database_name TEXT,",
            "    command_tag TEXT,",
            "    query TEXT",
            ");",
            "",
            "-- Sample hypertable",
            "CREATE TABLE IF NOT EXISTS metrics (",
            "    time TIMESTAMPTZ NOT NULL,",
            "    device_id TEXT,",
            "    temperature DOUBLE PRECISION,",
            "    humidity DOUBLE PRECISION,",
            "    location TEXT",
            ");",
            "SELECT create_hypertable('metrics', 'time', if_not_exists => TRUE);",
            "CREATE INDEX IF NOT EXISTS idx_metrics_device_time ON metrics (device_id, time DESC);",
            f"ALTER TABLE audit_log OWNER TO {app};",
            f"ALTER TABLE metrics OWNER TO {app};",
            "",
            "-- Read-only access to the tables created above",
            f"GRANT SELECT ON ALL TABLES IN SCHEMA public TO {readonly};",
            f"ALTER DEFAULT PRIVILEGES IN SCHEMA public GRANT SELECT ON TABLES TO {readonly};",
            "",
            "\\echo 'Database initialization complete!'",
        ]
        return "\n".join(statements) + "\n"

    def render_backup_script(self, parameters: DeploymentParameters) -> str:
        base = parameters.directory
        backup = ROLES_BY_NAME[BACKUP]
        return f"""#!/bin/bash
# PostgreSQL backup script
set -euo pipefail

source "{base}/{ENV_FILE}"

BACKUP_DIR="{base}/backups"
TIMESTAMP=$(date +%Y%m%d_%H%M%S)
BACKUP_FILE="$BACKUP_DIR/backup_$TIMESTAMP.sql"

echo "Starting backup..."
if docker exec -e PGPASSWORD="${backup.env_key}" {POSTGRES_CONTAINER} \\
    pg_dumpall -U {backup.login} -h 127.0.0.1 --no-role-passwords > "$BACKUP_FILE"; then
    gzip "$BACKUP_FILE"
    echo "Backup completed: $BACKUP_FILE.gz"
    find "$BACKUP_DIR" -name "backup_*.sql.gz" -mtime +{BACKUP_RETENTION_DAYS} -delete
    echo "Old backups cleaned"
else
    echo "Backup failed!"
    rm -f "$BACKUP_FILE"
    exit 1
fi
"""

    def render_monitor_script(self, parameters: DeploymentParameters) -> str:
        base = parameters.directory
        admin = ROLES_BY_NAME[ADMINISTRATOR].login
        if parameters.internal_only:
            access_line = 'echo "  PostgreSQL: Internal only (Docker network)"'
        elif parameters.is_open:
            access_line = 'echo "  PostgreSQL: ${SERVER_IP}:${SERVER_PORT} (OPEN ACCESS)"'
        else:
            access_line = 'echo "  PostgreSQL: ${SERVER_IP}:${SERVER_PORT} (allowed: ${ALLOWED_IPS})"'
        return f"""#!/bin/bash
# PostgreSQL + TimescaleDB status overview

source "{base}/{ENV_FILE}"

echo "Container Status:"
docker ps --format "table {{{{.Names}}}}\\t{{{{.Status}}}}\\t{{{{.Ports}}}}" | grep -E "NAME|{POSTGRES_CONTAINER}|{PGADMIN_CONTAINER}" || echo "No containers running"
echo ""

echo "Active Connections:"
docker exec -e PGPASSWORD="$POSTGRES_PASSWORD" {POSTGRES_CONTAINER} psql -U {admin} -c "SELECT datname, count(*) FROM pg_stat_activity GROUP BY datname;" 2>/dev/null || echo "Cannot retrieve connections"
echo ""

echo "Database Sizes:"
docker exec -e PGPASSWORD="$POSTGRES_PASSWORD" {POSTGRES_CONTAINER} psql -U {admin} -c "SELECT datname, pg_size_pretty(pg_database_size(datname)) AS size FROM pg_database WHERE datname NOT IN ('template0', 'template1');" 2>/dev/null || echo "Cannot retrieve sizes"
echo ""

echo "Resource Usage:"
docker stats --no-stream {POSTGRES_CONTAINER} {PGADMIN_CONTAINER} 2>/dev/null || echo "Cannot retrieve stats"
echo ""

echo "Access URLs:"
echo "  pgAdmin: http://${{SERVER_IP}}:${{PGADMIN_PORT}}"
{access_line}
"""