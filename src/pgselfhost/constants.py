"""Shared constants for pgselfhost."""

DEFAULT_BASE_DIR = "/srv/postgres16"

DIR_MODE = 0o755
FILE_MODE = 0o644
SECRET_MODE = 0o600
SCRIPT_MODE = 0o750

# Numeric identities the container images run as.
POSTGRES_UID = 999
POSTGRES_GID = 999
PGADMIN_UID = 5050
PGADMIN_GID = 5050

DEFAULT_DATABASE_PORT = 5432
DEFAULT_ADMIN_UI_PORT = 5050
DEFAULT_DATABASE_NAME = "app_db"
DEFAULT_ADMIN_UI_EMAIL = "admin@example.com"

POSTGRES_IMAGE = "timescale/timescaledb:latest-pg16"
PGADMIN_IMAGE = "dpage/pgadmin4:latest"
POSTGRES_CONTAINER = "postgres16"
PGADMIN_CONTAINER = "pgadmin4"
NETWORK_NAME = "postgres_network"
INTERNAL_SUBNET = "172.28.0.0/16"

SECRET_LENGTH = 12
SECRET_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"

TRUSTED_AUTH_METHOD = "scram-sha-256"
NETWORK_AUTH_METHOD = "scram-sha-256"
REJECT_METHOD = "reject"

ADDRESS_ECHO_SERVICES = (
    "https://ifconfig.me",
    "https://icanhazip.com",
    "https://ipinfo.io/ip",
    "https://api.ipify.org",
)
PROBE_TIMEOUT_SECONDS = 3.0
PLACEHOLDER_HOST = "localhost"

# Subdirectories created under the install directory, with their owners.
BUNDLE_DIRECTORIES = {
    "data": (POSTGRES_UID, POSTGRES_GID),
    "pgadmin": (PGADMIN_UID, PGADMIN_GID),
    "backups": (POSTGRES_UID, POSTGRES_GID),
    "logs": (POSTGRES_UID, POSTGRES_GID),
    "config": None,
    "init": None,
    "scripts": None,
}

BACKUP_CRON_SCHEDULE = "0 2 * * *"
BACKUP_RETENTION_DAYS = 30
MANIFEST_FILE_NAME = ".provision-manifest.json"

ENV_FILE = ".env"
COMPOSE_FILE = "docker-compose.yml"
HBA_FILE = "config/pg_hba.conf"
POSTGRES_CONF_FILE = "config/postgresql.conf"
INIT_SQL_FILE = "init/01-init-database.sql"
CREDENTIALS_FILE = "CREDENTIALS.txt"
BACKUP_SCRIPT_FILE = "scripts/backup.sh"
MONITOR_SCRIPT_FILE = "scripts/monitor.sh"
