import logging
import os
import sys

import click
from rich.logging import RichHandler

from .constants import (
    DEFAULT_ADMIN_UI_EMAIL,
    DEFAULT_ADMIN_UI_PORT,
    DEFAULT_DATABASE_NAME,
    DEFAULT_DATABASE_PORT,
)
from .core import StackProvisioner
from .errors import ProvisionerError
from .services.config_loader import ConfigLoader
from .services.parameter_sources import FlagParameterSource, InteractiveParameterSource

ALLOWED_IPS_ENVVAR = "PGSELFHOST_ALLOWED_IPS"


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


@click.command()
@click.option("--dir", "directory", required=False, help="Installation directory (default: /srv/postgres16)")
@click.option("--ip", "host_address", required=False, help="Server address (default: auto-detect)")
@click.option(
    "--allow",
    multiple=True,
    envvar=ALLOWED_IPS_ENVVAR,
    help=f"Permitted client IP or CIDR; repeatable or comma-separated. Also read from {ALLOWED_IPS_ENVVAR}.",
)
@click.option(
    "--open-access",
    is_flag=True,
    default=None,
    help="Accept database logins from any address. One of --allow, --internal-only or --open-access is required.",
)
@click.option(
    "--internal-only",
    is_flag=True,
    default=None,
    help="Keep PostgreSQL on the Docker network; do not publish its port.",
)
@click.option("--db-port", type=int, default=None, help="Published PostgreSQL port (default: 5432)")
@click.option("--pgadmin-port", type=int, default=None, help="Published pgAdmin port (default: 5050)")
@click.option("--database-name", required=False, help="Application database name (default: app_db)")
@click.option("--pgadmin-email", required=False, help="pgAdmin login e-mail (default: admin@example.com)")
@click.option(
    "--keep-credentials",
    is_flag=True,
    default=None,
    help="Reuse the passwords from the existing .env instead of generating new ones.",
)
@click.option(
    "--non-interactive",
    is_flag=True,
    default=None,
    help="Never prompt; take every input from flags, config and environment.",
)
@click.option("--yes", "-y", "assume_yes", is_flag=True, default=False, help="Write without asking for confirmation.")
@click.option("--dry-run", is_flag=True, default=False, help="Show the plan without writing any files.")
@click.option(
    "--schedule-backups",
    is_flag=True,
    default=None,
    help="Register a nightly crontab entry for scripts/backup.sh.",
)
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .pgselfhost.yml if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
def main(
    directory,
    host_address,
    allow,
    open_access,
    internal_only,
    db_port,
    pgadmin_port,
    database_name,
    pgadmin_email,
    keep_credentials,
    non_interactive,
    assume_yes,
    dry_run,
    schedule_backups,
    config,
    verbose,
    log_file,
):
    """Generate a PostgreSQL 16 + TimescaleDB + pgAdmin 4 stack configuration."""
    logger = logging.getLogger("pgselfhost")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ".pgselfhost.yml")
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except ProvisionerError as exc:
        raise click.ClickException(str(exc)) from exc

    directory = _resolve_option(directory, config_values, "dir")
    host_address = _resolve_option(host_address, config_values, "ip")
    allow = list(_resolve_option(list(allow) or None, config_values, "allow", default=[]))
    open_access = bool(_resolve_option(open_access, config_values, "open_access", default=False))
    internal_only = bool(_resolve_option(internal_only, config_values, "internal_only", default=False))
    db_port = _resolve_option(db_port, config_values, "db_port", default=DEFAULT_DATABASE_PORT)
    pgadmin_port = _resolve_option(pgadmin_port, config_values, "pgadmin_port", default=DEFAULT_ADMIN_UI_PORT)
    database_name = _resolve_option(database_name, config_values, "database_name", default=DEFAULT_DATABASE_NAME)
    pgadmin_email = _resolve_option(pgadmin_email, config_values, "pgadmin_email", default=DEFAULT_ADMIN_UI_EMAIL)
    keep_credentials = bool(
        _resolve_option(keep_credentials, config_values, "keep_credentials", default=False)
    )
    non_interactive = bool(
        _resolve_option(non_interactive, config_values, "non_interactive", default=not sys.stdin.isatty())
    )
    schedule_backups = bool(
        _resolve_option(schedule_backups, config_values, "schedule_backups", default=False)
    )
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    if log_file:
        file_handler = logging.FileHandler(log_file)
        file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
        file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
        logger.addHandler(file_handler)

    source_class = FlagParameterSource if non_interactive else InteractiveParameterSource
    source = source_class(
        directory=directory,
        permitted_addresses=allow,
        open_access=open_access,
        internal_only=internal_only,
        assume_yes=assume_yes,
    )

    try:
        provisioner = StackProvisioner(
            source=source,
            host_address=host_address,
            database_port=db_port,
            admin_ui_port=pgadmin_port,
            database_name=database_name,
            admin_ui_email=pgadmin_email,
            keep_credentials=keep_credentials,
            dry_run=dry_run,
            schedule_backups=schedule_backups,
            verbose=verbose,
        )
    except ProvisionerError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(provisioner.run())


if __name__ == "__main__":
    main()
