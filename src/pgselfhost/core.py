import logging
import os
import subprocess
import uuid
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import requests
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .constants import (
    CREDENTIALS_FILE,
    DEFAULT_ADMIN_UI_EMAIL,
    DEFAULT_ADMIN_UI_PORT,
    DEFAULT_BASE_DIR,
    DEFAULT_DATABASE_NAME,
    DEFAULT_DATABASE_PORT,
    MANIFEST_FILE_NAME,
)
from .errors import FileSystemError, ProvisionerError, UserCancelled
from .models import ADMIN_UI, ADMINISTRATOR, AccessRule, Artifact, CredentialSet, DeploymentParameters
from .services.access_control import AccessControlCompiler
from .services.address_detection import HostAddressDetector
from .services.bundle_writer import BundleWriter, WriteReport
from .services.command_runner import CommandRunner
from .services.credentials import CredentialGenerator, CredentialStore
from .services.filesystem import FileSystemService
from .services.manifest import ManifestService
from .services.parameter_sources import FlagParameterSource, ParameterSource
from .services.parameters import ParameterResolver
from .services.renderer import ArtifactRenderer
from .services.report import CredentialsReport, url_host
from .services.scheduler import BackupScheduler

console = Console()
logger = logging.getLogger("pgselfhost")


@dataclass(frozen=True)
class Bundle:
    """Everything computed for one run, before anything touches the disk."""

    parameters: DeploymentParameters
    credentials: CredentialSet
    rules: Sequence[AccessRule]
    artifacts: Sequence[Artifact]


class StackProvisioner:
    def __init__(
        self,
        source: Optional[ParameterSource] = None,
        host_address: Optional[str] = None,
        database_port: int = DEFAULT_DATABASE_PORT,
        admin_ui_port: int = DEFAULT_ADMIN_UI_PORT,
        database_name: str = DEFAULT_DATABASE_NAME,
        admin_ui_email: str = DEFAULT_ADMIN_UI_EMAIL,
        keep_credentials: bool = False,
        dry_run: bool = False,
        schedule_backups: bool = False,
        verbose: bool = False,
    ):
        self.source = source or FlagParameterSource()
        self.host_address = host_address
        self.database_port = database_port
        self.admin_ui_port = admin_ui_port
        self.database_name = database_name
        self.admin_ui_email = admin_ui_email
        self.keep_credentials = keep_credentials
        self.dry_run = dry_run
        self.schedule_backups = schedule_backups
        self.verbose = verbose

        self.address_detector = HostAddressDetector(logger=logger, requests_module=requests)
        self.parameter_resolver = ParameterResolver(
            address_detector=self.address_detector,
            logger=logger,
        )
        self.credential_generator = CredentialGenerator(logger=logger)
        self.credential_store = CredentialStore(logger=logger)
        self.access_compiler = AccessControlCompiler(logger=logger)
        self.report = CredentialsReport()
        self.renderer = ArtifactRenderer(logger=logger, report=self.report)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.bundle_writer = BundleWriter(filesystem_service=self.filesystem_service, logger=logger)
        self.command_runner = CommandRunner(logger=logger, subprocess_module=subprocess)
        self.backup_scheduler = BackupScheduler(command_runner=self.command_runner, logger=logger)

        self.run_id = uuid.uuid4().hex[:10]

    def resolve_parameters(self) -> DeploymentParameters:
        directory = self.source.directory(DEFAULT_BASE_DIR)
        permitted_addresses, open_access, internal_only = self.source.access()
        return self.parameter_resolver.resolve(
            directory=directory,
            host_address=self.host_address,
            permitted_addresses=permitted_addresses,
            open_access=open_access,
            internal_only=internal_only,
            database_port=self.database_port,
            admin_ui_port=self.admin_ui_port,
            database_name=self.database_name,
            admin_ui_email=self.admin_ui_email,
        )

    def build_credentials(self, parameters: DeploymentParameters) -> CredentialSet:
        if self.keep_credentials:
            return self.credential_store.load(parameters.directory)
        return self.credential_generator.generate()

    def build_bundle(self) -> Bundle:
        """Runs every pure stage of the pipeline; writes nothing."""
        parameters = self.resolve_parameters()
        credentials = self.build_credentials(parameters)
        rules = self.access_compiler.compile(parameters)
        artifacts = self.renderer.render(parameters, credentials, rules)
        return Bundle(parameters=parameters, credentials=credentials, rules=rules, artifacts=artifacts)

    def _manifest_parameters(self, parameters: DeploymentParameters) -> Dict[str, Any]:
        return {
            "directory": parameters.directory,
            "host_address": parameters.host_address,
            "host_address_origin": parameters.host_address_origin,
            "access_mode": parameters.access_mode,
            "database_exposed": parameters.database_exposed,
            "permitted_addresses": list(parameters.permitted_addresses),
            "database_port": parameters.database_port,
            "admin_ui_port": parameters.admin_ui_port,
            "database_name": parameters.database_name,
            "credentials_preserved": self.keep_credentials,
        }

    def _manifest_artifacts(self, artifacts: Sequence[Artifact], written: List[str]) -> List[Dict[str, Any]]:
        return [
            {
                "path": artifact.relative_path,
                "kind": artifact.kind,
                "mode": oct(artifact.mode),
                "secret": artifact.secret,
            }
            for artifact in artifacts
            if artifact.relative_path in written
        ]

    def write_bundle(self, bundle: Bundle) -> WriteReport:
        directory = bundle.parameters.directory
        manifest = ManifestService(os.path.join(directory, MANIFEST_FILE_NAME), logger=logger)
        manifest.start_run(self.run_id, self._manifest_parameters(bundle.parameters))

        console.print(f"[blue]Writing configuration bundle to {directory}...[/blue]")
        try:
            report = self.bundle_writer.write(bundle.artifacts, directory)
        except FileSystemError as exc:
            manifest.add_artifacts(self._manifest_artifacts(bundle.artifacts, exc.completed))
            manifest.finalize("failed", error=str(exc), failed_artifact=exc.artifact)
            raise

        manifest.add_artifacts(self._manifest_artifacts(bundle.artifacts, report.written))
        manifest.finalize("success")
        return report

    def show_plan(self, bundle: Bundle):
        parameters = bundle.parameters
        console.print(f"[blue]Installation directory:[/blue] {escape(parameters.directory)}")
        console.print(
            f"[blue]Server address:[/blue] {escape(parameters.host_address)} "
            f"[dim]({parameters.host_address_origin})[/dim]"
        )
        if parameters.internal_only:
            console.print(
                "[green]Access mode: internal only (PostgreSQL port not published)[/green]"
            )
        elif parameters.is_open:
            console.print(
                "[bold yellow]Access mode: OPEN (any address may attempt to log in)[/bold yellow]"
            )
        else:
            allowed = escape(", ".join(parameters.permitted_addresses))
            console.print(f"[green]Access mode: whitelist ({allowed})[/green]")
        for warning in self.report.warnings(parameters):
            console.print(f"[yellow]{escape(warning)}[/yellow]")

        table = Table(title="Artifacts")
        table.add_column("Path")
        table.add_column("Mode")
        table.add_column("Owner")
        table.add_column("Secret")
        for artifact in bundle.artifacts:
            owner = f"{artifact.owner[0]}:{artifact.owner[1]}" if artifact.owner else "current user"
            table.add_row(
                artifact.relative_path,
                oct(artifact.mode),
                owner,
                "yes" if artifact.secret else "",
            )
        console.print(table)

    def show_summary(self, bundle: Bundle, report: WriteReport):
        parameters = bundle.parameters
        credentials = bundle.credentials
        host = escape(url_host(parameters.host_address))

        console.print("[bold green]Setup completed successfully![/bold green]")
        console.print(f"Wrote {len(report.written)} files to {report.directory}")
        if parameters.database_exposed:
            console.print(f"  PostgreSQL: {host}:{parameters.database_port} (user postgres)")
        else:
            console.print("  PostgreSQL: Docker network only (user postgres)")
        console.print(f"  pgAdmin:    http://{host}:{parameters.admin_ui_port} ({parameters.admin_ui_email})")
        if self.verbose:
            console.print(f"  Admin password:   {credentials[ADMINISTRATOR]}")
            console.print(f"  pgAdmin password: {credentials[ADMIN_UI]}")
        credentials_path = os.path.join(report.directory, CREDENTIALS_FILE)
        console.print(f"[green]All credentials saved to:[/green] {escape(credentials_path)}")
        console.print("[yellow]Next steps:[/yellow] review docker-compose.yml, then run `docker compose up -d`.")

    def run(self) -> int:
        exit_code = 1

        try:
            logger.info("Starting pgselfhost...")
            bundle = self.build_bundle()
            self.show_plan(bundle)

            if self.dry_run:
                console.print("[yellow]Dry run: no files were written.[/yellow]")
                exit_code = 0
                return exit_code

            prompt = f"Write {len(bundle.artifacts)} files to {bundle.parameters.directory}?"
            if not self.source.confirm(prompt):
                raise UserCancelled("Operation cancelled by user.")

            report = self.write_bundle(bundle)

            if self.schedule_backups:
                self.backup_scheduler.install(bundle.parameters.directory)

            self.show_summary(bundle, report)
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return exit_code
        except UserCancelled as exc:
            console.print(f"[bold yellow]Cancelled:[/bold yellow] {escape(str(exc))}")
            logger.info("Cancelled: %s", exc)
            return exit_code
        except FileSystemError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            if exc.completed:
                console.print(f"[yellow]Already written:[/yellow] {', '.join(exc.completed)}")
            logger.error(str(exc))
            return exit_code
        except ProvisionerError as exc:
            console.print(f"[bold red]Error:[/bold red] {escape(str(exc))}")
            logger.error(str(exc))
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {escape(str(exc))}")
            logger.exception("Unexpected error")
            return exit_code
