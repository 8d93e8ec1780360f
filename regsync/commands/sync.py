"""
Sync command for regsync.

Mirrors container images from a registry repository, a local directory
or a multi-registry YAML file into a registry or local directory.
"""

import click
import json
import sys
from typing import Optional

from ..config import configure_logging, load_config
from ..domain.context import SystemContext, parse_credentials
from ..errors import RegsyncError
from ..exit_codes import (
    CommandError,
    INTERRUPTED,
    PartialSuccessError,
    exit_with_code,
    get_exit_code_for_exception,
)
from ..services.sync_service import SyncOptions, SyncService


def _build_context(creds: Optional[str], tls_verify: Optional[bool], cert_dir: Optional[str],
                   override_arch: Optional[str] = None) -> SystemContext:
    username, password = parse_credentials(creds)
    return SystemContext(
        username=username,
        password=password,
        tls_verify=tls_verify,
        cert_dir=cert_dir,
        override_arch=override_arch,
    )


@click.command('sync')
@click.argument('args', nargs=-1, metavar='SOURCE DESTINATION')
# Sync options
@click.option('--remove-signatures', is_flag=True, help='Do not copy signatures from SOURCE images')
@click.option('--sign-by', metavar='FINGERPRINT', help='Sign the image using a GPG key with the specified FINGERPRINT')
@click.option('--source-yaml', is_flag=True,
              help='Interpret SOURCE as a YAML file with a list of images from different container registries')
# Shared image options
@click.option('--src-creds', metavar='USER[:PASS]', help='Credentials for the source registry')
@click.option('--src-tls-verify/--src-no-tls-verify', default=None, help='Verify TLS for the source registry')
@click.option('--src-cert-dir', type=click.Path(), help='Certificates directory for the source registry')
@click.option('--dest-creds', metavar='USER[:PASS]', help='Credentials for the destination registry')
@click.option('--dest-tls-verify/--dest-no-tls-verify', default=None, help='Verify TLS for the destination registry')
@click.option('--dest-cert-dir', type=click.Path(), help='Certificates directory for the destination registry')
@click.option('--override-arch', metavar='ARCH', help='Only sync images built for ARCH')
@click.option('--policy', 'policy_path', type=click.Path(), help='Trust policy file')
@click.option('--insecure-policy', is_flag=True, help='Run without a trust policy')
@click.option('--command-timeout', type=float, default=None, help='Timeout in seconds for the whole sync')
# Output options
@click.option('--json', 'output_json', is_flag=True, help='Output as JSONL')
@click.option('--pretty', is_flag=True, help='Display progress with rich formatting')
@click.option('--debug', is_flag=True, help='Enable debug logging')
def sync_handler(
    args: tuple,
    remove_signatures: bool,
    sign_by: Optional[str],
    source_yaml: bool,
    src_creds: Optional[str],
    src_tls_verify: Optional[bool],
    src_cert_dir: Optional[str],
    dest_creds: Optional[str],
    dest_tls_verify: Optional[bool],
    dest_cert_dir: Optional[str],
    override_arch: Optional[str],
    policy_path: Optional[str],
    insecure_policy: bool,
    command_timeout: Optional[float],
    output_json: bool,
    pretty: bool,
    debug: bool,
):
    """
    Sync images from SOURCE to DESTINATION, copying only changed tags.

    SOURCE can be a repository on a container registry
    (docker://registry.example.com/busybox) or a local directory
    (dir:/media/usb). With --source-yaml, SOURCE is a YAML file listing
    images from several registries.

    When no tag is given, every tag of the repository is synced.

    DESTINATION can be a container registry (docker://my-registry.lan)
    or a local directory (dir:/media/usb), where one directory per
    image:tag is created.

    Examples:

        # Mirror every tag of busybox into a directory
        regsync sync docker://registry.example.com/busybox dir:/media/usb

        # Push a directory mirror into an air-gapped registry
        regsync sync dir:/media/usb docker://registry.lan/mirror

        # Sync a list of repositories from several registries
        regsync sync --source-yaml sources.yaml docker://registry.lan
    """
    if len(args) != 2:
        raise click.UsageError("Exactly two arguments expected: SOURCE DESTINATION")

    config = load_config()
    configure_logging(config, debug)
    general = config.get('general', {})

    if command_timeout is None:
        command_timeout = general.get('command_timeout_seconds') or None

    options = SyncOptions(
        source_ctx=_build_context(src_creds, src_tls_verify, src_cert_dir, override_arch),
        destination_ctx=_build_context(dest_creds, dest_tls_verify, dest_cert_dir),
        remove_signatures=remove_signatures,
        sign_by=sign_by,
        source_yaml=source_yaml,
        policy_path=policy_path,
        insecure_policy=insecure_policy,
        command_timeout=command_timeout,
        max_workers=general.get('max_workers'),
        max_retries=general.get('retries', 3),
    )

    service = SyncService(config=config)
    source, destination = args

    try:
        if pretty:
            _sync_pretty(service, source, destination, options)
        elif output_json:
            _sync_json(service, source, destination, options)
        else:
            _sync_simple(service, source, destination, options)

        result = service.last_result
        if result and result.failed:
            raise PartialSuccessError(
                f"{result.failed} of {result.images} images failed to sync",
                succeeded=result.copied + result.skipped,
                failed=result.failed,
            )
    except KeyboardInterrupt:
        exit_with_code(INTERRUPTED, "Interrupted by user")
    except (RegsyncError, CommandError) as e:
        if output_json:
            print(json.dumps({'error': str(e), 'type': type(e).__name__}), file=sys.stderr)
            sys.exit(get_exit_code_for_exception(e))
        exit_with_code(get_exit_code_for_exception(e), f"Error: {e}")


def _sync_simple(service: SyncService, source: str, destination: str, options: SyncOptions):
    """Simple text output for sync."""
    for progress in service.sync(source, destination, options):
        print(progress, file=sys.stderr)

    result = service.last_result
    if result:
        print(f"\nregistry-synced {result.images} images from {result.sources} sources", file=sys.stderr)
        print(f"  Copied: {result.copied}", file=sys.stderr)
        if result.skipped > 0:
            print(f"  Skipped: {result.skipped}", file=sys.stderr)
        if result.errors:
            print(f"\nErrors ({len(result.errors)}):", file=sys.stderr)
            for error in result.errors:
                print(f"  - {error}", file=sys.stderr)


def _sync_json(service: SyncService, source: str, destination: str, options: SyncOptions):
    """JSONL output for sync."""
    for progress in service.sync(source, destination, options):
        print(json.dumps({'progress': progress.strip()}), flush=True)

    result = service.last_result
    if result:
        for detail in result.details:
            print(json.dumps(detail.to_dict()), flush=True)
        print(json.dumps(result.to_dict()), flush=True)


def _sync_pretty(service: SyncService, source: str, destination: str, options: SyncOptions):
    """Rich formatted output for sync."""
    from rich.console import Console
    from rich.progress import Progress, SpinnerColumn, TextColumn
    from rich.table import Table

    console = Console(stderr=True)
    console.print(f"\n[bold]Syncing:[/bold] {source}")
    console.print(f"[bold]To:[/bold] {destination}")
    if options.source_yaml:
        console.print("[dim]Source is a multi-registry YAML file[/dim]")
    console.print()

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    ) as progress:
        task = progress.add_task("Resolving source...", total=None)
        for message in service.sync(source, destination, options):
            progress.update(task, description=message.strip())

    result = service.last_result
    if not result:
        console.print("[red]Sync failed - no result[/red]")
        sys.exit(1)

    table = Table(title="Sync Summary", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right", style="green")

    table.add_row("Sources", str(result.sources))
    table.add_row("Images", str(result.images))
    table.add_row("Copied", str(result.copied))
    table.add_row("Skipped", str(result.skipped))
    table.add_row("Failed", str(result.failed))

    console.print(table)

    if result.errors:
        console.print(f"\n[red]Errors ({len(result.errors)}):[/red]")
        for error in result.errors:
            console.print(f"  [red]•[/red] {error}")
    else:
        console.print(f"\n[bold green]✓[/bold green] Sync complete: {destination}")
