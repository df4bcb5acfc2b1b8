import logging
import os

import click
from rich.logging import RichHandler

from .core import VmMover
from .errors import MigrationError
from .services.config_loader import ConfigLoader


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
@click.argument("vm_id")
@click.argument("target_region")
@click.argument("target_resource_group")
@click.argument("target_vnet")
@click.argument("target_subnet")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .vmmover.yml if present.",
)
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option("--log-file", type=click.Path(), help="Path to log file")
@click.option(
    "--journal-file",
    required=False,
    type=click.Path(),
    help="Path to the run journal (default: output/run-journal.json).",
)
@click.option(
    "--os-poll-interval",
    required=False,
    type=float,
    default=None,
    help="Seconds between progress checks of the OS snapshot copy (default: 10).",
)
@click.option(
    "--data-poll-interval",
    required=False,
    type=float,
    default=None,
    help="Seconds between progress checks of data snapshot copies (default: 30).",
)
@click.option(
    "--copy-timeout-minutes",
    required=False,
    type=int,
    default=None,
    help="Maximum wait for each snapshot copy in minutes (default: 360).",
)
@click.option(
    "--command-timeout",
    required=False,
    type=float,
    default=None,
    help="Timeout in seconds for each Azure CLI command (default: none).",
)
@click.option(
    "--retry-count",
    required=False,
    type=int,
    default=None,
    help="Number of retries for failed Azure CLI commands (default: 0).",
)
@click.option(
    "--retry-backoff-seconds",
    required=False,
    type=float,
    default=None,
    help="Backoff time in seconds between retries.",
)
@click.option(
    "--snapshot-sku",
    required=False,
    help="SKU for source and copied snapshots (default: Standard_LRS).",
)
@click.option(
    "--cleanup-on-failure",
    is_flag=True,
    default=None,
    help="Delete every resource created by this run if the migration fails.",
)
@click.option(
    "--dry-run",
    is_flag=True,
    default=None,
    help="Read the source VM and print the migration plan without changing anything.",
)
def main(
    vm_id,
    target_region,
    target_resource_group,
    target_vnet,
    target_subnet,
    config,
    verbose,
    log_file,
    journal_file,
    os_poll_interval,
    data_poll_interval,
    copy_timeout_minutes,
    command_timeout,
    retry_count,
    retry_backoff_seconds,
    snapshot_sku,
    cleanup_on_failure,
    dry_run,
):
    """Move an Azure VM and its disks and network interface to another region.

    \b
    Example:
      vmmover /subscriptions/xxx/resourceGroups/rg1/providers/Microsoft.Compute/virtualMachines/vm1 \\
        eastus2 rg-target vnet-target subnet-target
    """
    logger = logging.getLogger("vmmover")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ConfigLoader.DEFAULT_FILE_NAME)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except MigrationError as exc:
        raise click.ClickException(str(exc)) from exc

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file")
    journal_file = _resolve_option(journal_file, config_values, "journal_file")
    os_poll_interval = float(
        _resolve_option(
            os_poll_interval,
            config_values,
            "os_poll_interval_seconds",
            default=VmMover.DEFAULT_OS_POLL_INTERVAL,
        )
    )
    data_poll_interval = float(
        _resolve_option(
            data_poll_interval,
            config_values,
            "data_poll_interval_seconds",
            default=VmMover.DEFAULT_DATA_POLL_INTERVAL,
        )
    )
    copy_timeout_minutes = int(
        _resolve_option(
            copy_timeout_minutes,
            config_values,
            "copy_timeout_minutes",
            default=VmMover.DEFAULT_COPY_TIMEOUT_MINUTES,
        )
    )
    command_timeout = _resolve_option(command_timeout, config_values, "command_timeout_seconds")
    if command_timeout is not None:
        command_timeout = float(command_timeout)
    retry_count = int(_resolve_option(retry_count, config_values, "retry_count", default=0))
    retry_backoff_seconds = float(
        _resolve_option(retry_backoff_seconds, config_values, "retry_backoff_seconds", default=5.0)
    )
    snapshot_sku = _resolve_option(snapshot_sku, config_values, "snapshot_sku", default="Standard_LRS")
    cleanup_on_failure = bool(
        _resolve_option(cleanup_on_failure, config_values, "cleanup_on_failure", default=False)
    )
    dry_run = bool(_resolve_option(dry_run, config_values, "dry_run", default=False))

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

    try:
        mover = VmMover(
            vm_id=vm_id,
            target_region=target_region,
            target_resource_group=target_resource_group,
            target_vnet=target_vnet,
            target_subnet=target_subnet,
            journal_file=journal_file,
            os_poll_interval_seconds=os_poll_interval,
            data_poll_interval_seconds=data_poll_interval,
            copy_timeout_minutes=copy_timeout_minutes,
            command_timeout_seconds=command_timeout,
            retry_count=retry_count,
            retry_backoff_seconds=retry_backoff_seconds,
            snapshot_sku=snapshot_sku,
            cleanup_on_failure=cleanup_on_failure,
            dry_run=dry_run,
        )
    except MigrationError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(mover.run())


if __name__ == "__main__":
    main()
