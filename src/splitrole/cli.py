"""
splitrole - command line access to the split-role EC2 client.
"""
import asyncio
import dataclasses
import json
from typing import Optional

import boto3
import typer
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.table import Table

from . import __version__
from .clients import ScopedClientFactory
from .config import SplitRoleConfig
from .dispatcher import SplitRoleEC2Client
from .errors import ConfigurationError, SplitRoleError, classify_error
from .instrumentation import RequestRecorder
from .logging_config import setup_logging
from .routing import ROUTING_TABLE, Tier

app = typer.Typer(
    help="Split-role EC2 client - route EC2 calls through two least-privilege IAM roles.",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to a YAML configuration file")
RegionOption = typer.Option(None, "--region", "-r", help="AWS region (overrides configuration)")
DebugOption = typer.Option(False, "--debug", help="Log AWS SDK requests and responses")


def _read_config(config_path: Optional[str]) -> SplitRoleConfig:
    try:
        return SplitRoleConfig.from_file_and_environment(config_path)
    except ConfigurationError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def _load_config(
    config_path: Optional[str], region: Optional[str], debug: bool
) -> SplitRoleConfig:
    """Load configuration from file and environment, then apply command line overrides."""
    config = _read_config(config_path)
    overrides = {}
    if region:
        overrides["region"] = region
    if debug:
        overrides["aws_sdk_debug_log"] = True
    if overrides:
        config = dataclasses.replace(config, **overrides)

    setup_logging("DEBUG" if debug else "WARNING", aws_sdk_debug_log=config.aws_sdk_debug_log)

    errors = config.validate()
    if errors:
        console.print("[red]Error: Invalid configuration[/red]")
        for field_name, problem in errors.items():
            console.print(f"  [red]✗[/red] {field_name}: {problem}")
        raise typer.Exit(1)

    return config


@app.command()
def version():
    """Show the application version and exit."""
    console.print(f"splitrole version: {__version__}")


@app.command()
def routes(
    config_path: Optional[str] = ConfigOption,
):
    """Show which role each EC2 operation is signed with."""
    config = _read_config(config_path)
    role_for_tier = {
        Tier.DESCRIBE_AND_DELETE: config.describe_and_delete_role or "-",
        Tier.CREATE_AND_MUTATE: config.create_and_mutate_role or "-",
    }

    table = Table(title="EC2 operation routing")
    table.add_column("Operation", style="cyan")
    table.add_column("Tier", style="green")
    table.add_column("Role")

    for operation, tier in ROUTING_TABLE.items():
        table.add_row(operation.value, tier.value, role_for_tier[tier])

    console.print(table)


@app.command()
def whoami(
    config_path: Optional[str] = ConfigOption,
    region: Optional[str] = RegionOption,
    debug: bool = DebugOption,
):
    """Assume both roles and show the identity each one resolves to."""
    config = _load_config(config_path, region, debug)
    factory = ScopedClientFactory(config)

    failed = False
    for tier, role_arn in (
        (Tier.DESCRIBE_AND_DELETE, config.describe_and_delete_role),
        (Tier.CREATE_AND_MUTATE, config.create_and_mutate_role),
    ):
        try:
            credential = factory.create_credential_cache(role_arn).get_valid_credential()
            session = boto3.Session(
                aws_access_key_id=credential.access_key,
                aws_secret_access_key=credential.secret_key,
                aws_session_token=credential.token,
                region_name=config.region,
            )
            identity = session.client("sts").get_caller_identity()
            console.print(f"[green]✓[/green] {tier.value}: [bold]{identity['Arn']}[/bold]")
            console.print(f"    Credentials expire at {credential.expiry_time.isoformat()}")
        except (SplitRoleError, ClientError, BotoCoreError) as e:
            console.print(f"[red]✗[/red] {tier.value} ({role_arn}): {e}")
            failed = True

    if failed:
        raise typer.Exit(1)


@app.command()
def invoke(
    operation: str = typer.Argument(..., help="EC2 operation, e.g. describe_volumes"),
    params: str = typer.Option("{}", "--params", "-p", help="Request parameters as JSON"),
    timeout: Optional[float] = typer.Option(
        None, "--timeout", "-t", help="Seconds to wait before giving up"
    ),
    config_path: Optional[str] = ConfigOption,
    region: Optional[str] = RegionOption,
    debug: bool = DebugOption,
):
    """Call one EC2 operation through the role it is routed to."""
    try:
        request = json.loads(params)
    except json.JSONDecodeError as e:
        console.print(f"[red]Error: --params is not valid JSON: {e}[/red]")
        raise typer.Exit(1)
    if not isinstance(request, dict):
        console.print("[red]Error: --params must be a JSON object[/red]")
        raise typer.Exit(1)

    config = _load_config(config_path, region, debug)

    try:
        client = SplitRoleEC2Client.from_config(config, instrumentation_hook=RequestRecorder())
        tier = client.tier_for(operation)
        if timeout is None:
            response = client.invoke(operation, **request)
        else:
            response = asyncio.run(client.invoke_async(operation, timeout=timeout, **request))
    except (SplitRoleError, ClientError, BotoCoreError, asyncio.TimeoutError) as e:
        console.print(f"[red]Error ({classify_error(e).value}): {e}[/red]")
        raise typer.Exit(1)

    response.pop("ResponseMetadata", None)
    console.print(f"[dim]{operation} signed with the {tier.value} role[/dim]")
    console.print_json(json.dumps(response, default=str))


if __name__ == "__main__":
    app()
