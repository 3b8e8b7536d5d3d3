"""Command line interface for entity sync."""

import asyncio
import json
import logging
import sys
from typing import Any, Dict, Optional, Tuple

import click

from .config import setup_logging, load_environment, load_sync_configs, get_optional_env
from ..connectors.backstage import BackstageConnector
from ..connectors.base import StaticTokenCredentialProvider
from ..connectors.datadog import DatadogConnector
from ..engine.registry import SyncRegistry, build_syncs, register_configured_syncs
from ..engine.sync import SyncClients
from ..engine.transforms import ExtraSerializationInfo, default_entity_serializer
from ..exceptions import ConnectorError, EntitySyncException, ExecutionError
from ..models.config import CATALOG_FILTER_EXISTS


def parse_filter_options(values: Tuple[str, ...]) -> Dict[str, Any]:
    """Turn ``key=value`` options into a filter clause.

    A bare ``key`` means the field must exist; a repeated key matches any of its values.
    """
    clause: Dict[str, Any] = {}
    for value in values:
        key, sep, raw = value.partition("=")
        key = key.strip()
        if not key:
            raise click.BadParameter(f"Invalid filter '{value}', expected key=value")
        item = raw.strip() if sep else CATALOG_FILTER_EXISTS
        if key in clause:
            existing = clause[key]
            clause[key] = (existing if isinstance(existing, list) else [existing]) + [item]
        else:
            clause[key] = item
    return clause


def create_clients_from_env() -> SyncClients:
    """Create Datadog/Backstage clients from environment variables."""
    return SyncClients(
        datadog=DatadogConnector(
            credentials={
                "api_key": get_optional_env("DATADOG_API_KEY"),
                "app_key": get_optional_env("DATADOG_APP_KEY"),
            },
            site=get_optional_env("DATADOG_SITE", "datadoghq.com"),
        ),
        catalog=BackstageConnector(base_url=get_optional_env("BACKSTAGE_BASE_URL", "http://localhost:7007")),
        auth=StaticTokenCredentialProvider(get_optional_env("BACKSTAGE_SERVICE_TOKEN") or None),
    )


@click.group()
@click.option('--log-level', default='INFO', type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR']),
              help='Set the logging level')
@click.option('--env-file', type=click.Path(exists=True), help='Path to .env file')
def cli(log_level: str, env_file: Optional[str]) -> None:
    """Backstage to Datadog Software Catalog Entity Sync Tool."""
    setup_logging(log_level)
    load_environment(env_file)


@cli.command()
@click.argument('sync_id')
@click.option('--config', 'config_path', type=click.Path(exists=True),
              help='Sync configuration file (defaults to ENTITY_SYNC_CONFIG_FILE)')
@click.option('--dry-run', is_flag=True, help='Serialize entities without writing to Datadog')
@click.option('--filter', 'filters', multiple=True, help='Extra entity filter, key=value (repeatable)')
@click.option('--output', type=click.Choice(['table', 'json']), default='table',
              help='Output format')
def run(sync_id: str, config_path: Optional[str], dry_run: bool, filters: Tuple[str, ...], output: str) -> None:
    """Run a configured sync once."""
    try:
        registry = SyncRegistry()
        register_configured_syncs(registry, load_sync_configs(config_path))
        syncs = build_syncs(registry, create_clients_from_env(), task_runner_factory=lambda config: None)
        if sync_id not in syncs:
            click.echo(f"Unknown sync: {sync_id}", err=True)
            sys.exit(1)

        result = asyncio.run(syncs[sync_id].run_sync(parse_filter_options(filters) or None, dry_run))

        if output == 'json':
            click.echo(result.model_dump_json(indent=2))
            return

        click.echo(f"Sync {sync_id} ({'live' if result.live else 'dry run'})")
        click.echo("-" * 80)
        click.echo(f"{'Entity':<60} {'Status':<10}")
        click.echo("-" * 80)
        for item in result.items:
            click.echo(f"{item.entity_ref:<60} {item.status.value:<10}")
        click.echo(f"\nSynced: {result.success_count}  Skipped: {result.skipped_count}  "
                   f"Failed: {result.failed_count}")
        if result.failed_count:
            sys.exit(1)

    except ExecutionError as e:
        click.echo(f"Sync Error: {e}", err=True)
        sys.exit(1)
    except (EntitySyncException, ValueError) as e:
        click.echo(f"Configuration Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logging.exception("Unexpected error occurred")
        click.echo(f"Unexpected error: {e}", err=True)
        sys.exit(1)


@cli.command(name='list')
@click.option('--config', 'config_path', type=click.Path(exists=True),
              help='Sync configuration file (defaults to ENTITY_SYNC_CONFIG_FILE)')
def list_syncs(config_path: Optional[str]) -> None:
    """List configured syncs."""
    try:
        configs = load_sync_configs(config_path)
    except EntitySyncException as e:
        click.echo(f"Configuration Error: {e}", err=True)
        sys.exit(1)

    if not configs:
        click.echo("No syncs configured")
        return

    click.echo(f"{'Sync ID':<40} {'Enabled':<8} {'Rate limit':<20} {'Schedule':<20}")
    click.echo("-" * 90)
    for sync_id, config in configs.items():
        rate = config.rate_limit
        rate_str = f"{rate.count}/{rate.interval.total_seconds():g}s" if rate.interval else f"{rate.count}/batch"
        schedule = config.schedule
        if schedule is None:
            schedule_str = "-"
        elif schedule.cron:
            schedule_str = schedule.cron
        else:
            schedule_str = f"every {schedule.frequency.total_seconds():g}s"
        click.echo(f"{sync_id:<40} {str(config.enabled):<8} {rate_str:<20} {schedule_str:<20}")


@cli.command()
@click.argument('entity_file', type=click.Path(exists=True))
@click.option('--app-base-url', help='Backstage frontend URL used for catalog and TechDocs links')
def transform(entity_file: str, app_base_url: Optional[str]) -> None:
    """Print the Datadog definition for a Backstage entity JSON file."""
    try:
        with open(entity_file, encoding="utf-8") as f:
            entity = json.load(f)
        payload = default_entity_serializer(entity, ExtraSerializationInfo(app_base_url=app_base_url))
        click.echo(json.dumps(payload, indent=2))
    except (EntitySyncException, ValueError) as e:
        click.echo(f"Transformation Error: {e}", err=True)
        sys.exit(1)


@cli.command()
def test_connection() -> None:
    """Test connections to Backstage and Datadog."""
    try:
        clients = create_clients_from_env()

        click.echo("Testing Backstage connection...")
        token = asyncio.run(clients.auth.get_own_service_credentials())
        if clients.catalog.client.test_connection(token=token):
            click.echo("Backstage connection successful!")
        else:
            click.echo("Backstage connection failed")
            sys.exit(1)

        click.echo("Testing Datadog connection...")
        if clients.datadog.test_connection():
            click.echo("Datadog connection successful!")
        else:
            click.echo("Datadog connection failed")
            sys.exit(1)

    except ConnectorError as e:
        click.echo(f"API Error: {e}", err=True)
        sys.exit(1)
    except ValueError as e:
        click.echo(f"Configuration Error: {e}", err=True)
        sys.exit(1)
    except Exception as e:
        logging.exception("Unexpected error occurred")
        click.echo(f"Unexpected error: {e}", err=True)
        sys.exit(1)


@cli.command()
@click.option('--host', default='0.0.0.0', help='Interface to bind')
@click.option('--port', default=8000, type=int, help='Port to listen on')
def serve(host: str, port: int) -> None:
    """Run the HTTP API with scheduled and event-driven syncs."""
    import uvicorn
    uvicorn.run("entity_sync.api.app:app", host=host, port=port)


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
