import json
import logging
import os
from typing import Any, Dict, List, Optional

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from .core import Dispatcher
from .errors import ConfigurationError, ItemExecutionError, RedisOpsError
from .models import Credential
from .operations import OPERATIONS, decode_json
from .services.config_loader import ConfigLoader
from .services.connection import ConnectionService
from .services.manifest import ManifestService

DEFAULT_CONFIG_FILE = ".redisops.yml"

console = Console(stderr=True)


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
    handlers=[RichHandler(console=console, rich_tracebacks=True, show_level=False, show_path=False)],
)


def _load_config(config_path: Optional[str]) -> Dict[str, Any]:
    resolved_config = config_path
    if resolved_config is None:
        default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
        if os.path.exists(default_config_path):
            resolved_config = default_config_path
    try:
        return ConfigLoader().load(resolved_config)
    except RedisOpsError as exc:
        raise click.ClickException(str(exc)) from exc


def _configure_logging(verbose: bool, log_file: Optional[str]) -> logging.Logger:
    logger = logging.getLogger("redisops")
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
    return logger


def _build_credential(host, port, database, user, password, ssl, config) -> Credential:
    return Credential(
        host=str(_resolve_option(host, config, "host", default="localhost")),
        port=int(_resolve_option(port, config, "port", default=6379)),
        database=int(_resolve_option(database, config, "database", default=0)),
        user=_resolve_option(user, config, "user") or None,
        password=_resolve_option(password, config, "password") or None,
        ssl=bool(_resolve_option(ssl, config, "ssl", default=False)),
    )


def _decode_param(value: str) -> Any:
    # scalars stay text; a bare 123 must still be writable as a string
    if value.lstrip()[:1] in ("{", "["):
        return decode_json(value)
    return value


def _parse_params(raw_params) -> Dict[str, Any]:
    params: Dict[str, Any] = {}
    for raw in raw_params:
        name, separator, value = raw.partition("=")
        if not separator or not name:
            raise click.BadParameter(f"Expected NAME=VALUE, got {raw!r}", param_hint="--param")
        params[name] = _decode_param(value)
    return params


def _load_items(input_path: Optional[str]) -> List[Dict[str, Any]]:
    if not input_path:
        return [{}]
    try:
        with open(input_path, "r", encoding="utf-8") as file_obj:
            data = json.load(file_obj)
    except (OSError, ValueError) as exc:
        raise ConfigurationError(f"Could not read items from '{input_path}': {exc}") from exc

    if isinstance(data, dict):
        data = [data]
    if not isinstance(data, list) or not all(isinstance(item, dict) for item in data):
        raise ConfigurationError("Items file must contain a JSON object or a list of objects.")
    return data


def connection_options(func):
    options = [
        click.option("--config", type=click.Path(), help=f"YAML config file (default: {DEFAULT_CONFIG_FILE} if present)."),
        click.option("--host", default=None, help="Server host (default: localhost)."),
        click.option("--port", type=int, default=None, help="Server port (default: 6379)."),
        click.option("--database", type=int, default=None, help="Database index (default: 0)."),
        click.option("--user", default=None, help="ACL username."),
        click.option("--password", default=None, help="Password."),
        click.option("--ssl/--no-ssl", default=None, help="Use TLS for the connection."),
        click.option("--socket-timeout", type=float, default=None, help="Socket timeout in seconds."),
        click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging"),
        click.option("--log-file", type=click.Path(), help="Path to log file"),
    ]
    for option in reversed(options):
        func = option(func)
    return func


@click.group()
def main():
    """Run key-value store operations over batches of JSON items."""


@main.command("run")
@connection_options
@click.option("--operation", "-o", default=None, help="Operation id (see `redisops operations`).")
@click.option("--param", "-p", "raw_params", multiple=True, help="Operation parameter as NAME=VALUE.")
@click.option("--input", "input_path", type=click.Path(), help="JSON file with the input items.")
@click.option("--output", "output_path", type=click.Path(), help="Write results JSON here instead of stdout.")
@click.option(
    "--continue-on-fail",
    is_flag=True,
    default=None,
    help="Turn failing items into error records instead of aborting the run.",
)
@click.option("--manifest-file", type=click.Path(), help="Write a run manifest JSON file.")
def run_command(
    config,
    host,
    port,
    database,
    user,
    password,
    ssl,
    socket_timeout,
    verbose,
    log_file,
    operation,
    raw_params,
    input_path,
    output_path,
    continue_on_fail,
    manifest_file,
):
    """Execute one operation for every input item."""
    config_values = _load_config(config)

    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    logger = _configure_logging(verbose, _resolve_option(log_file, config_values, "log_file"))

    operation = _resolve_option(operation, config_values, "operation")
    if not operation:
        raise click.ClickException("Missing required option '--operation' (or provide it in config).")

    parameters = dict(config_values.get("parameters") or {})
    parameters.update(_parse_params(raw_params))

    continue_on_fail = bool(
        _resolve_option(continue_on_fail, config_values, "continue_on_fail", default=False)
    )
    input_path = _resolve_option(input_path, config_values, "input")
    output_path = _resolve_option(output_path, config_values, "output")
    manifest_file = _resolve_option(manifest_file, config_values, "manifest_file")
    socket_timeout = _resolve_option(socket_timeout, config_values, "socket_timeout")

    try:
        credential = _build_credential(host, port, database, user, password, ssl, config_values)
    except (TypeError, ValueError) as exc:
        raise click.ClickException(f"Invalid connection settings: {exc}") from exc

    try:
        items = _load_items(input_path)
        dispatcher = Dispatcher(
            credential=credential,
            operation=operation,
            parameters=parameters,
            continue_on_fail=continue_on_fail,
            connection_service=ConnectionService(logger=logger, socket_timeout=socket_timeout),
            manifest_service=ManifestService(manifest_file, logger=logger) if manifest_file else None,
        )
        results = dispatcher.run(items)
    except ItemExecutionError as exc:
        raise click.ClickException(f"Item {exc.item_index} failed: {exc}") from exc
    except RedisOpsError as exc:
        raise click.ClickException(str(exc)) from exc

    payload = json.dumps([result.to_dict() for result in results], indent=2, default=str)
    if output_path:
        with open(output_path, "w", encoding="utf-8") as file_obj:
            file_obj.write(payload + "\n")
        console.print(f"[green]Wrote {len(results)} record(s) to {output_path}[/green]")
    else:
        click.echo(payload)


@main.command("test")
@connection_options
def test_command(config, host, port, database, user, password, ssl, socket_timeout, verbose, log_file):
    """Check that the credentials can connect and answer PING."""
    config_values = _load_config(config)
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    logger = _configure_logging(verbose, _resolve_option(log_file, config_values, "log_file"))

    try:
        credential = _build_credential(host, port, database, user, password, ssl, config_values)
    except (TypeError, ValueError) as exc:
        raise click.ClickException(f"Invalid connection settings: {exc}") from exc

    service = ConnectionService(
        logger=logger,
        socket_timeout=_resolve_option(socket_timeout, config_values, "socket_timeout"),
    )
    result = service.test(credential)
    if result.ok:
        console.print(f"[bold green]{result.status}[/bold green] {result.message}")
        return
    console.print(f"[bold red]{result.status}[/bold red] {result.message}")
    raise SystemExit(1)


@main.command("operations")
def operations_command():
    """List supported operations and their parameters."""
    table = Table(title="Operations")
    table.add_column("Operation", style="bold")
    table.add_column("Description")
    table.add_column("Parameters")

    for operation_id in sorted(OPERATIONS):
        descriptor = OPERATIONS[operation_id]
        parameters = ", ".join(
            parameter.name if parameter.required else f"{parameter.name}?"
            for parameter in descriptor.parameters
        )
        table.add_row(operation_id, descriptor.description, parameters or "-")

    Console().print(table)


if __name__ == "__main__":
    main()
