"""
TacMap CLI - start the hub server and inspect its configuration.
"""

import errno
import json
import logging
import os
import socket
import sys
from pathlib import Path
from typing import Optional

import click
from rich.console import Console
from rich.table import Table

from .config import DEFAULT_DATA_DIR, ProxyConfig, get_config, set_config

console = Console()

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}


def log_level(verbose: bool = False) -> int:
    """Resolve the log level: -v wins, then LOG_LEVEL, then INFO."""
    if verbose:
        return logging.DEBUG
    level = logging.getLevelName(os.getenv("LOG_LEVEL", "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(verbose: bool = False):
    """Set up logging configuration."""
    logging.basicConfig(
        level=log_level(verbose),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler()]
    )


def check_bindable(host: str, port: int) -> None:
    """Raise OSError if the listening socket can't be bound."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))


def explain_bind_error(error: OSError, port: int) -> None:
    if error.errno == errno.EADDRINUSE:
        console.print(f"[red]Error: Port {port} is already in use, select a different port.[/red]")
        console.print(f"   Example: tacmap serve --port {port + 1}")
    elif error.errno == errno.EACCES:
        console.print(f"[red]Error: This process does not have permission to listen on port {port}.[/red]")
        if port < 1024:
            console.print("   Try a port number higher than 1024.")
    else:
        console.print(f"[red]Error: {error}[/red]")


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option('-v', '--verbose', is_flag=True, help='Enable verbose output')
@click.option('--data-dir', type=click.Path(), help='Data directory')
@click.pass_context
def main(ctx, verbose, data_dir):
    """🗺️  TacMap - mission state and net relay hub"""
    ctx.ensure_object(dict)
    ctx.obj['verbose'] = verbose
    ctx.obj['data_dir'] = Path(data_dir) if data_dir else DEFAULT_DATA_DIR
    setup_logging(verbose)


@main.command(context_settings=CONTEXT_SETTINGS)
@click.option('--port', '-p', type=int, help='Port to listen on.')
@click.option('--public', is_flag=True, help='Run a public server that listens on all interfaces.')
@click.option('--publicssl', is_flag=True, help='Run a public https server that listens on all interfaces.')
@click.option('--upstream-proxy', help='A standard proxy server used to retrieve data, e.g. "http://proxy:8000".')
@click.option('--bypass-upstream-proxy-hosts',
              help='Comma separated hosts that bypass the upstream proxy, e.g. "lanhost1,lanhost2".')
@click.option('--public-dir', type=click.Path(file_okay=False), help='Directory of static pages and documents.')
@click.option('--scoped', is_flag=True, help='Deliver net notices and messages to net members only.')
@click.option('--save', is_flag=True, help='Save these options as the new defaults.')
@click.pass_context
def serve(
    ctx,
    port: Optional[int],
    public: bool,
    publicssl: bool,
    upstream_proxy: Optional[str],
    bypass_upstream_proxy_hosts: Optional[str],
    public_dir: Optional[str],
    scoped: bool,
    save: bool,
):
    """Start the TacMap server."""
    config = get_config(ctx.obj['data_dir'])

    if port is not None:
        config.server.port = port
    config.server.public = config.server.public or public
    config.server.publicssl = config.server.publicssl or publicssl
    if upstream_proxy:
        config.proxy.upstream_proxy = upstream_proxy
    if bypass_upstream_proxy_hosts:
        config.proxy.bypass_hosts = ProxyConfig.parse_bypass(bypass_upstream_proxy_hosts)
    if public_dir:
        config.public_dir = Path(public_dir)
    if scoped:
        config.hub.scoped_delivery = True

    server = config.server
    if server.publicssl:
        missing = [f for f in (server.certfile, server.keyfile) if not Path(f).is_file()]
        if missing:
            console.print(f"[red]TLS files not found: {', '.join(missing)}[/red]")
            sys.exit(1)

    try:
        check_bindable(server.bind_host, server.port)
    except OSError as e:
        explain_bind_error(e, server.port)
        sys.exit(1)

    if save:
        config.save()
    set_config(config)

    where = "publicly" if server.public or server.publicssl else "locally"
    console.print(f"\n[bold blue]🗺️  TacMap server running {where}[/bold blue]")
    console.print(f"   Connect to {server.scheme}://localhost:{server.port}/")
    if config.proxy.upstream_proxy:
        console.print(f"   Upstream proxy: {config.proxy.upstream_proxy}")
    console.print("   Press Ctrl+C to stop\n")

    from .api.server import run_server

    run_server(config, log_level=logging.getLevelName(log_level(ctx.obj['verbose'])).lower())


@main.command('config', context_settings=CONTEXT_SETTINGS)
@click.option('--json', 'as_json', is_flag=True, help='Output as JSON')
@click.pass_context
def show_config(ctx, as_json: bool):
    """Show the effective configuration."""
    config = get_config(ctx.obj['data_dir'])

    if as_json:
        click.echo(json.dumps(config.to_dict(), indent=2))
        return

    table = Table(show_header=False, box=None)
    table.add_column("Key", style="dim")
    table.add_column("Value")

    table.add_row("Config file", str(config.config_path))
    table.add_row("Public directory", str(config.public_dir))
    table.add_row("Listen", f"{config.server.scheme}://{config.server.bind_host}:{config.server.port}")
    table.add_row("Upstream proxy", config.proxy.upstream_proxy or "[dim]none[/dim]")
    table.add_row("Proxy bypass", ", ".join(config.proxy.bypass_hosts) or "[dim]none[/dim]")
    table.add_row("Delivery", "scoped to nets" if config.hub.scoped_delivery else "global")

    console.print("\n[bold]TacMap Configuration[/bold]")
    console.print(table)
    console.print()


if __name__ == "__main__":
    main()
