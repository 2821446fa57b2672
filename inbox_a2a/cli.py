"""Command-line entry point.

Example:
    python -m inbox_a2a serve --port 8765

    curl -X POST http://127.0.0.1:8765/a2a/rpc \\
        -H "Content-Type: application/json" \\
        -H "x-a2a-dev-secret: $A2A_DEV_SHARED_SECRET" \\
        -d '{"jsonrpc":"2.0","method":"agent.card","id":1}'
"""

import argparse
import asyncio
import logging
from pathlib import Path

from dotenv import load_dotenv
from rich.console import Console

from inbox_a2a import __version__
from inbox_a2a.config.loader import load_config
from inbox_a2a.core.errors import InboxError
from inbox_a2a.rpc.bootstrap import bootstrap_server_components, configure_server_logging
from inbox_a2a.rpc.http import run_http_server

console = Console()


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        prog="inbox-a2a",
        description="Email agent served over A2A JSON-RPC",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve_parser = subparsers.add_parser("serve", help="Run the JSON-RPC HTTP server")
    serve_parser.add_argument("--port", "-p", type=int, help="Server port (default: from config)")
    serve_parser.add_argument("--host", help="Bind address (default: from config)")
    serve_parser.add_argument("--config", type=Path, help="Path to a JSON config file")
    serve_parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug output on the console",
    )
    return parser.parse_args(argv)


async def run_serve(
    port: int | None = None,
    host: str | None = None,
    config_path: Path | None = None,
    verbose: bool = False,
) -> None:
    """Run the A2A server until interrupted."""
    try:
        config = load_config(config_path)
    except InboxError as e:
        console.print(f"[bold red]Configuration error:[/bold red] {e.message}")
        return

    effective_host = host or config.server.host
    effective_port = port if port is not None else config.server.port

    console_level = logging.DEBUG if verbose else logging.WARNING
    log_file = configure_server_logging(
        Path(config.server.log_dir),
        level=logging.INFO,
        console_level=console_level,
    )

    dispatcher, authenticator = bootstrap_server_components(config)
    started_event = asyncio.Event()
    server_task = asyncio.create_task(
        run_http_server(
            dispatcher,
            authenticator,
            host=effective_host,
            port=effective_port,
            rpc_path=config.server.rpc_path,
            max_concurrent=config.server.max_concurrent,
            started_event=started_event,
        )
    )

    try:
        try:
            await asyncio.wait_for(started_event.wait(), timeout=5.0)
        except TimeoutError:
            server_task.cancel()
            console.print("[bold red]Server failed to start (bind timeout)[/bold red]")
            return

        console.print(f"[bold]inbox-a2a[/bold] {__version__}")
        console.print(f"RPC: http://{effective_host}:{effective_port}{config.server.rpc_path}")
        console.print(f"[dim]Card: http://{effective_host}:{effective_port}/.well-known/a2a.json[/dim]")
        console.print(f"[dim]Server log: {log_file}[/dim]")
        if not authenticator.shared_secret_enabled:
            console.print(
                f"[yellow]{config.auth.shared_secret_env} not set; "
                "only bearer tokens are accepted[/yellow]"
            )
        console.print("Press Ctrl+C to stop")

        await server_task

    finally:
        if not server_task.done():
            server_task.cancel()
        await dispatcher.aclose()


def main(argv: list[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    if args.command == "serve":
        try:
            asyncio.run(run_serve(args.port, args.host, args.config, args.verbose))
        except KeyboardInterrupt:
            console.print("[dim]Stopped[/dim]")
