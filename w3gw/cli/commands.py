"""CLI commands for w3gw.

One command per chain family; each builds the wallet backend from configuration and
serves it over HTTP until interrupted.
"""

from pathlib import Path
from typing import Any, Optional

import typer
from rich.console import Console
from rich.table import Table

from w3gw import __logo__, __version__
from w3gw.cli.shared.logging_utils import configure_console_logging, ensure_rotating_log_file
from w3gw.cli.shared.network_utils import is_port_in_use, listen_url
from w3gw.config.loader import load_config
from w3gw.config.schema import GatewayConfig

app = typer.Typer(
    name="w3gw",
    help=f"{__logo__} w3gw - JSON-RPC wallet gateway",
    no_args_is_help=True,
)

console = Console()

ConfigOption = typer.Option(None, "--config", "-c", help="Path to a JSON config file (default ~/.w3gw/config.json)")
HostOption = typer.Option(None, "--host", help="Bind host")
VerboseOption = typer.Option(False, "--verbose", "-v", help="Log at DEBUG level")


def _load(config_path: Optional[Path], **overrides: Any) -> GatewayConfig:
    try:
        return load_config(config_path, **overrides)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="--config") from e


def _require(config: GatewayConfig, url: str, url_hint: str) -> None:
    if not url:
        raise typer.BadParameter("no provider URL was specified", param_hint=url_hint)
    if not config.port:
        raise typer.BadParameter("no port was specified", param_hint="PORT")
    if not config.seed_phrase:
        raise typer.BadParameter("no seed phrase was configured (set W3GW_SEED_PHRASE)", param_hint="seedPhrase")


def _prepare(command: str, config: GatewayConfig, verbose: bool) -> Path:
    level = "DEBUG" if verbose else config.log_level
    configure_console_logging(level)
    if is_port_in_use(config.host, config.port):
        console.print(
            f"[red]Port {config.port} is already in use.[/red] "
            f"Stop the process using it, or pass another [cyan]PORT[/cyan] (current: {config.host}:{config.port})."
        )
        raise typer.Exit(1)
    return ensure_rotating_log_file(command, level=level)


def _print_banner(title: str, rows: list[tuple[str, Any]], log_path: Path) -> None:
    table = Table(title=f"{__logo__} w3gw {__version__} - {title}", show_header=False)
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    for key, value in rows:
        table.add_row(key, str(value))
    console.print(table)
    console.print(f"[dim]Logs: {log_path}[/dim]")


def _serve(backend: Any, config: GatewayConfig) -> None:
    """Serve `backend`; the backend has taken what it needs from the seed phrase by now."""
    from w3gw.api.server import create_app, run_server

    config.seed_phrase = ""
    console.print(f"[green]✓[/green] Listening on {listen_url(config.host, config.port)}")
    run_server(create_app(backend), host=config.host, port=config.port)


@app.command()
def ethers(
    provider_url: Optional[str] = typer.Argument(None, help="Upstream EVM JSON-RPC endpoint"),
    port: Optional[int] = typer.Argument(None, help="Local port to listen on"),
    config_path: Optional[Path] = ConfigOption,
    host: Optional[str] = HostOption,
    verbose: bool = VerboseOption,
):
    """Serve EVM wallets in front of any Ethereum-compatible provider."""
    from w3gw.providers.jsonrpc import JsonRpcProvider
    from w3gw.wallets.ethers import EthersWallet

    config = _load(config_path, provider_url=provider_url, port=port, host=host)
    _require(config, config.provider_url, "PROVIDER_URL")
    log_path = _prepare("ethers", config, verbose)

    ec = config.ethers
    _print_banner(
        "ethers",
        [
            ("Provider", config.provider_url),
            ("Wallets", config.num_wallets),
            ("Gas price", "estimated" if ec.estimate_gas_price else ec.gas_price),
            ("Gas price factor", ec.gas_price_factor),
            ("Gas price max", ec.gas_price_max if ec.gas_price_max is not None else "-"),
            ("Gas limit", "estimated" if ec.estimate_gas_limit else ec.gas_limit),
            ("Gas limit factor", ec.gas_limit_factor),
            ("Interleave blocks", ec.interleave_blocks),
            ("Mock filters", ec.mock_filters),
        ],
        log_path,
    )
    provider = JsonRpcProvider(config.provider_url, timeout=config.request_timeout)
    backend = EthersWallet(provider, config.seed_phrase, config.num_wallets, ec)
    _serve(backend, config)


@app.command()
def conflux(
    provider_url: Optional[str] = typer.Argument(None, help="Upstream Conflux JSON-RPC endpoint"),
    port: Optional[int] = typer.Argument(None, help="Local port to listen on"),
    config_path: Optional[Path] = ConfigOption,
    host: Optional[str] = HostOption,
    verbose: bool = VerboseOption,
):
    """Serve Conflux wallets in front of a Conflux node."""
    from w3gw.providers.conflux import ConfluxProvider
    from w3gw.wallets.conflux import ConfluxWallet

    config = _load(config_path, provider_url=provider_url, port=port, host=host)
    _require(config, config.provider_url, "PROVIDER_URL")
    log_path = _prepare("conflux", config, verbose)

    cc = config.conflux
    _print_banner(
        "conflux",
        [
            ("Provider", config.provider_url),
            ("Network id", cc.network_id),
            ("Wallets", config.num_wallets),
            ("Gas price", "estimated" if cc.estimate_gas_price else cc.default_gas_price),
            ("Gas price factor", cc.gas_price_factor),
            ("Default gas", cc.default_gas),
            ("Epoch label", cc.epoch_label),
            ("Interleave epochs", cc.interleave_epochs),
        ],
        log_path,
    )
    provider = ConfluxProvider(config.provider_url, timeout=config.request_timeout)
    backend = ConfluxWallet.from_seed(provider, config.seed_phrase, config.num_wallets, cc)
    _serve(backend, config)


@app.command()
def reef(
    rpc_url: Optional[str] = typer.Argument(None, help="Reef node WebSocket endpoint"),
    graph_url: Optional[str] = typer.Argument(None, help="Block-explorer GraphQL endpoint"),
    port: Optional[int] = typer.Argument(None, help="Local port to listen on"),
    config_path: Optional[Path] = ConfigOption,
    host: Optional[str] = HostOption,
    verbose: bool = VerboseOption,
):
    """Serve Reef wallets, claiming EVM addresses for unclaimed identities at startup."""
    from w3gw.providers.graph import GraphIndexClient
    from w3gw.providers.substrate import ReefNode
    from w3gw.wallets.reef import ReefWallet

    config = _load(config_path, provider_url=rpc_url, port=port, host=host)
    rc = config.reef
    if graph_url:
        rc = rc.model_copy(update={"graph_url": graph_url})
    _require(config, config.provider_url, "RPC_URL")
    if not rc.graph_url:
        raise typer.BadParameter("no graph URL was specified", param_hint="GRAPH_URL")
    log_path = _prepare("reef", config, verbose)

    _print_banner(
        "reef",
        [
            ("Node", config.provider_url),
            ("Graph", rc.graph_url),
            ("Wallets", config.num_wallets),
            ("Default gas limit", rc.default_gas_limit),
            ("Storage limit", rc.storage_limit or "estimated"),
        ],
        log_path,
    )
    backend = ReefWallet(
        ReefNode(config.provider_url),
        GraphIndexClient(rc.graph_url, timeout=config.request_timeout),
        config.seed_phrase,
        config.num_wallets,
        rc,
    )
    _serve(backend, config)


@app.command()
def version():
    """Show w3gw version."""
    console.print(f"{__logo__} w3gw v{__version__}")


if __name__ == "__main__":
    app()
