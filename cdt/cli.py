"""Command-line interface for Coffee Donation Tracker."""

import asyncio
import logging
import sys
import click
from contextlib import contextmanager
from pathlib import Path
from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from .config import (
    CoffeeConfig,
    SEPOLIA_CHAIN_ID,
    get_config_path,
    load_config,
    save_config
)
from .models import DonationDraft, Memo
from .projection import Viewport
from .registry import default_registry
from .session import DonationSession
from .wallet import HTTPWallet, detect_wallet

console = Console()


def _load_valid_config() -> CoffeeConfig:
    try:
        config = load_config()
    except FileNotFoundError:
        console.print("[red]Configuration not found. Please run 'cdt init' first.[/red]")
        sys.exit(1)

    errors = config.validate()
    if errors:
        console.print("[bold red]Configuration errors:[/bold red]")
        for error in errors:
            console.print(f"  - {error}")
        console.print("\n[yellow]Please run 'cdt init' to reconfigure.[/yellow]")
        sys.exit(1)

    return config


@contextmanager
def _connected(config: CoffeeConfig, listen: bool = False):
    """Connected session for one command. The wallet is closed on exit."""
    wallet = detect_wallet(config)
    session = DonationSession(config, wallet, listen=listen)
    try:
        if not asyncio.run(session.connect()):
            console.print(f"[red]Error: {session.status_message}[/red]")
            sys.exit(1)
        yield session
    finally:
        session.close()
        if wallet is not None:
            wallet.close()


def _short(value: str, head: int = 6, tail: int = 4) -> str:
    if len(value) > head + tail:
        return f"{value[:head]}...{value[-tail:]}"
    return value


def _memo_row(memo: Memo) -> list[str]:
    return [
        memo.display_name,
        memo.message,
        f"{memo.amount_ether:.6f}",
        memo.donated_at.strftime("%Y-%m-%d %H:%M"),
        _short(memo.from_address)
    ]


@click.group()
@click.version_option(version="0.1.0")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def cli(verbose):
    """Coffee Donation Tracker - Donate to and follow a BuyMeACoffee contract."""
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING)


@cli.command()
def init():
    """Initialize configuration for Coffee Donation Tracker."""
    console.print("\n[bold cyan]Coffee Donation Tracker - Initialization[/bold cyan]\n")

    instructions = """
[bold]Wallet[/bold]

The tracker talks to a wallet over JSON-RPC. Point it at a wallet bridge
or at a development node with unlocked accounts, for example:
  http://localhost:8545

[bold]Network[/bold]

If the wallet is on another chain it is asked to switch, and to add the
chain with the RPC and explorer URLs below if it does not know it.
    """

    console.print(Panel(instructions, border_style="cyan"))

    console.print("\n[bold]Configuration:[/bold]\n")

    wallet_url = click.prompt("Wallet URL", default="http://localhost:8545", type=str)
    chain_id = click.prompt("Target chain id", default=SEPOLIA_CHAIN_ID, type=int)
    chain_name = click.prompt("Chain name", default="Sepolia Testnet", type=str)
    rpc_url = click.prompt("Chain RPC URL", default="https://rpc.sepolia.org", type=str)
    explorer_url = click.prompt("Block explorer URL", default="https://sepolia.etherscan.io/", type=str)
    contract_address = click.prompt("Contract address (blank for the registry)", default="", type=str)

    config = CoffeeConfig(
        wallet_url=wallet_url,
        chain_id=chain_id,
        chain_name=chain_name,
        rpc_url=rpc_url,
        explorer_url=explorer_url,
        contract_address=contract_address or None
    )

    errors = config.validate()
    if errors:
        console.print("\n[bold red]Configuration errors:[/bold red]")
        for error in errors:
            console.print(f"  - {error}")
        sys.exit(1)

    console.print("\n[yellow]Testing connection to wallet...[/yellow]")
    wallet = HTTPWallet(config.wallet_url)
    try:
        connected = wallet.test_connection()
    finally:
        wallet.close()

    if connected:
        console.print("[green]✓ Connection successful![/green]")
    else:
        console.print("[red]✗ Connection failed[/red]")
        sys.exit(1)

    save_config(config)
    config_path = get_config_path()

    console.print(f"\n[green]Configuration saved to: {config_path}[/green]")
    console.print("\n[bold]Next steps:[/bold]")
    console.print("  1. Run [cyan]cdt status[/cyan] to connect and view totals")
    console.print("  2. Run [cyan]cdt memos[/cyan] to see the top supporters")
    console.print("  3. Run [cyan]cdt donate --amount 0.001[/cyan] to buy a coffee\n")


@cli.command()
def status():
    """Connect the wallet and show balance and donation totals."""
    config = _load_valid_config()
    with _connected(config) as session:
        summary_text = f"""
[bold]Address:[/bold] {session.connection.address}
[bold]Chain:[/bold] {config.chain_name} ({session.connection.chain_id})
[bold]Balance:[/bold] {session.connection.balance_ether:.6f} {config.currency_symbol}
[bold]Total Donations:[/bold] {session.read_model.total_donations_ether:.6f} {config.currency_symbol}
[bold]Memos:[/bold] {len(session.memos)}
        """

    console.print(Panel(summary_text.strip(), title="Donation Summary", border_style="green"))


@cli.command()
@click.option("--layout", type=click.Choice(["desktop", "mobile"], case_sensitive=False),
              default="desktop", help="Card layout to project")
@click.option("--all", "show_all", is_flag=True, help="List every memo instead of the top six")
def memos(layout, show_all):
    """Display the top memos by donation amount."""
    config = _load_valid_config()
    with _connected(config) as session:
        all_memos = session.memos
        projection = session.project(Viewport(layout.lower()))

    if not all_memos:
        console.print("\n[yellow]No memos yet.[/yellow]")
        return

    table = Table(box=box.ROUNDED)
    table.add_column("Name", style="cyan")
    table.add_column("Message")
    table.add_column(f"Amount ({config.currency_symbol})", style="green", justify="right")
    table.add_column("Date", style="dim")
    table.add_column("From", style="dim")

    if show_all:
        console.print(f"\n[bold]All {len(all_memos)} Memos:[/bold]\n")
        for memo in all_memos:
            table.add_row(*_memo_row(memo))
    else:
        console.print(f"\n[bold]Top {len(projection.placed)} Memos:[/bold]\n")
        table.add_column("Position", style="magenta")
        for placed in projection.placed:
            position = ", ".join(f"{k}={v}" for k, v in placed.position.items()) if placed.position else "-"
            table.add_row(*_memo_row(placed.memo), position)

    console.print(table)


@cli.command()
@click.option("--name", default="", help="Display name (blank for Anonymous)")
@click.option("--message", default="", help="Message attached to the donation")
@click.option("--amount", default="0.001", help="Amount in the native currency")
@click.option("--receipt-dir", type=click.Path(file_okay=False, path_type=Path),
              default=Path("."), help="Directory for the receipt JSON")
def donate(name, message, amount, receipt_dir):
    """Buy a coffee: send a donation with a memo."""
    config = _load_valid_config()
    draft = DonationDraft(name=name, message=message, amount=amount)

    with _connected(config) as session:
        console.print("[yellow]Submitting donation, confirm it in your wallet...[/yellow]\n")
        receipt = asyncio.run(session.donate(draft))
        if receipt is None:
            console.print(f"[red]{session.donation_error}[/red]")
            sys.exit(1)

        path = session.export_receipt(receipt_dir)

        receipt_text = f"""
[bold]Transaction:[/bold] {receipt.transaction_hash}
[bold]Block:[/bold] {receipt.block_number}
[bold]Gas Used:[/bold] {receipt.gas_used}
[bold]Receipt:[/bold] {path}
        """

        console.print(f"[green]✓ {session.donation_success}[/green]")
        console.print(Panel(receipt_text.strip(), title="Transaction Receipt", border_style="green"))
        if session.status_message:
            console.print(f"[yellow]{session.status_message}[/yellow]")


async def _watch(session: DonationSession) -> None:
    if not await session.connect():
        console.print(f"[red]Error: {session.status_message}[/red]")
        return

    printed = len(session.memos)

    def show_new(memos: list[Memo]) -> None:
        nonlocal printed
        for memo in memos[printed:]:
            console.print(
                f"[cyan]{memo.display_name}[/cyan] gave "
                f"[green]{memo.amount_ether:.6f}[/green]: {memo.message}"
            )
        printed = len(memos)

    session.feed.on_change(show_new)
    console.print(f"[yellow]Watching for new memos ({printed} so far). Press Ctrl-C to stop.[/yellow]")
    try:
        while session.subscription is not None and session.subscription.active:
            await asyncio.sleep(session.config.poll_interval)
        console.print("[red]Stopped listening for new memos. Run with --verbose for details.[/red]")
    finally:
        session.close()


@cli.command()
def watch():
    """Print new memos as they are emitted."""
    config = _load_valid_config()
    wallet = detect_wallet(config)
    session = DonationSession(config, wallet, listen=True)

    try:
        asyncio.run(_watch(session))
    except KeyboardInterrupt:
        console.print("\n[yellow]Stopped.[/yellow]")
    finally:
        if wallet is not None:
            wallet.close()

    if not session.connection.connected:
        sys.exit(1)


@cli.command()
def config():
    """Display current configuration."""
    try:
        cfg = load_config()
        config_path = get_config_path()
    except FileNotFoundError:
        console.print("[red]Configuration not found. Please run 'cdt init' first.[/red]")
        sys.exit(1)

    if cfg.contract_address:
        contract = cfg.contract_address
    elif cfg.chain_id in default_registry():
        contract = "registry default"
    else:
        contract = "[red]none registered for this chain[/red]"

    config_text = f"""
[bold]Configuration Path:[/bold] {config_path}

[bold]Wallet URL:[/bold] {cfg.wallet_url}
[bold]Chain:[/bold] {cfg.chain_name} ({cfg.chain_id})
[bold]Chain RPC URL:[/bold] {cfg.rpc_url}
[bold]Explorer:[/bold] {cfg.explorer_url}
[bold]Contract:[/bold] {contract}
    """

    console.print(Panel(config_text.strip(), title="Current Configuration", border_style="cyan"))


def main():
    """Main entry point for CLI."""
    cli()


if __name__ == "__main__":
    main()
