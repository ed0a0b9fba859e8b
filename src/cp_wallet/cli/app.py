"""CLI for cp-wallet - manage a computing provider's keys and collateral."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape
from rich.panel import Panel
from rich.table import Table

from cp_wallet.errors import WalletError
from cp_wallet.models import CollateralKind

app = typer.Typer(
    name="cp-wallet",
    help="Manage the signing keys, collateral and CP account of a computing provider.",
    no_args_is_help=True,
)
console = Console()


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"cp-wallet {version('cp-wallet')}")
        raise typer.Exit()


@app.callback()
def main(
    log_level: str = typer.Option(
        "WARNING",
        "--log-level",
        "-l",
        help="Logging level (DEBUG, INFO, WARNING, ERROR)",
        envvar="CP_WALLET_LOG_LEVEL",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Manage the signing keys, collateral and CP account of a computing provider."""
    logging.basicConfig(
        level=log_level.upper(),
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def _manager():
    from cp_wallet.manager import WalletManager

    return WalletManager.from_env()


@contextmanager
def _errors() -> Iterator[None]:
    """Print wallet errors and exit non-zero."""
    try:
        yield
    except (WalletError, ValueError) as e:
        console.print(f"[red]{escape(str(e))}[/red]")
        raise typer.Exit(1)


def _print_tx(title: str, tx_hash: str) -> None:
    console.print(Panel(f"Tx: [cyan]{tx_hash}[/cyan]", title=title))


# ------------------------------------------------------------------
# wallet sub-commands
# ------------------------------------------------------------------

wallet_app = typer.Typer(
    name="wallet",
    help="Manage the local wallet keys.",
    no_args_is_help=True,
)
app.add_typer(wallet_app, name="wallet")


@wallet_app.command("new")
def wallet_new():
    """Generate a new key and store it in the keystore."""
    with _errors():
        addr = _manager().new()
    console.print(f"[cyan]{addr}[/cyan]")


@wallet_app.command("import")
def wallet_import():
    """Import a hex private key."""
    private_key = console.input("[bold]Private key: [/bold]", password=True)
    with _errors():
        addr = _manager().import_key(private_key)
    console.print(f"Imported [cyan]{addr}[/cyan]")


@wallet_app.command("export")
def wallet_export(address: str = typer.Argument(help="Wallet address (0x...)")):
    """Print the private key of an address."""
    typer.confirm("This prints your private key in plain text. Continue?", abort=True)
    with _errors():
        ki = _manager().export(address)
    console.print(ki.private_key)


@wallet_app.command("delete")
def wallet_delete(address: str = typer.Argument(help="Wallet address (0x...)")):
    """Remove an address from the local keystore."""
    typer.confirm(f"Delete {address} from the local keystore?", abort=True)
    with _errors():
        _manager().delete(address)
    console.print(f"{address} has been deleted from the local keystore")


@wallet_app.command("list")
def wallet_list(
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
    contract: bool = typer.Option(False, "--contract", help="Show collateral token balance"),
):
    """List stored addresses with balance and pending nonce."""
    with _errors():
        rows = _manager().wallet_list(chain_name=chain, contract_balance=contract)

    table = Table(title="Wallets")
    table.add_column("Address", style="cyan")
    table.add_column("Balance", justify="right")
    table.add_column("Nonce", justify="right")
    table.add_column("Error", style="dim")
    for row in rows:
        table.add_row(
            row.address,
            row.balance,
            "" if row.nonce is None else str(row.nonce),
            f"[red]{escape(row.error)}[/red]" if row.error else "",
        )
    console.print(table)


@wallet_app.command("sign")
def wallet_sign(
    address: str = typer.Argument(help="Signing address (0x...)"),
    message: str = typer.Argument(help="Message to sign"),
):
    """Sign a message with an address's key."""
    with _errors():
        signature = _manager().sign(address, message.encode("utf-8"))
    console.print(signature)


@wallet_app.command("verify")
def wallet_verify(
    address: str = typer.Argument(help="Expected signer (0x...)"),
    signature: str = typer.Argument(help="Hex signature"),
    message: str = typer.Argument(help="Signed message"),
):
    """Check that a signature over a message was made by an address."""
    with _errors():
        ok = _manager().verify(address, signature, message)
    if not ok:
        console.print("[red]Signature does not match.[/red]")
        raise typer.Exit(1)
    console.print("[green]Signature valid.[/green]")


@wallet_app.command("send")
def wallet_send(
    amount: str = typer.Argument(help="Amount to send (e.g. 0.01)"),
    from_address: str = typer.Option(..., "--from", "-f", help="Sender address (0x...)"),
    to: str = typer.Option(..., "--to", "-t", help="Recipient address (0x...)"),
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
):
    """Send native tokens."""
    console.print(f"\n[bold]Send {amount} ETH[/bold]\n  From: {from_address}\n  To: {to}\n")
    typer.confirm("Confirm this transaction?", abort=True)
    with _errors():
        tx_hash = _manager().wallet_send(from_address, to, amount, chain_name=chain)
    _print_tx("Transaction Sent", tx_hash)


# ------------------------------------------------------------------
# collateral sub-commands
# ------------------------------------------------------------------

collateral_app = typer.Typer(
    name="collateral",
    help="Manage provider collateral.",
    no_args_is_help=True,
)
app.add_typer(collateral_app, name="collateral")


@collateral_app.command("add")
def collateral_add(
    amount: str = typer.Argument(help="Amount to deposit (e.g. 10)"),
    from_address: str = typer.Option(..., "--from", "-f", help="Depositing address (0x...)"),
    kind: CollateralKind = typer.Option(CollateralKind.FCP, "--kind", "-k", help="Collateral type"),
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
):
    """Deposit collateral. FCP deposits wait for the token approval to confirm."""
    with _errors():
        tx_hash = _manager().collateral_add(from_address, amount, kind=kind, chain_name=chain)
    _print_tx("Collateral Deposited", tx_hash)


@collateral_app.command("withdraw")
def collateral_withdraw(
    amount: str = typer.Argument(help="Amount to withdraw"),
    owner: str = typer.Option(..., "--owner", "-o", help="Owner address (0x...)"),
    kind: CollateralKind = typer.Option(CollateralKind.FCP, "--kind", "-k", help="Collateral type"),
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
):
    """Withdraw collateral to the owner."""
    with _errors():
        tx_hash = _manager().collateral_withdraw(owner, amount, kind=kind, chain_name=chain)
    _print_tx("Collateral Withdrawn", tx_hash)


@collateral_app.command("send")
def collateral_send(
    amount: str = typer.Argument(help="Amount of collateral tokens"),
    from_address: str = typer.Option(..., "--from", "-f", help="Sender address (0x...)"),
    to: str = typer.Option(..., "--to", "-t", help="Recipient address (0x...)"),
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
):
    """Transfer collateral tokens to another address."""
    with _errors():
        tx_hash = _manager().collateral_send(from_address, to, amount, chain_name=chain)
    _print_tx("Collateral Sent", tx_hash)


@collateral_app.command("info")
def collateral_info(
    kind: CollateralKind = typer.Option(CollateralKind.FCP, "--kind", "-k", help="Collateral type"),
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
):
    """Show collateral and escrow balances."""
    with _errors():
        rows = _manager().collateral_info(kind=kind, chain_name=chain)

    table = Table(title="Collateral")
    table.add_column("Address", style="cyan")
    table.add_column("Balance", justify="right")
    table.add_column("Collateral", justify="right")
    table.add_column("Escrow", justify="right")
    table.add_column("Error", style="dim")
    for row in rows:
        table.add_row(
            row.address,
            row.balance,
            row.collateral,
            row.escrow,
            f"[red]{escape(row.error)}[/red]" if row.error else "",
        )
    console.print(table)


# ------------------------------------------------------------------
# account sub-commands
# ------------------------------------------------------------------

account_app = typer.Typer(
    name="account",
    help="Manage the CP account contract.",
    no_args_is_help=True,
)
app.add_typer(account_app, name="account")


@account_app.command("info")
def account_info(
    contract: str = typer.Argument(None, help="CP account contract (defaults to config)"),
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
):
    """Show the on-chain CP account."""
    with _errors():
        account = _manager().account_info(contract=contract, chain_name=chain)

    table = Table(title="CP Account", show_header=False)
    table.add_column("Field", style="bold")
    table.add_column("Value")
    table.add_row("Contract", account.contract)
    table.add_row("Owner", account.owner_address)
    table.add_row("Available(SWAN-ETH)", account.owner_balance or "-")
    table.add_row("Node ID", account.node_id)
    table.add_row("Multi-Address", "\n".join(account.multi_addresses))
    table.add_row("UBI Flag", "Accept" if account.ubi_flag else "Reject")
    table.add_row("Beneficiary", account.beneficiary.address)
    console.print(table)


@account_app.command("change-owner")
def account_change_owner(
    new_owner: str = typer.Argument(help="New owner address (0x...)"),
    owner: str = typer.Option(..., "--owner", "-o", help="Current owner address (0x...)"),
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
):
    """Transfer ownership of the CP account."""
    with _errors():
        tx_hash = _manager().change_owner(owner, new_owner, chain_name=chain)
    _print_tx("ChangeOwnerAddress", tx_hash)


@account_app.command("change-beneficiary")
def account_change_beneficiary(
    beneficiary: str = typer.Argument(help="New beneficiary address (0x...)"),
    owner: str = typer.Option(..., "--owner", "-o", help="Owner address (0x...)"),
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
):
    """Set the address that receives rewards."""
    with _errors():
        tx_hash = _manager().change_beneficiary(owner, beneficiary, chain_name=chain)
    _print_tx("ChangeBeneficiary", tx_hash)


@account_app.command("change-ubi-flag")
def account_change_ubi_flag(
    flag: int = typer.Argument(help="0: reject UBI tasks, 1: accept"),
    owner: str = typer.Option(..., "--owner", "-o", help="Owner address (0x...)"),
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
):
    """Accept or reject UBI tasks."""
    if flag not in (0, 1):
        raise typer.BadParameter("ubiFlag must be 0 or 1")
    with _errors():
        tx_hash = _manager().change_ubi_flag(owner, flag, chain_name=chain)
    _print_tx("ChangeUbiFlag", tx_hash)


@account_app.command("change-multi-address")
def account_change_multi_address(
    multi_addresses: List[str] = typer.Argument(help="New multi-addresses"),
    owner: str = typer.Option(..., "--owner", "-o", help="Owner address (0x...)"),
    chain: str = typer.Option(None, "--chain", "-c", help="RPC name from config.yaml"),
):
    """Replace the CP's advertised multi-addresses."""
    with _errors():
        tx_hash = _manager().change_multi_addresses(owner, multi_addresses, chain_name=chain)
    _print_tx("ChangeMultiaddrs", tx_hash)
