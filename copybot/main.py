"""
copybot - Main Entry Point

Usage:
    copybot run [--dry-run]     # Start copying the source account
    copybot balance [ADDRESS]   # Show USDC / MATIC balances
    copybot book TOKEN_ID       # Show best bid / ask and last trade
    copybot ledger              # Show ledger state
    copybot order SIDE TOKEN_ID AMOUNT [--dry-run]   # Place one manual order
    copybot allowance [ADDRESS] [--approve N]        # Show / set USDC allowance
"""

import asyncio
import sys
from datetime import datetime, timezone
from typing import Optional

import click
from eth_account import Account
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table
from sqlalchemy.exc import SQLAlchemyError

from .api_client import PolymarketDataClient
from .balance import BalanceChecker, ApprovalError
from .config import (
    get_settings, Settings, ConfigurationError, ContractAddresses, TradingConstants
)
from .exchange import ClobExchange, PaperExchange
from .ledger import TradeLedger
from .order_replicator import OrderReplicator
from .trade_executor import TradeExecutor
from .trade_monitor import TradeMonitor

console = Console()


def configure_logging(settings: Settings):
    """Stderr sink for operators, rotating file sink for audits"""
    logger.remove()
    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=settings.log_level.upper()
    )
    if settings.log_file:
        logger.add(
            settings.log_file,
            level="DEBUG",
            rotation="1 day",
            retention="14 days",
            enqueue=True
        )


class CopyTradingBot:
    """
    Wires the monitor and executor loops around a shared ledger
    """

    def __init__(self, settings: Settings, dry_run: bool = False):
        self.settings = settings
        self.dry_run = dry_run
        self.ledger: Optional[TradeLedger] = None
        self.data_client: Optional[PolymarketDataClient] = None
        self.monitor: Optional[TradeMonitor] = None
        self.executor: Optional[TradeExecutor] = None

    async def initialize(self):
        """Validate identity and open every collaborator; failures here are fatal"""
        self.settings.require_identity(live=not self.dry_run)

        self.ledger = await TradeLedger.open(
            self.settings.user_address, self.settings.database_url
        )
        self.data_client = PolymarketDataClient(self.settings)

        if self.dry_run:
            exchange = PaperExchange.connect(self.settings)
        else:
            try:
                signer = Account.from_key(self.settings.private_key).address
            except ValueError as e:
                raise ConfigurationError(f"PRIVATE_KEY is not a valid key: {e}") from e
            logger.info(f"Signing orders as {signer}")
            exchange = await asyncio.to_thread(ClobExchange.connect, self.settings)

        replicator = OrderReplicator(
            exchange,
            self.ledger,
            retry_limit=self.settings.retry_limit,
            price_tolerance=self.settings.price_tolerance
        )
        self.monitor = TradeMonitor(self.settings, self.ledger, self.data_client)
        self.executor = TradeExecutor(
            self.settings,
            self.ledger,
            self.data_client,
            BalanceChecker(self.settings),
            replicator,
            console=console
        )
        await self.monitor.initialize()

    async def run(self):
        """Start both loops and block until they stop"""
        try:
            await self.initialize()

            mode = "DRY RUN" if self.dry_run else "LIVE"
            console.print(Panel(
                f"[bold]Copy Trading Bot Started[/bold]\n"
                f"Mode: [yellow]{mode}[/yellow]\n"
                f"Source: {self.settings.user_address}\n"
                f"Bot wallet: {self.settings.proxy_wallet}\n"
                f"Press Ctrl+C to stop",
                title="Status"
            ))

            await asyncio.gather(self.monitor.run(), self.executor.run())
        finally:
            await self.stop()

    async def stop(self):
        """Stop the bot"""
        if self.monitor:
            self.monitor.stop()
        if self.executor:
            self.executor.stop()
        if self.data_client:
            await self.data_client.close()
        if self.ledger:
            await self.ledger.close()


# CLI Commands
@click.group()
def cli():
    """Proportional Polymarket copy trading"""
    configure_logging(get_settings())


@cli.command()
@click.option('--dry-run', is_flag=True, help='Read the live book but simulate fills')
def run(dry_run: bool):
    """Start the copy trading service"""
    bot = CopyTradingBot(get_settings(), dry_run=dry_run)
    try:
        asyncio.run(bot.run())
    except KeyboardInterrupt:
        console.print("\n[yellow]Shutting down...[/yellow]")
    except ConfigurationError as e:
        logger.error(str(e))
        sys.exit(1)
    except (SQLAlchemyError, OSError) as e:
        logger.error(f"Could not open the trade ledger: {e}")
        sys.exit(1)


@cli.command()
@click.argument('address', required=False)
def balance(address: Optional[str]):
    """Show USDC and MATIC balances (defaults to the bot wallet)"""
    settings = get_settings()
    address = address or settings.proxy_wallet
    if not address:
        console.print("[red]No address given and PROXY_WALLET is not set[/red]")
        sys.exit(1)

    info = asyncio.run(BalanceChecker(settings).check_balances(address))

    table = Table(title="Wallet Balances")
    table.add_column("Asset", style="cyan")
    table.add_column("Balance", justify="right", style="green")
    table.add_row("Address", info.address)
    table.add_row("USDC", f"${info.usdc:,.2f}")
    table.add_row("MATIC", f"{info.matic:.4f}")
    console.print(table)


@cli.command()
@click.argument('token_id')
def book(token_id: str):
    """Show best bid, best ask and last trade price for an outcome token"""
    exchange = PaperExchange.connect(get_settings())

    async def _book():
        return (
            await exchange.get_order_book(token_id),
            await exchange.get_last_trade_price(token_id),
        )

    order_book, last_price = asyncio.run(_book())
    bid, ask = order_book.best_bid(), order_book.best_ask()

    def fmt(value: Optional[float]) -> str:
        return f"{value:.4f}" if value is not None else "-"

    table = Table(title=f"Order Book {token_id[:12]}...")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Best Bid", f"{fmt(bid.price if bid else None)} x {fmt(bid.size if bid else None)}")
    table.add_row("Best Ask", f"{fmt(ask.price if ask else None)} x {fmt(ask.size if ask else None)}")
    table.add_row("Midpoint", fmt(order_book.midpoint))
    table.add_row("Spread", fmt(order_book.spread))
    table.add_row("Last Trade", fmt(last_price))
    console.print(table)


@cli.command()
@click.argument('side', type=click.Choice(['BUY', 'SELL'], case_sensitive=False))
@click.argument('token_id')
@click.argument('amount', type=float)
@click.option('--dry-run', is_flag=True, help='Simulate the fill instead of trading')
def order(side: str, token_id: str, amount: float, dry_run: bool):
    """Place one fill-or-kill order at the best price (AMOUNT: USDC to buy, shares to sell)"""
    settings = get_settings()
    side = side.upper()
    if not dry_run and not (settings.private_key and settings.proxy_wallet):
        console.print("[red]PRIVATE_KEY and PROXY_WALLET are required for live orders[/red]")
        sys.exit(1)

    async def _order():
        if dry_run:
            exchange = PaperExchange.connect(settings)
        else:
            exchange = await asyncio.to_thread(ClobExchange.connect, settings)

        order_book = await exchange.get_order_book(token_id)
        level = order_book.best_ask() if side == TradingConstants.BUY else order_book.best_bid()
        if level is None:
            return None, None
        response = await exchange.submit_market_order(
            side=side, token_id=token_id, amount=amount, price=level.price
        )
        return level, response

    level, response = asyncio.run(_order())
    if level is None:
        console.print(f"[red]No {'asks' if side == TradingConstants.BUY else 'bids'} for this token[/red]")
        sys.exit(1)

    if response.success:
        console.print(
            f"[green]Order filled[/green] {side} {amount:.4f} @ {level.price:.4f} "
            f"(order {response.order_id})"
        )
    else:
        console.print(f"[red]Order rejected:[/red] {response.error_message or 'no reason given'}")
        sys.exit(1)


@cli.command()
@click.argument('address', required=False)
@click.option('--spender', default=ContractAddresses.CTF_EXCHANGE, show_default=True,
              help='Contract allowed to spend USDC')
@click.option('--approve', 'approve_amount', default=None,
              help='Approve this many USDC ("max" for unlimited) from the PRIVATE_KEY wallet')
def allowance(address: Optional[str], spender: str, approve_amount: Optional[str]):
    """Show (and optionally set) the USDC allowance granted to the exchange"""
    settings = get_settings()
    checker = BalanceChecker(settings)

    if approve_amount is not None:
        if not settings.private_key:
            console.print("[red]PRIVATE_KEY is required to approve[/red]")
            sys.exit(1)
        if approve_amount.lower() in ("max", "unlimited"):
            amount = None
        else:
            try:
                amount = float(approve_amount)
            except ValueError:
                console.print('[red]Amount must be a number or "max"[/red]')
                sys.exit(1)

        try:
            with console.status("Waiting for transaction confirmation..."):
                tx_hash = asyncio.run(checker.approve(settings.private_key, spender, amount))
        except (ApprovalError, ValueError) as e:
            console.print(f"[red]Approval failed:[/red] {e}")
            sys.exit(1)
        console.print(f"[green]Approved[/green] tx {tx_hash}")
        address = address or Account.from_key(settings.private_key).address

    address = address or settings.proxy_wallet
    if not address:
        console.print("[red]No address given and PROXY_WALLET is not set[/red]")
        sys.exit(1)

    current = asyncio.run(checker.get_allowance(address, spender))

    table = Table(title="USDC Allowance")
    table.add_column("Field", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Owner", address)
    table.add_row("Spender", spender)
    table.add_row("Allowance", f"${current:,.2f}")
    console.print(table)

    if current == 0:
        console.print("[yellow]No allowance set, buys will be rejected until USDC is approved[/yellow]")
    elif current < TradingConstants.LOW_ALLOWANCE:
        console.print("[yellow]Low allowance, consider increasing it for larger trades[/yellow]")
    else:
        console.print("[green]Allowance is set[/green]")


@cli.command()
@click.option('--limit', '-n', default=20, help='Number of recent trades to list')
def ledger(limit: int):
    """Show ledger state for the source account"""
    settings = get_settings()
    if not settings.user_address:
        console.print("[red]USER_ADDRESS is not set[/red]")
        sys.exit(1)

    async def _ledger():
        trade_ledger = await TradeLedger.open(settings.user_address, settings.database_url)
        try:
            counts = await trade_ledger.state_counts(settings.retry_limit)
            records = await trade_ledger.recent(limit)
        finally:
            await trade_ledger.close()

        console.print(Panel(
            f"Pending: {counts['pending']}\n"
            f"Done: {counts['done']}\n"
            f"Failed: {counts['failed']}",
            title="Ledger"
        ))

        if not records:
            console.print("[yellow]No trades recorded[/yellow]")
            return

        table = Table(title="Recent Trades")
        table.add_column("Time")
        table.add_column("Tx", style="cyan")
        table.add_column("Side")
        table.add_column("Size", justify="right")
        table.add_column("Price", justify="right")
        table.add_column("State", justify="center")

        for r in records:
            if not r.bot:
                state = "[yellow]pending[/yellow]"
            elif (r.bot_executed_time or 0) >= settings.retry_limit:
                state = "[red]failed[/red]"
            else:
                state = "[green]done[/green]"
            table.add_row(
                datetime.fromtimestamp(r.timestamp, timezone.utc).strftime("%Y-%m-%d %H:%M"),
                f"{r.transaction_hash[:10]}...",
                r.side,
                f"{r.size:.2f}",
                f"{r.price:.4f}",
                state
            )

        console.print(table)

    asyncio.run(_ledger())


if __name__ == "__main__":
    cli()
