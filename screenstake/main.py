"""Screen Stake CLI."""
import re
import sys
from datetime import datetime
from functools import wraps
from pathlib import Path
from typing import Optional

import click
from loguru import logger

from .core.config import load_config
from .core.errors import StakeError
from .core.events import Staked, Withdrawn, OwnershipTransferred
from .core.ledger import open_ledger
from .core.log import configure_logging

DURATION_PATTERN = re.compile(r'^(?:(\d+)h)?(?:(\d+)m)?(?:(\d+)s?)?$')


def parse_seconds(value: str) -> int:
    """Parse ``3600``, ``10h``, ``90m`` or ``1h30m`` into seconds."""
    match = DURATION_PATTERN.match(value.strip())
    if not value.strip() or not match:
        raise click.BadParameter(f"{value!r} is not a duration (use e.g. 3600, 10h, 90m)")
    hours, minutes, seconds = (int(g) if g else 0 for g in match.groups())
    return hours * 3600 + minutes * 60 + seconds


class Seconds(click.ParamType):
    name = "seconds"

    def convert(self, value, param, ctx):
        if isinstance(value, int):
            return value
        return parse_seconds(value)


SECONDS = Seconds()


def format_time(timestamp: float) -> str:
    return datetime.fromtimestamp(timestamp).strftime('%Y-%m-%d %H:%M')


def resolve_caller(caller: Optional[str]) -> str:
    """Explicit ``--caller`` or the account from the config."""
    return caller or click.get_current_context().obj["config"].caller


def ledger_command(func):
    """Pass the ledger to ``func`` and turn ledger rejections into exit code 1."""
    @click.pass_context
    @wraps(func)
    def wrapper(ctx, *args, **kwargs):
        ledger = ctx.obj.get("ledger")
        if ledger is None:
            ledger = open_ledger(ctx.obj["config"])
            ctx.obj["ledger"] = ledger
        try:
            return func(ledger, *args, **kwargs)
        except StakeError as e:
            logger.error(f"{type(e).__name__}: {e}")
            sys.exit(1)
    return wrapper


@click.group()
@click.version_option(package_name="screen-stake")
@click.option('--config', 'config_path', type=click.Path(path_type=Path), help='Path to config file')
@click.pass_context
def cli(ctx, config_path: Optional[Path]):
    """Screen Stake CLI for operating the staking ledger."""
    config = load_config(config_path)
    configure_logging(config.log_level)
    ctx.ensure_object(dict)
    ctx.obj["config"] = config


@cli.group()
def stake():
    """Manage stakes."""
    pass


@stake.command('open')
@click.argument('user')
@click.option('--amount', required=True, type=int, help='Deposit in the smallest unit')
@click.option('--duration', required=True, type=SECONDS, help='Staking period (e.g. 86400, 24h)')
@click.option('--allowed-time', required=True, type=SECONDS, help='Screen time allowance (e.g. 10h)')
@click.option('--caller', help='Caller identity (defaults to the configured account)')
@ledger_command
def open_(ledger, user: str, amount: int, duration: int, allowed_time: int, caller: Optional[str]):
    """Open a stake for USER."""
    record = ledger.open_stake(resolve_caller(caller), user, amount, duration, allowed_time)
    click.echo(f"Staked {record.amount} for {user}")
    click.echo(f"Ends: {format_time(record.end_time)}")
    click.echo(f"Allowed screen time: {record.allowed_time}s")


@stake.command()
@click.argument('user')
@click.option('--screen-time', required=True, type=SECONDS, help='Observed screen time')
@ledger_command
def preview(ledger, user: str, screen_time: int):
    """Show the reward USER would receive."""
    reward = ledger.preview_reward(user, screen_time)
    record = ledger.get_stake(user)
    click.echo(f"Reward: {reward}")
    click.echo(f"Penalty: {record.amount - reward}")


@stake.command()
@click.argument('user')
@click.option('--screen-time', required=True, type=SECONDS, help='Observed screen time')
@click.option('--caller', help='Caller identity (defaults to the configured account)')
@ledger_command
def settle(ledger, user: str, screen_time: int, caller: Optional[str]):
    """Settle USER's stake and pay out the reward."""
    reward, penalty = ledger.settle(resolve_caller(caller), user, screen_time)
    click.echo(f"Settled stake for {user}")
    click.echo(f"Reward: {reward}")
    click.echo(f"Penalty: {penalty}")


@stake.command()
@click.argument('user')
@ledger_command
def show(ledger, user: str):
    """Show USER's stake."""
    record = ledger.get_stake(user)
    if record is None:
        click.echo(f"No stake found for {user}")
        return

    click.echo(f"\nStake for {user}:")
    click.echo("-" * 40)
    click.echo(f"Status: {ledger.status(user)}")
    click.echo(f"Amount: {record.amount}")
    click.echo(f"Started: {format_time(record.start_time)}")
    click.echo(f"Ends: {format_time(record.end_time)}")
    click.echo(f"Allowed screen time: {record.allowed_time}s")
    if record.withdrawn:
        click.echo(f"Reward: {record.reward}")
        click.echo(f"Penalty: {record.penalty}")


@stake.command('list')
@ledger_command
def list_(ledger):
    """List all stakes."""
    stakes = ledger.stakes()
    if not stakes:
        click.echo("No stakes recorded")
        return

    click.echo(f"{'User':<30}{'Amount':<28}{'Ends':<20}{'Status':<10}")
    click.echo("-" * 88)
    for user, record in sorted(stakes.items()):
        click.echo(
            f"{user:<30}"
            f"{record.amount:<28}"
            f"{format_time(record.end_time):<20}"
            f"{ledger.status(user):<10}"
        )


@cli.group()
def owner():
    """Manage the operator identity."""
    pass


@owner.command('show')
@ledger_command
def owner_show(ledger):
    """Show the current owner."""
    click.echo(ledger.gate.owner)


@owner.command('transfer')
@click.argument('new_owner')
@click.option('--caller', help='Caller identity (defaults to the configured account)')
@ledger_command
def owner_transfer(ledger, new_owner: str, caller: Optional[str]):
    """Transfer ownership to NEW_OWNER."""
    ledger.gate.transfer_ownership(resolve_caller(caller), new_owner)
    click.echo(f"Owner is now {new_owner}")


@cli.group()
def pool():
    """Manage the ledger's balance."""
    pass


@pool.command('balance')
@ledger_command
def pool_balance(ledger):
    """Show the pool balance."""
    click.echo(f"Pool balance: {ledger.balance}")


@pool.command('deposit')
@click.argument('amount', type=int)
@ledger_command
def pool_deposit(ledger, amount: int):
    """Add AMOUNT to the pool outside of any stake."""
    ledger.receive_deposit(amount)
    click.echo(f"Pool balance: {ledger.balance}")


@pool.command('sweep')
@click.option('--caller', help='Caller identity (defaults to the configured account)')
@ledger_command
def pool_sweep(ledger, caller: Optional[str]):
    """Send the whole pool balance to the owner."""
    amount = ledger.sweep_balance(resolve_caller(caller))
    click.echo(f"Swept {amount} to {ledger.gate.owner}")


def describe_event(event) -> str:
    if isinstance(event, Staked):
        return f"Staked {event.user} amount={event.amount} end_time={event.end_time}"
    if isinstance(event, Withdrawn):
        return f"Withdrawn {event.user} reward={event.reward} penalty={event.penalty}"
    if isinstance(event, OwnershipTransferred):
        return f"OwnershipTransferred {event.previous_owner} -> {event.new_owner}"
    return repr(event)


@cli.command()
@click.option('--limit', default=10, help='Number of events to show')
@ledger_command
def events(ledger, limit: int):
    """Show recent ledger events."""
    recent = ledger.events.recent(limit)
    if not recent:
        click.echo("No events recorded")
        return
    for event in recent:
        click.echo(f"{format_time(event.timestamp):<18}{describe_event(event)}")


if __name__ == "__main__":
    cli()
