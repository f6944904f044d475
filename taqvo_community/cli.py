"""
Command-line interface for Taqvo Community.

This module provides CLI commands for inspecting community state, joining
challenges and replaying the offline write queue against the backend.
"""

import asyncio
import json
import sys
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import click

from taqvo_community.auth import SessionAuthProvider
from taqvo_community.community import CommunityModel
from taqvo_community.config import get_settings
from taqvo_community.exceptions import TaqvoCommunityError
from taqvo_community.gateway import create_gateway
from taqvo_community.models import LeaderboardSort
from taqvo_community.storage import JsonFileKeyValueStore
from taqvo_community.utils.logging import setup_logging


@asynccontextmanager
async def open_model(user_id: Optional[str], access_token: Optional[str]) -> AsyncIterator[CommunityModel]:
    settings = get_settings()
    kv = JsonFileKeyValueStore(settings.storage.state_file)
    auth = SessionAuthProvider(user_id=user_id, access_token=access_token)
    gateway = create_gateway(auth, settings)
    try:
        yield CommunityModel(gateway, kv, user_id=user_id)
    finally:
        await gateway.aclose()


def _run(coro) -> None:
    try:
        asyncio.run(coro)
    except TaqvoCommunityError as e:
        click.echo(f"❌ {e}", err=True)
        sys.exit(1)


@click.group()
@click.option("--debug", is_flag=True, help="Enable debug logging")
@click.option("--user-id", envvar="TAQVO_USER_ID", help="Signed-in user identifier")
@click.option("--access-token", envvar="TAQVO_ACCESS_TOKEN", help="Backend access token")
@click.pass_context
def cli(ctx: click.Context, debug: bool, user_id: Optional[str], access_token: Optional[str]) -> None:
    """Taqvo Community command-line interface."""
    settings = get_settings()
    setup_logging("DEBUG" if debug or settings.debug else settings.log_level, settings.log_format)
    ctx.obj = {"user_id": user_id, "access_token": access_token}


@cli.command()
@click.option("--json", "as_json", is_flag=True, help="Print raw JSON")
@click.pass_obj
def challenges(obj: dict, as_json: bool) -> None:
    """Load and list challenges."""
    async def run() -> None:
        async with open_model(obj["user_id"], obj["access_token"]) as model:
            await model.load()
            if as_json:
                click.echo(json.dumps(model.snapshot()["challenges"], indent=2))
                return
            if not model.challenges:
                click.echo("No challenges available")
            for c in model.challenges:
                marker = "✅" if c.is_joined else "  "
                click.echo(
                    f"{marker} {c.id}  {c.title}  {c.start_date} → {c.end_date}  "
                    f"goal {c.goal_distance_meters / 1000:.0f} km"
                )

    _run(run())


@cli.command()
@click.option(
    "--sort", "-s",
    type=click.Choice([m.value for m in LeaderboardSort]),
    default=LeaderboardSort.DISTANCE.value,
    help="Leaderboard ordering",
)
@click.pass_obj
def leaderboard(obj: dict, sort: str) -> None:
    """Show the leaderboard."""
    async def run() -> None:
        async with open_model(obj["user_id"], obj["access_token"]) as model:
            await model.load()
            model.set_leaderboard_sort(sort)
            for entry in model.leaderboard:
                line = f"{entry.rank:>3}. {entry.user_name:<20} {entry.total_distance_meters / 1000:8.2f} km"
                if sort == LeaderboardSort.PACE.value:
                    line += f"  {entry.average_pace_seconds_per_km:7.0f} s/km"
                elif sort == LeaderboardSort.STREAK.value:
                    line += f"  {entry.streak_days or 0} days"
                click.echo(line)

    _run(run())


@cli.command()
@click.argument("challenge_id")
@click.pass_obj
def join(obj: dict, challenge_id: str) -> None:
    """Toggle join state for a challenge."""
    async def run() -> None:
        async with open_model(obj["user_id"], obj["access_token"]) as model:
            await model.load()
            is_joined = await model.toggle_join(challenge_id)
            if is_joined is None:
                click.echo(f"❌ Unknown challenge {challenge_id}", err=True)
                sys.exit(1)
            state = "joined" if is_joined else "left"
            queued = " (queued for sync)" if model.pending_writes else ""
            click.echo(f"✅ {state} {challenge_id}{queued}")

    _run(run())


@cli.command()
@click.pass_obj
def queue(obj: dict) -> None:
    """Show pending offline writes for the user."""
    async def run() -> None:
        async with open_model(obj["user_id"], obj["access_token"]) as model:
            pending = model.pending_writes
            if not pending:
                click.echo("✅ No pending writes")
                return
            click.echo(f"📋 {len(pending)} pending write(s):")
            for op in pending:
                click.echo(f"  • {op.model_dump_json()}")

    _run(run())


@cli.command()
@click.pass_obj
def drain(obj: dict) -> None:
    """Replay pending offline writes."""
    async def run() -> None:
        async with open_model(obj["user_id"], obj["access_token"]) as model:
            result = await model.flush_pending_writes()
            click.echo(
                f"Replayed {result.succeeded}/{result.attempted} write(s), "
                f"{len(model.pending_writes)} still pending"
            )

    _run(run())


def main() -> None:
    cli()


if __name__ == "__main__":
    main()
