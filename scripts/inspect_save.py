"""Print a read-only summary of a save file.

Usage:
    python scripts/inspect_save.py
    python scripts/inspect_save.py --state data/state.json --history data/history.db

Nothing is written back: the save is restored into a throwaway session.
"""

from __future__ import annotations

import asyncio
import sys
import time
from pathlib import Path

import click

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from economy.content import load_catalog
from engine.config import GameSettings, content_path, load_config, resolve_path
from engine.core import GameSession
from engine.queues import QueueKind
from engine.storage import HistoryDB, StateManager


async def _print_history(db_path: Path, limit: int) -> None:
    async with HistoryDB(db_path) as db:
        total = await db.get_advancement_count()
        click.echo(f"\nAdvancements journaled: {total}")
        for row in await db.get_recent_advancements(limit):
            click.echo(f"  {row['created_at'][:19]}  {row['realm']} layer {row['minor'] + 1}")
        click.echo("\nRecent events:")
        for row in await db.get_recent_notifications(limit):
            click.echo(f"  [{row['category']}] {row['message']}")


@click.command()
@click.option("--state", "state_path", type=click.Path(), default=None, help="Save file (defaults to settings)")
@click.option("--history", "history_path", type=click.Path(), default=None, help="Also print the journal")
@click.option("--limit", type=int, default=10, show_default=True, help="Journal rows to show")
@click.option("--config-dir", type=click.Path(), default=None, help="Config directory")
def inspect(state_path: str | None, history_path: str | None, limit: int, config_dir: str | None) -> None:
    """Show rates, progression, queues and task boards of a save."""

    cfg = load_config(config_dir)
    settings = GameSettings.from_config(cfg)
    catalog = load_catalog(content_path(cfg))

    path = Path(state_path) if state_path else resolve_path(cfg, "state_file", "data/state.json")
    snapshot = StateManager(path).load()
    if snapshot is None:
        click.echo(f"No save at {path}", err=True)
        sys.exit(1)

    session = GameSession(catalog, settings)
    result = session.restore(snapshot)
    if not result.ok:
        click.echo(f"Save is malformed: {result.message}", err=True)
        sys.exit(1)

    now = time.time()
    prog = session.get_progression_snapshot()
    res = session.get_resources()

    click.echo(f"\n{prog['realm']}, layer {prog['layer']}/9" + ("  (peak)" if prog["terminal"] else ""))
    click.echo(f"  layer multiplier  x{prog['layer_mult']:.3f}")
    click.echo(f"  advancements      {prog['advancements']}")
    click.echo(f"  ascension points  {prog['advancement_points']}")
    if prog["next_cost"] is not None:
        click.echo(f"  next cost         {prog['next_cost']:,.0f} qi")
    for name, amount in prog["secondary_costs"].items():
        click.echo(f"                    {amount:,.0f} {name}")

    click.echo("\nResources (per second with active buffs):")
    effective = session.get_effective_rates(now)
    for name in ("qi", "herbs", "spirit_stones", "beasts", "jade"):
        click.echo(f"  {name:<14} {res[name]:>16,.1f}   +{effective[f'{name}_per_sec']:,.3f}/s")
    click.echo(f"  capacity       {res['capacity']:>16,.0f}")
    click.echo(f"  tap value      {effective['tap_value']:>16,.1f}")

    for kind in QueueKind:
        entries = session.get_queue_snapshot(kind, now)
        if not entries:
            continue
        click.echo(f"\n{kind.value.capitalize()} queue:")
        for e in entries:
            click.echo(f"  {e['definition_id']:<20} {e['progress']:>6.0%}  {e['remaining']:,.0f}s left")

    for board_id in catalog.task_boards:
        board = session.get_task_board(board_id, now)
        click.echo(f"\n{board['name']} (claimed {board['claimed']}):")
        for t in board["tasks"]:
            mark = "done" if t["completed"] else f"{t['progress']:,.0f}/{t['amount']:,.0f}"
            click.echo(f"  {t['name']:<24} tier {t['tier'] + 1}  {mark}")

    if history_path:
        asyncio.run(_print_history(Path(history_path), limit))
    click.echo("")


if __name__ == "__main__":
    inspect()
