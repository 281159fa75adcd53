"""Entry point for the cultivation simulation.

Usage:
    python main.py --once                   # Resume, catch up offline, save
    python main.py --once --ticks 60        # ...then fast-forward 60 seconds
    python main.py --daemon                 # Tick continuously in real time
    python main.py --daemon --auto-advance  # ...breaking through whenever affordable
    python main.py --once --auto-claim      # Claim finished quests and bounties
    python main.py --reset                  # Start a fresh save
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from pathlib import Path

import click

from economy.content import load_catalog
from economy.outcomes import Category, Notification
from engine.config import GameSettings, content_path, load_config, resolve_path
from engine.core import GameSession
from engine.storage import HistoryDB, StateManager

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False, log_file: str | None = None) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    fmt = "%(asctime)s — %(name)s — %(levelname)s — %(message)s"

    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if log_file:
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(level=level, format=fmt, handlers=handlers)

    # Quiet down noisy libraries
    logging.getLogger("aiosqlite").setLevel(logging.WARNING)


def _summary(session: GameSession) -> str:
    prog = session.get_progression_snapshot()
    res = session.get_resources()
    rates = session.get_final_rates()
    return (
        f"[{prog['realm']} {prog['layer']}/9] "
        f"qi {res['qi']:,.0f}/{res['capacity']:,.0f} (+{rates.qi_per_sec:,.2f}/s) | "
        f"herbs {res['herbs']:,.0f} | stones {res['spirit_stones']:,.0f} | "
        f"beasts {res['beasts']:,.0f} | jade {res['jade']:,.0f}"
    )


async def _journal_advancement(db: HistoryDB, session: GameSession, data: dict, now: float) -> None:
    """Record one advancement with the values it had when it happened."""
    await db.log_advancement(
        data["major"],
        data["minor"],
        realm=session.catalog.realm_name(data["major"]),
        cost=data.get("cost", 0.0),
        reward=data.get("reward", 0),
        game_time=now,
    )


async def _journal(db: HistoryDB, session: GameSession, notes: list[Notification], now: float) -> None:
    for note in notes:
        click.echo(f"  · {note.message}")
        await db.log_notification(note.category.value, note.message, game_time=now)
        if note.category is Category.PROGRESSION and "major" in note.data:
            await _journal_advancement(db, session, note.data, now)


def _claim_all(session: GameSession, now: float) -> None:
    for board_id in session.catalog.task_boards:
        session.claim_tasks(board_id, now)


def _load_session(session: GameSession, state_mgr: StateManager) -> None:
    snapshot = state_mgr.load()
    if snapshot is None:
        return
    result = session.restore(snapshot)
    if not result.ok:
        click.echo(f"  {result.message}; starting a new journey.")


async def _run_once(
    session: GameSession,
    state_mgr: StateManager,
    db_path: Path,
    ticks: int,
    auto_advance: bool,
    auto_claim: bool,
) -> None:
    now = time.time()
    _load_session(session, state_mgr)
    session.resume(now)
    if ticks > 0:
        session.advance_to(now + ticks)
    if auto_advance:
        while session.advance().ok:
            pass
    if auto_claim:
        _claim_all(session, session.state.last_tick)
    async with HistoryDB(db_path) as db:
        await _journal(db, session, session.consume_notifications(), session.state.last_tick)
    state_mgr.save(session.serialize())
    click.echo(f"\n  {_summary(session)}\n")


async def _run_daemon(
    session: GameSession,
    state_mgr: StateManager,
    db_path: Path,
    settings: GameSettings,
    auto_advance: bool,
    auto_claim: bool,
) -> None:
    click.echo("Your cultivation continues. Running in daemon mode.\n")
    _load_session(session, state_mgr)
    session.resume(time.time())

    async with HistoryDB(db_path) as db:
        ticks = 0
        try:
            while True:
                now = time.time()
                try:
                    session.tick(now)
                    if auto_advance:
                        session.advance()
                    if auto_claim:
                        _claim_all(session, now)
                    await _journal(db, session, session.consume_notifications(), now)
                except KeyboardInterrupt:
                    raise
                except Exception as e:
                    logger.error("Tick error: %s", e, exc_info=True)

                ticks += 1
                if ticks % settings.autosave_ticks == 0:
                    state_mgr.save(session.serialize())
                    click.echo(f"  {_summary(session)}")
                await asyncio.sleep(settings.tick_seconds)
        finally:
            state_mgr.save(session.serialize())


@click.command()
@click.option("--once", is_flag=True, help="Resume, catch up and save once")
@click.option("--daemon", is_flag=True, help="Tick continuously")
@click.option("--ticks", type=int, default=0, show_default=True, help="Seconds to fast-forward with --once")
@click.option("--auto-advance", is_flag=True, help="Break through whenever qi allows")
@click.option("--auto-claim", is_flag=True, help="Claim completed quests and bounties")
@click.option("--reset", is_flag=True, help="Discard the save and start over")
@click.option("--verbose", is_flag=True, help="Enable debug logging")
@click.option("--config-dir", type=click.Path(), default=None, help="Config directory")
def main(
    once: bool,
    daemon: bool,
    ticks: int,
    auto_advance: bool,
    auto_claim: bool,
    reset: bool,
    verbose: bool,
    config_dir: str | None,
) -> None:
    """Cultivation idle simulation."""

    if not once and not daemon and not reset:
        click.echo("Specify --once, --daemon or --reset. Use --help for details.")
        sys.exit(1)

    cfg = load_config(config_dir)

    log_file = None
    if cfg.get("storage", {}).get("log_file"):
        log_path = resolve_path(cfg, "log_file", "data/cultivation.log")
        log_path.parent.mkdir(parents=True, exist_ok=True)
        log_file = str(log_path)
    _setup_logging(verbose=verbose, log_file=log_file)

    settings = GameSettings.from_config(cfg)
    catalog = load_catalog(content_path(cfg))
    session = GameSession(catalog, settings)
    state_mgr = StateManager(resolve_path(cfg, "state_file", "data/state.json"))
    db_path = resolve_path(cfg, "history_db", "data/history.db")

    if reset:
        session.reset()
        session.resume(time.time())
        state_mgr.save(session.serialize())
        click.echo("A new journey begins.")
        if not once and not daemon:
            return

    if once:
        asyncio.run(_run_once(session, state_mgr, db_path, ticks, auto_advance, auto_claim))
    else:
        try:
            asyncio.run(_run_daemon(session, state_mgr, db_path, settings, auto_advance, auto_claim))
        except KeyboardInterrupt:
            click.echo("\nYou close your eyes and the sect falls quiet.")


if __name__ == "__main__":
    main()
