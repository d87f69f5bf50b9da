"""Command line interface for HabitSage."""

from __future__ import annotations

from datetime import date
from typing import Optional

import click

from .config import BaseConfig
from .context import AppContext, create_app_context
from .logging_config import setup_logging
from .models.habit import GoalUnit, Habit, HabitType, MetricKind, QuitHabitType, TrackingMode
from .services.habit_engine import HabitUpdate
from .services.presets import ALL_PRESETS, find_preset


def _choices(enum_cls) -> click.Choice:
    return click.Choice([member.value for member in enum_cls], case_sensitive=False)


def _app(ctx: click.Context) -> AppContext:
    return ctx.obj


def _lookup(app: AppContext, name: str) -> Habit:
    habit = app.habit_repo.get_by_name(name)
    if habit is None:
        raise click.ClickException(f"No habit named {name!r}")
    return habit


def _report(update: HabitUpdate) -> None:
    if not update.ok:
        raise click.ClickException(update.error.message)
    habit = update.habit
    if not update.changed:
        click.echo(f"{habit.name}: nothing to change")
        return
    state = "done" if habit.is_completed else "open"
    click.echo(
        f"{habit.name}: {habit.display_progress} ({state}) "
        f"streak {habit.streak}, best {habit.longest_streak}"
    )


def _parse_day(value: Optional[str]) -> Optional[date]:
    if value is None:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError as exc:
        raise click.BadParameter(f"{value!r} is not a YYYY-MM-DD date") from exc


@click.group()
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Track habits and their streaks."""

    config = BaseConfig()
    setup_logging(config)
    app = create_app_context(config)
    ctx.obj = app
    ctx.call_on_close(app.shutdown)


@cli.command("init")
@click.pass_context
def init_command(ctx: click.Context) -> None:
    """Create the database and repair stored streaks."""

    app = _app(ctx)
    reports = app.startup()
    repaired = sum(1 for report in reports if report.counters_changed)
    click.echo(f"Database ready at {app.config.DATABASE_URL} ({repaired} habit(s) repaired)")


@cli.command("add")
@click.argument("name")
@click.option("--type", "habit_type", type=_choices(HabitType), default=HabitType.BUILD.value)
@click.option("--quit-kind", type=_choices(QuitHabitType), default=None)
@click.option("--target", type=float, default=1.0, show_default=True)
@click.option("--unit", type=_choices(GoalUnit), default=GoalUnit.NONE.value)
@click.option("--automatic", is_flag=True, default=False, help="Sync progress from the metric source")
@click.option("--metric", type=_choices(MetricKind), default=None)
@click.option("--preset", "use_preset", is_flag=True, default=False, help="Use a preset with this name")
@click.pass_context
def add_command(
    ctx: click.Context,
    name: str,
    habit_type: str,
    quit_kind: Optional[str],
    target: float,
    unit: str,
    automatic: bool,
    metric: Optional[str],
    use_preset: bool,
) -> None:
    """Add a habit."""

    app = _app(ctx)
    mode = TrackingMode.AUTOMATIC if automatic else TrackingMode.MANUAL
    if use_preset:
        preset = find_preset(name)
        if preset is None:
            raise click.ClickException(f"No preset named {name!r}")
        update = app.habits.create_from_preset(preset, tracking_mode=mode)
    else:
        update = app.habits.create_habit(
            name,
            habit_type=HabitType(habit_type.lower()),
            quit_habit_type=QuitHabitType(quit_kind.lower()) if quit_kind else None,
            goal_target=target,
            goal_unit=GoalUnit(unit.lower()),
            tracking_mode=mode,
            metric_kind=MetricKind(metric.lower()) if metric else None,
        )
    if not update.ok:
        raise click.ClickException(update.error.message)
    click.echo(f"Added {update.habit.name}")


@cli.command("presets")
def presets_command() -> None:
    """List preset habits."""

    for preset in ALL_PRESETS:
        click.echo(f"{preset.name:<24} {preset.habit_type.value:<6} {preset.description}")


@cli.command("list")
@click.pass_context
def list_command(ctx: click.Context) -> None:
    """Show habits with today's progress and streaks."""

    app = _app(ctx)
    app.habits.reconcile_all(app.clock.today())
    habits = app.habits.list_habits()
    if not habits:
        click.echo("No habits yet")
        return
    for habit in habits:
        mark = "x" if habit.is_completed else " "
        percent = f"{habit.progress_percentage:.0%}"
        click.echo(
            f"[{mark}] {habit.name:<24} {habit.display_progress:<16} {percent:>4} "
            f"streak {habit.streak} (best {habit.longest_streak})"
        )


@cli.command("complete")
@click.argument("name")
@click.option("--day", default=None, help="Backdate to YYYY-MM-DD")
@click.pass_context
def complete_command(ctx: click.Context, name: str, day: Optional[str]) -> None:
    """Mark a build habit done."""

    app = _app(ctx)
    _report(app.habits.record_completion(_lookup(app, name), _parse_day(day)))


@cli.command("progress")
@click.argument("name")
@click.argument("amount", type=float)
@click.option("--day", default=None, help="Backdate to YYYY-MM-DD")
@click.pass_context
def progress_command(ctx: click.Context, name: str, amount: float, day: Optional[str]) -> None:
    """Add progress toward a goal (negative amounts subtract)."""

    app = _app(ctx)
    _report(app.habits.add_progress(_lookup(app, name), amount, _parse_day(day)))


@cli.command("quit-success")
@click.argument("name")
@click.option("--day", default=None, help="Backdate to YYYY-MM-DD")
@click.pass_context
def quit_success_command(ctx: click.Context, name: str, day: Optional[str]) -> None:
    """Mark a quit habit's day as clean."""

    app = _app(ctx)
    _report(app.habits.record_quit_success(_lookup(app, name), _parse_day(day)))


@cli.command("fail")
@click.argument("name")
@click.option("--day", default=None, help="Backdate to YYYY-MM-DD")
@click.pass_context
def fail_command(ctx: click.Context, name: str, day: Optional[str]) -> None:
    """Record a lapse on a quit habit."""

    app = _app(ctx)
    _report(app.habits.record_failure(_lookup(app, name), _parse_day(day)))


@cli.command("reset")
@click.argument("name")
@click.confirmation_option(prompt="Reset the current streak?")
@click.pass_context
def reset_command(ctx: click.Context, name: str) -> None:
    """Start the current streak over."""

    app = _app(ctx)
    _report(app.habits.reset_streak(_lookup(app, name)))


@cli.command("delete")
@click.argument("name")
@click.confirmation_option(prompt="Delete this habit and its history?")
@click.pass_context
def delete_command(ctx: click.Context, name: str) -> None:
    """Delete a habit and all of its entries."""

    app = _app(ctx)
    update = app.habits.delete_habit(_lookup(app, name))
    if not update.ok:
        raise click.ClickException(update.error.message)
    click.echo(f"Deleted {name}")


@cli.command("repair")
@click.pass_context
def repair_command(ctx: click.Context) -> None:
    """Recompute every habit's streaks from its history."""

    app = _app(ctx)
    reports = app.habits.repair_all()
    for report in reports:
        if report.counters_changed or report.duplicates_collapsed:
            click.echo(
                f"habit {report.habit_id}: repaired "
                f"({report.duplicates_collapsed} duplicate entries collapsed)"
            )
    click.echo(f"Checked {len(reports)} habit(s)")


@cli.command("history")
@click.argument("name")
@click.option("--days", type=click.IntRange(1, 366), default=14, show_default=True)
@click.pass_context
def history_command(ctx: click.Context, name: str, days: int) -> None:
    """Show recent successful days, oldest first."""

    app = _app(ctx)
    history = app.habits.streak_history(_lookup(app, name), days=days)
    for day in sorted(history):
        click.echo(f"{day.isoformat()} {'#' if history[day] else '.'}")


@cli.command("travel")
@click.option("--forward", "direction", flag_value="forward", help="Move one day forward")
@click.option("--back", "direction", flag_value="back", help="Move one day back")
@click.option("--to", "target", default=None, help="Jump to YYYY-MM-DD")
@click.option("--reset", "direction", flag_value="reset", help="Return to the real date")
@click.pass_context
def travel_command(ctx: click.Context, direction: Optional[str], target: Optional[str]) -> None:
    """Move the debug current date (dev mode only)."""

    app = _app(ctx)
    if not app.dev_mode:
        raise click.ClickException("Time travel is only available in dev mode")

    clock = app.clock
    if target is not None:
        clock.set_date(_parse_day(target))
    elif direction == "forward":
        clock.move_forward()
    elif direction == "back":
        clock.move_backward()
    elif direction == "reset":
        clock.reset_to_today()
    # Date listeners stay quiet when the day does not move.
    app.settings_repo.set_debug_date(clock.override)
    suffix = " (debug)" if clock.is_debugging else ""
    click.echo(f"Current date: {clock.today().isoformat()}{suffix}")


def main() -> None:
    cli(prog_name="habitsage")


if __name__ == "__main__":
    main()
