"""CLI entry point for hourglass.

Uses Click to expose the ``hourglass`` command group with subcommands
that delegate to the TaskRunner.
"""

from __future__ import annotations

import logging
import sys
from typing import Callable, TypeVar

import click

import hourglass
from hourglass.config import Settings
from hourglass.core.alarm import Alarm, build_player
from hourglass.core.cancel import CancelToken, listen_for_interrupt
from hourglass.core.errors import HourglassError
from hourglass.core.store import TaskStore
from hourglass.core.tasks import TaskRunner
from hourglass.core.timer import Timer
from hourglass.logging_setup import setup_logging

T = TypeVar("T")

logger = logging.getLogger(__name__)


def _fail(message: str) -> None:
    click.echo(f"hourglass: {message}", err=True)
    sys.exit(1)


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting errors to a one-line CLI diagnostic.

    The message is printed to stderr prefixed with the program name and the
    process exits with code 1.
    """
    try:
        return action()
    except HourglassError as exc:
        _fail(str(exc))
    except Exception as exc:
        logger.debug("Unexpected error", exc_info=True)
        _fail(str(exc) or exc.__class__.__name__)


def _runner(ctx: click.Context, token: CancelToken | None = None) -> TaskRunner:
    settings: Settings = ctx.obj
    token = token if token is not None else CancelToken()
    return TaskRunner(
        store=TaskStore(settings.task_file),
        timer=Timer(token),
        alarm=Alarm(build_player(settings), token),
    )


@click.group()
@click.version_option(version=hourglass.__version__, prog_name="hourglass")
@click.option("-v", "--verbose", is_flag=True, help="Log debug output to stderr.")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """hourglass: time your tasks and learn how long they really take."""
    settings = Settings.from_env()
    setup_logging(logging.DEBUG if verbose else settings.log_level)
    ctx.obj = settings


@cli.command()
@click.pass_context
def init(ctx: click.Context) -> None:
    """Create an empty task file."""
    runner = _runner(ctx)
    click.echo(_run(runner.create_task_file))


@cli.command("set")
@click.argument("task")
@click.argument("time")
@click.pass_context
def set_(ctx: click.Context, task: str, time: str) -> None:
    """Set the target TIME for TASK, e.g. 25m, 90s, 2h or 500ms."""
    runner = _runner(ctx)
    click.echo(_run(lambda: runner.set_task(task, time)))


@cli.command()
@click.argument("task")
@click.pass_context
def remove(ctx: click.Context, task: str) -> None:
    """Remove all data for TASK."""
    runner = _runner(ctx)
    click.echo(_run(lambda: runner.remove_task(task)))


@cli.command()
@click.argument("tasks", nargs=-1)
@click.pass_context
def view(ctx: click.Context, tasks: tuple[str, ...]) -> None:
    """Show the given TASKS, or every task when none are named."""
    runner = _runner(ctx)
    click.echo(_run(lambda: runner.view_tasks(tasks)))


@cli.command()
@click.argument("task")
@click.pass_context
def track(ctx: click.Context, task: str) -> None:
    """Measure time spent on TASK until CTRL-C and update its average."""
    token = CancelToken()
    runner = _runner(ctx, token)
    with listen_for_interrupt(token):
        message = _run(lambda: runner.run_tracked_session(task))
    click.echo(message)


@cli.command()
@click.argument("task")
@click.option("--silent", is_flag=True, help="Do not show the progress bar.")
@click.pass_context
def start(ctx: click.Context, task: str, silent: bool) -> None:
    """Start the timer for TASK and ring an alarm when it is up."""
    token = CancelToken()
    runner = _runner(ctx, token)
    with listen_for_interrupt(token):
        message = _run(lambda: runner.run_fixed_timer(task, silent=silent))
    click.echo(message)
