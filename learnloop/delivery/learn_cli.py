"""
learnloop: terminal Learn mode.

A Rich terminal interface for adaptive Learn sessions over a study set.

Commands:
- learnloop learn     - Start or resume a Learn session
- learnloop progress  - Show per-term Learn progress
- learnloop reset     - Clear Learn progress for a set
"""
from __future__ import annotations

import random
import sys
from pathlib import Path
from typing import Optional

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm, Prompt
from rich.table import Table

from learnloop.config import Settings, get_settings
from learnloop.core.errors import InvalidModeConfig
from learnloop.core.modes import AnswerMode, AnswerWith, LearnMode
from learnloop.core.ports import RecordStore
from learnloop.core.terms import Term, TermRecord, TermState
from learnloop.learn.scheduler import RoundSummary, SessionStats
from learnloop.learn.session import (
    LearnSession,
    Question,
    RoundComplete,
    SessionFinished,
    open_learn_session,
)
from learnloop.sync.platform_store import PlatformRecordStore
from learnloop.sync.record_store import SqliteRecordStore, SyncError

from .answers import build_choices, is_written_correct
from .study_set import JsonStudySet, StudySet

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="learnloop",
    help="learnloop: adaptive Learn mode for study sets",
    no_args_is_help=True,
)
console = Console()

SHUFFLE_COMMAND = "!shuffle"
QUIT_COMMAND = "!quit"

STYLES = {
    "correct": "bold green",
    "incorrect": "bold red",
    "info": "bold cyan",
    "state": {
        TermState.UNSEEN: "dim",
        TermState.ACTIVE: "yellow",
        TermState.MASTERED: "green",
    },
}


def style_state(state: TermState) -> str:
    color = STYLES["state"][state]
    return f"[{color}]{state.value}[/{color}]"


def open_store(settings: Settings) -> RecordStore:
    """Platform store when an API is configured, local SQLite otherwise."""
    if settings.has_platform:
        return PlatformRecordStore(settings.platform_config())
    return SqliteRecordStore(settings.records_db_path)


def _load_set(set_file: Path) -> tuple[JsonStudySet, StudySet]:
    try:
        return JsonStudySet.from_file(set_file)
    except (OSError, ValueError) as e:
        console.print(f"[red]Could not load study set:[/red] {e}")
        raise typer.Exit(1) from e


# =============================================================================
# Display Helpers
# =============================================================================


def display_question(question: Question, stats: SessionStats) -> None:
    """Display the prompt side of a term."""
    header = (
        f"Round {question.round_number}  |  {style_state(question.state)}  |  "
        f"{stats.mastered}/{stats.total} mastered"
    )
    label = "Word" if question.answer_with == AnswerWith.DEFINITION else "Definition"
    console.print(
        Panel(
            f"[dim]{label}[/dim]\n\n{question.prompt}",
            title=header,
            title_align="left",
            border_style="cyan",
            padding=(1, 2),
        )
    )


def display_feedback(question: Question, is_correct: bool, record: TermRecord, threshold: int) -> None:
    if is_correct:
        content = f"[green]✓ Correct[/green]  ({record.correctness}/{threshold})"
        style = STYLES["correct"]
    else:
        content = f"[red]✗ Incorrect[/red]\n\nAnswer: [bold]{question.expected}[/bold]"
        style = STYLES["incorrect"]
    console.print(Panel(content, border_style=style, padding=(0, 2)))


def display_round_summary(summary: RoundSummary) -> None:
    console.print(
        Panel(
            f"Answered: {summary.answered}\n"
            f"Correct: {summary.correct}\n"
            f"Newly mastered: {summary.newly_mastered}\n"
            f"Still learning: {summary.remaining}",
            title=f"Round {summary.round_number} complete",
            border_style="cyan",
        )
    )


def display_session_summary(stats: SessionStats) -> None:
    console.print(
        Panel(
            f"[bold]All {stats.total} terms mastered![/bold]\n\n"
            f"Rounds: {stats.round_number}\n"
            f"Answers: {stats.answered}\n"
            f"Accuracy: {stats.accuracy_percent:.1f}%",
            title="Summary",
            border_style="green",
        )
    )


# =============================================================================
# Answer Collection
# =============================================================================


def ask_multiple_choice(question: Question, terms: list[Term], rng: random.Random) -> bool | str:
    """
    Ask a multiple-choice question.

    Returns:
        Whether the answer was correct, or a command string
    """
    options = build_choices(question.term, question.answer_with, terms, rng)
    for i, option in enumerate(options, 1):
        console.print(f"  [bold]{i}[/bold]. {option}")

    choices = [str(i) for i in range(1, len(options) + 1)] + [SHUFFLE_COMMAND, QUIT_COMMAND]
    picked = Prompt.ask("\nYour answer", choices=choices, show_choices=False)
    if picked in (SHUFFLE_COMMAND, QUIT_COMMAND):
        return picked
    return options[int(picked) - 1] == question.expected


def ask_written(question: Question) -> bool | str:
    answer = Prompt.ask("\nYour answer")
    if answer.strip() in (SHUFFLE_COMMAND, QUIT_COMMAND):
        return answer.strip()
    return is_written_correct(answer, question.expected)


def run_session(session: LearnSession, terms: list[Term], rng: random.Random) -> None:
    """Drive a session until it finishes or the learner quits."""
    while True:
        step = session.next_step()

        if isinstance(step, SessionFinished):
            if step.stats.total == 0:
                console.print("\n[yellow]Nothing to study with these settings.[/yellow]")
            else:
                display_session_summary(step.stats)
            return

        if isinstance(step, RoundComplete):
            display_round_summary(step.summary)
            if not Confirm.ask("Start the next round?", default=True):
                return
            continue

        display_question(step, session.stats())
        if session.config.answer_mode == AnswerMode.WRITTEN:
            result = ask_written(step)
        else:
            result = ask_multiple_choice(step, terms, rng)

        if result == QUIT_COMMAND:
            return
        if result == SHUFFLE_COMMAND:
            session.reshuffle()
            console.print("[dim]Remaining terms reshuffled.[/dim]")
            continue

        record = session.answer(step.term.id, bool(result))
        display_feedback(step, bool(result), record, session.scheduler.threshold)


# =============================================================================
# Commands
# =============================================================================


@app.command()
def learn(
    set_file: Path = typer.Argument(..., help="Study set JSON file"),
    review: bool = typer.Option(False, "--review", "-r", help="Only study missed terms, worst first"),
    starred: bool = typer.Option(False, "--starred", "-s", help="Only study starred terms"),
    written: bool = typer.Option(False, "--written", "-w", help="Type answers instead of choosing"),
    answer_with: AnswerWith = typer.Option(
        AnswerWith.DEFINITION, "--answer-with", "-a", help="Side to answer with"
    ),
    shuffle: bool = typer.Option(False, "--shuffle", help="Shuffle term order"),
    threshold: Optional[int] = typer.Option(
        None, "--threshold", "-t", help="Correct answers needed to master a term"
    ),
    fresh: bool = typer.Option(False, "--fresh", help="Start a new round 1 that asks every unmastered term again"),
) -> None:
    """
    Start an adaptive Learn session.

    Terms are asked round by round until every term is mastered. Type
    !shuffle to reshuffle the remaining terms or !quit to stop.
    """
    settings = get_settings()
    source, study_set = _load_set(set_file)

    try:
        config = settings.mode_config(
            learn_mode=LearnMode.REVIEW if review else LearnMode.LEARN,
            answer_mode=AnswerMode.WRITTEN if written else None,
            answer_with=answer_with,
            starred_only=starred,
            starred_term_ids=study_set.starred,
            shuffle=shuffle,
            mastery_threshold=threshold,
        )
        session = open_learn_session(
            source,
            open_store(settings),
            study_set.id,
            settings.user_id,
            config,
            resume=not fresh,
            max_retries=settings.sync_max_retries,
            retry_delay_seconds=settings.sync_retry_delay_seconds,
            flush_timeout=settings.sync_flush_timeout_seconds,
        )
    except InvalidModeConfig as e:
        console.print(f"[red]Cannot start Learn:[/red] {e}")
        raise typer.Exit(1) from e
    except SyncError as e:
        console.print(f"[red]Could not load progress:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(f"\n[bold cyan]{study_set.title or study_set.id}[/bold cyan] - Learn")
    console.print("=" * 40)

    with session:
        try:
            run_session(session, study_set.terms, random.Random())
        except KeyboardInterrupt:
            console.print("\n\n[yellow]Session interrupted.[/yellow]")


@app.command()
def progress(
    set_file: Path = typer.Argument(..., help="Study set JSON file"),
    written: bool = typer.Option(False, "--written", "-w", help="Judge mastery by the written threshold"),
    threshold: Optional[int] = typer.Option(
        None, "--threshold", "-t", help="Correct answers needed to master a term"
    ),
) -> None:
    """Show per-term Learn progress."""
    settings = get_settings()
    _, study_set = _load_set(set_file)

    try:
        mastery_threshold = settings.mode_config(
            answer_mode=AnswerMode.WRITTEN if written else None,
            mastery_threshold=threshold,
        ).threshold()
    except InvalidModeConfig as e:
        console.print(f"[red]Invalid options:[/red] {e}")
        raise typer.Exit(1) from e

    store = open_store(settings)

    try:
        records = {
            r.term_id: r for r in store.load(settings.user_id, [t.id for t in study_set.terms])
        }
        current_round = store.load_round(settings.user_id, study_set.id)
    except SyncError as e:
        console.print(f"[red]Could not load progress:[/red] {e}")
        raise typer.Exit(1) from e

    table = Table(title=f"{study_set.title or study_set.id} (round {current_round})")
    table.add_column("Word")
    table.add_column("State")
    table.add_column("Correct", justify="right")
    table.add_column("Misses", justify="right")
    table.add_column("Last round", justify="right")

    for term in sorted(study_set.terms, key=lambda t: t.rank):
        record = records.get(term.id) or TermRecord.fresh(term.id)
        table.add_row(
            term.word,
            style_state(TermState.of(record, mastery_threshold)),
            f"{record.correctness}/{mastery_threshold}",
            str(record.incorrect_count),
            str(record.appeared_in_round or "-"),
        )

    console.print(table)


@app.command()
def reset(
    set_file: Path = typer.Argument(..., help="Study set JSON file"),
    confirm: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Clear Learn progress for a study set."""
    settings = get_settings()
    _, study_set = _load_set(set_file)

    if not confirm and not Confirm.ask(
        f"Reset Learn progress for {study_set.title or study_set.id}?", default=False
    ):
        raise typer.Exit(0)

    store = open_store(settings)
    try:
        count = store.reset(settings.user_id, [t.id for t in study_set.terms])
        store.reset_round(settings.user_id, study_set.id)
    except SyncError as e:
        console.print(f"[red]Reset failed:[/red] {e}")
        raise typer.Exit(1) from e

    console.print(f"[green]Reset {count} term records.[/green]")


# =============================================================================
# Entry Point
# =============================================================================


def main() -> None:
    """CLI entry point."""
    # Configure logging
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<dim>{time:HH:mm:ss}</dim> | <level>{level: <8}</level> | {message}",
    )

    app()


if __name__ == "__main__":
    main()
