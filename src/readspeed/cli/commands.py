"""CLI commands for ReadSpeed.

Operational chores (database, seeding, users, environment checks, serving)
plus terminal drills built on the same pacing code as the web
exercises.
"""

import sqlite3
import time
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from readspeed.config.app_config import load_app_config, validate_environment
from readspeed.core import auth, exercises, subscriptions
from readspeed.core.leaderboard import InvalidTimeRangeError, get_leaderboard
from readspeed.core.pacing import DrillConfigError, DrillStateError
from readspeed.core.seed import seed_defaults
from readspeed.core.three_two_one import ROUND_MODES, ThreeTwoOneDrill, rounds_from_config
from readspeed.core.word_flasher import FlashMode, FlashSettings, RapidReader, WordFlashDrill
from readspeed.db import exercises_repository
from readspeed.db import users_repository as users
from readspeed.db.database import init_db
from readspeed.utils.logging_config import configure_logging
from readspeed.utils.validators import ValidationError, normalize_email

app = typer.Typer(
    name="readspeed",
    help="ReadSpeed reading-speed trainer: administration and terminal drills.",
    no_args_is_help=True,
)

console = Console()


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logs"),
) -> None:
    configure_logging("debug" if verbose else load_app_config().log_level)


def _open_database() -> Path:
    db_path = Path(load_app_config().paths.db_path)
    init_db(db_path)
    return db_path


def _now_ms() -> float:
    return time.monotonic() * 1000


# =============================================================================
# DATABASE
# =============================================================================


@app.command(name="init-db")
def init_db_command() -> None:
    """Create the database schema."""
    db_path = _open_database()
    console.print(f"[green]✓ Database ready[/green] [dim]{db_path}[/dim]")


@app.command()
def seed() -> None:
    """Insert default exercises, texts, tier limits, plans and feature flags."""
    _open_database()
    report = seed_defaults()
    if report.total == 0:
        console.print("[yellow]⚠ Nothing to seed, defaults already present[/yellow]")
        return
    console.print("[green]✓ Seeded defaults[/green]")
    console.print(f"  [dim]exercises:[/dim] {report.exercises}")
    console.print(f"  [dim]texts:[/dim]     {report.texts}")
    console.print(f"  [dim]limits:[/dim]    {report.limits}")
    console.print(f"  [dim]plans:[/dim]     {report.plans}")
    console.print(f"  [dim]flags:[/dim]     {report.flags}")


# =============================================================================
# USERS
# =============================================================================


@app.command(name="create-user")
def create_user(
    email: str = typer.Argument(..., help="Email address"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="Password"
    ),
    admin: bool = typer.Option(False, "--admin", help="Give the admin role"),
    tier: str = typer.Option("free", "--tier", "-t", help="Tier: free, reader, pro"),
) -> None:
    """Create a confirmed user."""
    if tier not in subscriptions.TIERS:
        console.print(f"[red]✗ Unknown tier '{tier}'. Use: {', '.join(subscriptions.TIERS)}[/red]")
        raise typer.Exit(code=1)

    _open_database()
    try:
        result = auth.sign_up(email, password, confirmed=True)
    except ValidationError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(code=1)
    except auth.AuthError as e:
        console.print(f"[red]✗ {e.message}[/red]")
        raise typer.Exit(code=1)

    user_id = result.user.id
    if admin:
        users.update_profile(user_id, role="admin")
    if tier != "free":
        subscriptions.set_user_tier(user_id, tier)

    console.print(f"[green]✓ Created {result.user.email}[/green]")
    console.print(f"  [dim]user_id:[/dim] {user_id}")
    console.print(f"  [dim]role:[/dim]    {'admin' if admin else 'reader'}")
    console.print(f"  [dim]tier:[/dim]    {tier}")


@app.command(name="set-role")
def set_role(
    email: str = typer.Argument(..., help="Email address"),
    role: str = typer.Argument(..., help="Role: reader or admin"),
) -> None:
    """Change a user's role."""
    if role not in ("reader", "admin"):
        console.print("[red]✗ Role must be 'reader' or 'admin'[/red]")
        raise typer.Exit(code=1)

    _open_database()
    user = users.get_auth_user_by_email(normalize_email(email))
    if user is None:
        console.print(f"[red]✗ No user with email {email}[/red]")
        raise typer.Exit(code=1)
    users.update_profile(user.id, role=role)
    console.print(f"[green]✓ {user.email} is now {role}[/green]")


# =============================================================================
# OPERATIONS
# =============================================================================


@app.command(name="validate-env")
def validate_env() -> None:
    """Check required and optional environment variables."""
    result = validate_environment()
    for warning in result.warnings:
        console.print(f"[yellow]⚠ {warning}[/yellow]")
    for error in result.errors:
        console.print(f"[red]✗ {error}[/red]")
    if not result.ok:
        raise typer.Exit(code=1)
    console.print("[green]✓ Environment looks good[/green]")


@app.command()
def serve(
    host: str = typer.Option("127.0.0.1", "--host", help="Bind address"),
    port: int = typer.Option(8000, "--port", help="Port"),
    reload: bool = typer.Option(False, "--reload", help="Reload on code changes"),
) -> None:
    """Run the API with uvicorn."""
    import uvicorn

    console.print(f"[green]Starting ReadSpeed API on http://{host}:{port}[/green]")
    uvicorn.run("readspeed.web.api:app", host=host, port=port, reload=reload)


@app.command()
def leaderboard(
    time_range: str = typer.Option("weekly", "--range", "-r", help="daily, weekly or monthly"),
    limit: int = typer.Option(10, "--limit", "-n", help="Rows to show"),
) -> None:
    """Print the leaderboard."""
    _open_database()
    try:
        board = get_leaderboard(time_range, limit=limit)
    except InvalidTimeRangeError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)
    except sqlite3.Error as e:
        console.print(f"[red]✗ Database error: {e}[/red]")
        raise typer.Exit(code=1)

    if not board.entries:
        console.print(f"[yellow]No ranked readers for {time_range}[/yellow]")
        return

    table = Table(title=f"Leaderboard ({time_range})", show_header=True, header_style="bold")
    table.add_column("#", justify="right", width=4)
    table.add_column("Reader")
    table.add_column("Tier", width=8)
    table.add_column("Pages", justify="right")
    table.add_column("Minutes", justify="right")
    table.add_column("Sessions", justify="right")
    for entry in board.entries:
        table.add_row(
            str(entry.rank),
            entry.display_name,
            entry.subscription_tier,
            str(entry.total_pages),
            str(entry.total_time),
            str(entry.submission_count),
        )
    console.print(table)


# =============================================================================
# DRILLS
# =============================================================================


@app.command(name="flash-schedule")
def flash_schedule(
    file: Path = typer.Argument(..., help="Text file to stream"),
    wpm: int = typer.Option(300, "--wpm", "-w", help="Words per minute (50-1000)"),
    chunk: int = typer.Option(1, "--chunk", "-c", help="Words per chunk (1-5)"),
    limit: int = typer.Option(20, "--limit", "-n", help="Steps to print, 0 for all"),
) -> None:
    """Print the reveal schedule for reading a text at a given speed."""
    if not file.exists():
        console.print(f"[red]✗ File not found: {file}[/red]")
        raise typer.Exit(code=1)

    reader = RapidReader(file.read_text(encoding="utf-8"), speed=wpm, chunk=chunk)
    schedule = reader.interval_schedule()
    if not schedule:
        console.print("[yellow]⚠ The file has no words[/yellow]")
        raise typer.Exit(code=1)

    table = Table(show_header=True, header_style="bold")
    table.add_column("Offset (ms)", justify="right")
    table.add_column("Index", justify="right")
    table.add_column("Words")
    for reveal in schedule[:limit] if limit else schedule:
        table.add_row(str(reveal.offset_ms), str(reveal.index), " ".join(reveal.words))
    console.print(table)

    total_ms = reader.duration_ms
    console.print(
        f"[dim]{len(reader.words)} words, {len(schedule)} steps, "
        f"{reader.interval_ms} ms per step at {reader.speed} WPM, "
        f"about {total_ms / 1000:.1f}s[/dim]"
    )


@app.command()
def flash(
    level: str = typer.Option("foundation", "--level", "-l", help="foundation, intermediate, advanced"),
    words: int = typer.Option(10, "--words", "-n", help="Words per round"),
    wpm: int | None = typer.Option(None, "--wpm", "-w", help="Flash at this rate instead of 200 ms"),
) -> None:
    """Flash words one at a time and type each back."""
    try:
        if wpm is not None:
            settings = FlashSettings.from_wpm(wpm, vocabulary_level=level, words_per_round=words)
        else:
            settings = FlashSettings(vocabulary_level=level, words_per_round=words)
        drill = WordFlashDrill(settings)
    except (DrillConfigError, ValueError) as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(
        f"[bold]Word flasher[/bold] [dim]{level}, {words} words, "
        f"{settings.flash_speed_ms} ms per word[/dim]"
    )
    typer.prompt("Press Enter to start", default="", show_default=False)

    drill.start(now_ms=_now_ms())
    try:
        while drill.mode is not FlashMode.RESULTS:
            word = drill.current_word or ""
            console.print(f"  [bold cyan]{word}[/bold cyan]", end="\r")
            time.sleep(settings.flash_speed_ms / 1000)
            drill.tick(_now_ms())
            console.print(" " * (len(word) + 4), end="\r")
            while drill.mode is FlashMode.INPUT:
                answer = typer.prompt("Word", default="", show_default=False)
                drill.submit_answer(answer, _now_ms())
    except DrillStateError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    results = drill.results()
    table = Table(show_header=True, header_style="bold")
    table.add_column("Word")
    table.add_column("Answer")
    table.add_column("", justify="center", width=3)
    table.add_column("ms", justify="right")
    for shown, given, ms in zip(results.words_shown, results.user_answers, results.response_times):
        ok = given.strip().lower() == shown.lower()
        table.add_row(shown, given, "[green]✓[/green]" if ok else "[red]✗[/red]", str(ms))
    console.print(table)

    console.print(
        f"Accuracy [bold]{results.accuracy:.0f}%[/bold] "
        f"({results.correct_count}/{results.total}), "
        f"average response {results.average_response_ms:.0f} ms"
    )
    console.print(f"[dim]Suggested next flash speed: {drill.suggest_next_speed()} ms[/dim]")


@app.command(name="three-two-one")
def three_two_one(
    file: Path | None = typer.Option(
        None, "--file", "-f", help="Text to read instead of the default passage (200-2000 chars)"
    ),
    user: str | None = typer.Option(None, "--user", "-u", help="Save the result for this email"),
) -> None:
    """Read one passage three times behind a pacer: normal, faster, sprint."""
    _open_database()
    stored = exercises_repository.get_exercise_by_type("3-2-1")

    profile = None
    if user is not None:
        auth_user = users.get_auth_user_by_email(normalize_email(user))
        if auth_user is None:
            console.print(f"[red]✗ No user with email {user}[/red]")
            raise typer.Exit(code=1)
        if stored is None:
            console.print("[red]✗ No 3-2-1 exercise stored, run 'readspeed seed' first[/red]")
            raise typer.Exit(code=1)
        profile = users.get_profile(auth_user.id)

    try:
        drill = ThreeTwoOneDrill(rounds=rounds_from_config(stored.config if stored else {}))
        if file is not None:
            if not file.exists():
                console.print(f"[red]✗ File not found: {file}[/red]")
                raise typer.Exit(code=1)
            drill.set_text(file.read_text(encoding="utf-8"))
    except DrillConfigError as e:
        console.print(f"[red]✗ {e}[/red]")
        raise typer.Exit(code=1)

    console.print(f"[bold]3-2-1[/bold] [dim]{drill.word_count} words[/dim]")
    console.print(drill.text)
    while drill.next_round_number is not None:
        number = drill.next_round_number
        config = drill.rounds[number - 1]
        typer.prompt(
            f"Round {number} ({config.name}, {config.duration}s, x{config.multiplier}). "
            "Press Enter to start",
            default="",
            show_default=False,
        )
        drill.start_next_round(_now_ms())
        while drill.mode in ROUND_MODES:
            time.sleep(1)
            drill.tick(_now_ms())
            console.print(
                f"  [cyan]{drill.remaining_ms / 1000:5.0f}s[/cyan] "
                f"pacer at word {drill.pacer_word_index + 1}/{drill.word_count}",
                end="\r",
            )
        console.print()

    table = Table(show_header=True, header_style="bold")
    table.add_column("Round", justify="right")
    table.add_column("Name")
    table.add_column("Seconds", justify="right")
    table.add_column("Pace", justify="right")
    table.add_column("WPM", justify="right")
    for r in drill.round_results:
        table.add_row(str(r.round), r.name, str(r.duration), f"x{r.multiplier}", str(r.reading_speed))
    console.print(table)
    console.print(f"Average [bold]{drill.average_speed} WPM[/bold]")

    if profile is None:
        return
    try:
        exercises.submit_result(
            profile.id,
            profile.subscription_tier,
            exercises.ResultInput(exercise_id=stored.id, **drill.to_result_payload()),
        )
    except subscriptions.LimitExceededError as e:
        console.print(f"[red]✗ {e.reason}[/red]")
        raise typer.Exit(code=1)
    console.print(f"[green]✓ Saved result for {normalize_email(user)}[/green]")


if __name__ == "__main__":
    app()
