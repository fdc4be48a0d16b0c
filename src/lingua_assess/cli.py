from __future__ import annotations

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from lingua_assess.errors import AssessmentError
from lingua_assess.learning.results import attempt_to_markdown, format_attempt_context
from lingua_assess.learning.timer import format_remaining
from lingua_assess.services import Role, SessionContext
from lingua_assess.system import AssessmentSystem

app = typer.Typer(help="Language assessment engine: take, grade, and review attempts.")
console = Console()


def _load_system(config: Optional[Path]) -> AssessmentSystem:
    """Instantiate `AssessmentSystem` with an optional config override."""
    return AssessmentSystem.from_config(config)


@contextmanager
def _reported() -> Iterator[None]:
    try:
        yield
    except (AssessmentError, ValueError) as exc:
        console.print(f"[red]Error:[/red] {escape(str(exc))}", soft_wrap=True)
        raise typer.Exit(code=1)


@app.command("list")
def list_assessments(
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
) -> None:
    """Show published assessments."""
    system = _load_system(config)
    table = Table("id", "title", "skill", "level", "questions", "duration")
    for assessment in system.catalog.list():
        table.add_row(
            assessment.id,
            assessment.title or "",
            assessment.skill.value if assessment.skill else "",
            assessment.level or "",
            str(len(assessment.questions)),
            format_remaining(assessment.duration_seconds),
        )
    console.print(table)


@app.command()
def start(
    learner_id: str = typer.Argument(...),
    assessment_id: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
) -> None:
    """Start a new attempt and print its id."""
    system = _load_system(config)
    with _reported():
        attempt = system.service.start_attempt(SessionContext(learner_id), assessment_id)
    console.print(f"Started attempt [bold]{attempt.id}[/bold]")
    if attempt.deadline_at is not None:
        console.print(f"Deadline: {attempt.deadline_at.isoformat()}")


@app.command()
def answer(
    learner_id: str = typer.Argument(...),
    attempt_id: str = typer.Argument(...),
    key: str = typer.Argument(..., help="Question id, or <question>-<item> for multi-part questions."),
    value: List[str] = typer.Argument(..., help="Answer; several values form an ordered list."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
) -> None:
    """Record or overwrite one answer."""
    system = _load_system(config)
    payload = value[0] if len(value) == 1 else tuple(value)
    with _reported():
        system.service.record_answer(SessionContext(learner_id), attempt_id, key, payload)
        remaining = system.service.remaining_time(SessionContext(learner_id), attempt_id)
    console.print(f"Saved {key}. Time remaining: {format_remaining(remaining)}")


@app.command()
def submit(
    learner_id: str = typer.Argument(...),
    attempt_id: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
) -> None:
    """Submit an attempt and show the auto-graded result."""
    system = _load_system(config)
    context = SessionContext(learner_id)
    with _reported():
        submitted_id = system.service.submit(context, attempt_id)
        summary = system.service.results(context, submitted_id)
    console.print(format_attempt_context(summary))


@app.command()
def tick(
    attempt_id: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
) -> None:
    """Run one timer tick; expires the attempt if its deadline has passed."""
    system = _load_system(config)
    with _reported():
        expired = system.service.tick(attempt_id)
    if expired:
        console.print(f"Attempt {attempt_id} expired and was submitted automatically.")
    else:
        console.print(f"Attempt {attempt_id} unchanged.")


@app.command()
def score(
    instructor_id: str = typer.Argument(...),
    attempt_id: str = typer.Argument(...),
    question_id: str = typer.Argument(...),
    points: float = typer.Argument(...),
    feedback: Optional[str] = typer.Option(None, help="Feedback shown to the learner."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
) -> None:
    """Record an instructor score for one question."""
    system = _load_system(config)
    with _reported():
        attempt = system.service.grade_question(
            SessionContext(instructor_id, Role.INSTRUCTOR), attempt_id, question_id, points, feedback
        )
    if attempt.final_score_percent is None:
        pending = ", ".join(attempt.pending_questions())
        console.print(f"Recorded. Still awaiting: {pending}")
    else:
        console.print(f"Recorded. Final score: {attempt.final_score_percent:g}%")


@app.command()
def show(
    user_id: str = typer.Argument(...),
    attempt_id: str = typer.Argument(...),
    instructor: bool = typer.Option(False, help="View as an instructor."),
    markdown: Optional[Path] = typer.Option(None, help="Write a markdown report to this path."),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
) -> None:
    """Display results for an attempt."""
    system = _load_system(config)
    role = Role.INSTRUCTOR if instructor else Role.LEARNER
    with _reported():
        summary = system.service.results(SessionContext(user_id, role), attempt_id)
    console.print(format_attempt_context(summary))
    if markdown is not None:
        markdown.write_text(attempt_to_markdown(summary), encoding="utf-8")
        console.print(f"Report written to {markdown}")


@app.command()
def stats(
    instructor_id: str = typer.Argument(...),
    assessment_id: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
) -> None:
    """Attempt count and average score for one assessment."""
    system = _load_system(config)
    with _reported():
        summary = system.service.assessment_stats(
            SessionContext(instructor_id, Role.INSTRUCTOR), assessment_id
        )
    average = "-" if summary.average_score is None else f"{summary.average_score:g}%"
    table = Table("assessment", "questions", "attempts", "graded", "average")
    table.add_row(
        summary.assessment_id,
        str(summary.question_count),
        str(summary.attempt_count),
        str(summary.graded_count),
        average,
    )
    console.print(table)


@app.command()
def profile(
    learner_id: str = typer.Argument(...),
    language: str = typer.Argument(...),
    config: Optional[Path] = typer.Option(None, help="Path to configuration YAML."),
) -> None:
    """Print a learner's proficiency profile for one language."""
    system = _load_system(config)
    with _reported():
        current = system.service.profile(SessionContext(learner_id), learner_id, language)
    console.print(f"[bold]{current.learner_id}[/bold] ({current.language}) level {current.current_level or '-'}")
    table = Table("skill", "score", "history")
    for skill, value in sorted(current.skill_breakdown.items()):
        history = current.skill_progress_history.get(skill, [])
        table.add_row(skill, f"{value:g}", " ".join(f"{point:g}" for point in history))
    console.print(table)
    if current.achievements:
        console.print("Achievements: " + ", ".join(item.name for item in current.achievements))
    for item in current.weak_areas:
        console.print(f"[yellow]Work on {item.skill}:[/yellow] {item.recommendation}")


if __name__ == "__main__":
    app()
