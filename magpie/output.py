"""Rich console output and markdown/json reports for debate results."""

import asyncio
import dataclasses
import json
import logging
import re
from datetime import datetime
from pathlib import Path

import click
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.rule import Rule
from rich.status import Status
from rich.table import Table

from magpie.events import DebateObserver
from magpie.models import ANALYZER_ID, HUMAN_ID, SUMMARIZER_ID, DebateResult, ReviewerStatus

logger = logging.getLogger(__name__)

console = Console(legacy_windows=False)

_WAITING_LABELS = {
    ANALYZER_ID: "Analyzing",
    SUMMARIZER_ID: "Collecting summaries and final conclusion",
    "convergence-check": "Evaluating consensus",
}


def format_parallel_status(round_number: int, statuses: list[ReviewerStatus]) -> str:
    parts: list[str] = []
    for s in statuses:
        if s.status == "done":
            parts.append(f"[green]✓ {s.reviewer_id}[/green] [dim]({s.duration:.1f}s)[/dim]")
        elif s.status == "thinking":
            parts.append(f"[yellow]⋯ {s.reviewer_id}[/yellow]")
        else:
            parts.append(f"[dim]○ {s.reviewer_id}[/dim]")
    return f"Round {round_number}: [" + " | ".join(parts) + "]"


class ConsoleObserver(DebateObserver):
    """Renders debate progress with rich and reads interactive input with click."""

    def __init__(self, max_rounds: int, interactive: bool = False) -> None:
        self._max_rounds = max_rounds
        self._interactive = interactive
        self._buffers: dict[str, list[str]] = {}
        self._status: Status | None = None
        self._current_round = 1

    def _stop_status(self) -> None:
        if self._status is not None:
            self._status.stop()
            self._status = None

    def _flush(self, author_id: str) -> None:
        chunks = self._buffers.pop(author_id, None)
        if not chunks:
            return
        if author_id == ANALYZER_ID:
            console.print(Rule("[bold magenta]Analysis[/bold magenta]"))
            console.print(Markdown("".join(chunks)))
            return
        console.print(
            Panel(
                Markdown("".join(chunks)),
                title=f"[bold cyan]{author_id}[/bold cyan]",
                subtitle=f"Round {self._current_round}/{self._max_rounds}",
                border_style="cyan",
            )
        )

    def _flush_all(self) -> None:
        for author_id in list(self._buffers):
            self._flush(author_id)

    def on_message(self, author_id: str, chunk: str) -> None:
        self._buffers.setdefault(author_id, []).append(chunk)

    def on_waiting(self, target: str) -> None:
        self._flush_all()
        self._stop_status()
        if target.startswith("round-"):
            label = f"Round {target.split('-', 1)[1]}: starting parallel debate"
        else:
            label = _WAITING_LABELS.get(target, f"{target} is thinking")
        self._status = console.status(f"{label}...")
        self._status.start()

    def on_parallel_status(self, round_number: int, statuses: list[ReviewerStatus]) -> None:
        if self._status is not None:
            self._status.update(format_parallel_status(round_number, statuses))

    def on_round_complete(self, round_number: int, converged: bool) -> None:
        self._stop_status()
        self._flush_all()
        if converged:
            console.print(f"[bold green]Round {round_number}/{self._max_rounds}: CONSENSUS REACHED[/bold green]")
            console.print("[green]Stopping early.[/green]")
        else:
            console.print(Rule(f"[dim]Round {round_number}/{self._max_rounds} complete[/dim]"))
        self._current_round = round_number + 1

    def on_context_gathered(self, summary: str) -> None:
        console.print(f"[dim]Context: {summary}[/dim]")

    async def get_interjection(self, round_number: int) -> str | None:
        if not self._interactive:
            return None
        self._stop_status()
        self._flush_all()
        answer = await asyncio.to_thread(
            click.prompt,
            "Press Enter to continue, type to interject, or q to end",
            default="",
            show_default=False,
        )
        return answer or None

    async def get_question(self, reviewer_ids: list[str]) -> tuple[str, str] | None:
        if not self._interactive:
            return None
        self._stop_status()
        self._flush_all()
        answer = await asyncio.to_thread(
            click.prompt,
            f"Ask a reviewer ({', '.join(reviewer_ids)}) as 'id: question', or Enter to start the debate",
            default="",
            show_default=False,
        )
        if not answer.strip():
            return None
        target, sep, question = answer.partition(":")
        if not sep:
            console.print("[yellow]Use the form 'reviewer-id: question'[/yellow]")
            return "", ""
        return target.strip(), question.strip()

    def close(self) -> None:
        self._stop_status()
        self._flush_all()


def print_token_usage(result: DebateResult) -> None:
    table = Table(title="Token Usage (Estimated)", title_style="dim")
    table.add_column("Participant")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Cost", justify="right")
    for usage in result.token_usage:
        table.add_row(
            usage.reviewer_id,
            f"{usage.input_tokens:,}",
            f"{usage.output_tokens:,}",
            f"${usage.estimated_cost:.4f}",
        )
    total_in = sum(u.input_tokens for u in result.token_usage)
    total_out = sum(u.output_tokens for u in result.token_usage)
    total_cost = sum(u.estimated_cost for u in result.token_usage)
    table.add_row("[bold]Total[/bold]", f"{total_in:,}", f"{total_out:,}", f"~${total_cost:.4f}")
    console.print(table)


def print_conclusion(result: DebateResult) -> None:
    """Print the final conclusion and the token usage table."""
    console.print(Rule("[bold green]Final Conclusion[/bold green]"))
    console.print(Markdown(result.final_conclusion))
    print_token_usage(result)
    if result.converged_at_round:
        console.print(f"[green]Converged at round {result.converged_at_round}[/green]")


def render_markdown(result: DebateResult) -> str:
    lines: list[str] = [f"# Debate: {result.label}", ""]
    if result.analysis:
        lines += ["## Analysis", "", result.analysis, ""]

    lines += ["## Debate", ""]
    current_round: int | None = None
    for msg in result.messages:
        if msg.private_to is not None:
            continue
        if msg.round_number != current_round:
            current_round = msg.round_number
            lines += [f"### Round {current_round}", ""]
        author = "Human" if msg.reviewer_id == HUMAN_ID else msg.reviewer_id
        lines += [f"#### {author}", "", msg.content, ""]

    questions = [m for m in result.messages if m.private_to is not None]
    if questions:
        lines += ["## Questions", ""]
        for msg in questions:
            author = f"Human (to {msg.private_to})" if msg.reviewer_id == HUMAN_ID else msg.reviewer_id
            lines += [f"**{author}**: {msg.content}", ""]

    lines += ["## Summaries", ""]
    for summary in result.summaries:
        lines += [f"### {summary.reviewer_id}", "", summary.summary, ""]

    lines += ["## Final Conclusion", "", result.final_conclusion, ""]

    total = sum(u.total_tokens for u in result.token_usage)
    cost = sum(u.estimated_cost for u in result.token_usage)
    lines += ["## Token Usage", "", f"- Total: {total:,} tokens (~${cost:.4f})"]
    if result.converged_at_round:
        lines.append(f"- Converged at round {result.converged_at_round}")
    lines.append("")
    return "\n".join(lines)


def render_json(result: DebateResult) -> str:
    return json.dumps(dataclasses.asdict(result), indent=2, default=str, ensure_ascii=False)


def save_result(result: DebateResult, path: Path, fmt: str = "markdown") -> Path:
    """Write the result to path as markdown or json, creating parent dirs."""
    if fmt not in ("markdown", "json"):
        raise ValueError(f"Unknown output format: {fmt}")
    path.parent.mkdir(parents=True, exist_ok=True)
    content = render_json(result) if fmt == "json" else render_markdown(result)
    path.write_text(content, encoding="utf-8")
    logger.info("Debate saved to: %s", path)
    return path


def _slug(text: str, max_len: int = 40) -> str:
    """Convert text to a filename-safe slug."""
    slug = re.sub(r"[^\w\s-]", "", text.lower())
    slug = re.sub(r"[\s_-]+", "-", slug).strip("-")
    return slug[:max_len]


def default_output_path(label: str, output_dir: Path, fmt: str = "markdown") -> Path:
    """Timestamped report path inside output_dir."""
    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    suffix = "json" if fmt == "json" else "md"
    return output_dir / f"{timestamp}_{_slug(label) or 'debate'}.{suffix}"
