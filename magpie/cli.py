"""Click CLI: loads config, builds reviewers, runs the debate, saves the report."""

import asyncio
import logging
import sys
from pathlib import Path

import click
from dotenv import load_dotenv
from rich.logging import RichHandler

from config.config_loader import AppConfig, load_config
from magpie.context_loader import load_project_context, with_project_context
from magpie.debate import DebateOrchestrator
from magpie.models import ANALYZER_ID, SUMMARIZER_ID, DebateOptions, DebateResult, Reviewer
from magpie.output import ConsoleObserver, console, default_output_path, print_conclusion, save_result
from magpie.providers.base import ProviderError
from magpie.providers.factory import create_provider
from magpie.topics import build_discuss_prompt, resolve_topic

logger = logging.getLogger(__name__)

DEVIL_ADVOCATE_ID = "devil-advocate"


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(message)s",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
    )


def _fail(message: str) -> None:
    console.print(f"[bold red]Error:[/bold red] {message}")
    sys.exit(1)


def _load(config_path: str | None) -> AppConfig:
    load_dotenv()
    try:
        return load_config(Path(config_path)) if config_path else load_config()
    except (FileNotFoundError, ValueError) as exc:
        console.print(f"[bold red]Config error:[/bold red] {exc}")
        sys.exit(1)


def _select_reviewer_ids(config: AppConfig, reviewers_arg: str | None) -> list[str]:
    """Reviewer ids from --reviewers, or every configured reviewer."""
    if not reviewers_arg:
        return list(config.reviewers)
    selected = [r.strip() for r in reviewers_arg.split(",") if r.strip()]
    unknown = [r for r in selected if r not in config.reviewers]
    if unknown:
        raise click.BadParameter(
            f"Unknown reviewer(s): {', '.join(unknown)}. Available: {', '.join(config.reviewers)}",
            param_hint="--reviewers",
        )
    return selected


def _build_reviewers(
    config: AppConfig,
    reviewer_ids: list[str],
    base_prompt: str | None = None,
    devil_advocate_prompt: str | None = None,
) -> list[Reviewer]:
    """Create one provider per reviewer; system prompts get project context appended."""
    reviewers: list[Reviewer] = []
    for rid in reviewer_ids:
        role = config.reviewers[rid]
        prompt = base_prompt if base_prompt is not None else role.prompt
        reviewers.append(
            Reviewer(
                id=rid,
                provider=create_provider(role.model, config),
                system_prompt=with_project_context(prompt, load_project_context(role.model)),
            )
        )
    if devil_advocate_prompt is not None:
        model = config.summarizer.model
        reviewers.append(
            Reviewer(
                id=DEVIL_ADVOCATE_ID,
                provider=create_provider(model, config),
                system_prompt=with_project_context(devil_advocate_prompt, load_project_context(model)),
            )
        )
    return reviewers


def _context_status(config: AppConfig, reviewer_ids: list[str]) -> str:
    parts = []
    for rid in reviewer_ids:
        loaded = bool(load_project_context(config.reviewers[rid].model))
        parts.append(f"{rid}:{'loaded' if loaded else 'none'}")
    return ", ".join(parts)


def _run(
    orchestrator: DebateOrchestrator,
    observer: ConsoleObserver,
    label: str,
    prompt: str,
) -> DebateResult:
    try:
        result = asyncio.run(orchestrator.run_streaming(label, prompt))
    except ProviderError as exc:
        observer.close()
        _fail(str(exc))
    observer.close()
    return result


def _finish(result: DebateResult, config: AppConfig, output: str | None, fmt: str | None) -> None:
    print_conclusion(result)
    effective_fmt = fmt or config.defaults.output_format
    path = Path(output) if output else default_output_path(result.label, config.defaults.output_dir, effective_fmt)
    saved = save_result(result, path, effective_fmt)
    console.print(f"\n[dim]Saved to: {saved}[/dim]")


_common_options = [
    click.option("-c", "--config", "config_path", default=None, help="Path to settings.yaml"),
    click.option("-r", "--rounds", default=None, type=click.IntRange(min=1), help="Maximum debate rounds"),
    click.option("-i", "--interactive", is_flag=True, help="Pause before each round to interject or quit"),
    click.option("-o", "--output", default=None, help="Output file (default: timestamped file in output_dir)"),
    click.option("-f", "--format", "fmt", type=click.Choice(["markdown", "json"]), default=None,
                 help="Output format (default: from config)"),
    click.option("--converge/--no-converge", default=None, help="Stop early when reviewers reach consensus"),
    click.option("--reviewers", "reviewers_arg", default=None, help="Comma-separated reviewer ids"),
    click.option("--verbose", is_flag=True, help="Enable DEBUG-level logging"),
]


def common_options(func):
    for option in reversed(_common_options):
        func = option(func)
    return func


@click.group()
def main() -> None:
    """Magpie -- multi-reviewer adversarial debate for code changes and topics.

    \b
    Examples:
      magpie review 123
      magpie review 123 --rounds 2 --no-converge
      magpie discuss "Monorepo vs polyrepo?" --devil-advocate
      magpie discuss topic.md --interactive
    """


@main.command()
@click.argument("pr")
@common_options
def review(
    pr: str,
    config_path: str | None,
    rounds: int | None,
    interactive: bool,
    output: str | None,
    fmt: str | None,
    converge: bool | None,
    reviewers_arg: str | None,
    verbose: bool,
) -> None:
    """Review a pull request with multiple AI reviewers."""
    _setup_logging(verbose)
    config = _load(config_path)
    max_rounds = rounds if rounds is not None else config.defaults.max_rounds
    check_convergence = converge if converge is not None else config.defaults.check_convergence

    try:
        reviewer_ids = _select_reviewer_ids(config, reviewers_arg)
        reviewers = _build_reviewers(config, reviewer_ids)
        summarizer = Reviewer(SUMMARIZER_ID, create_provider(config.summarizer.model, config), config.summarizer.prompt)
        analyzer = Reviewer(ANALYZER_ID, create_provider(config.analyzer.model, config), config.analyzer.prompt)
    except (ValueError, ProviderError) as exc:
        _fail(str(exc))

    console.print(f"\n[bold cyan]Reviewing PR #{pr}[/bold cyan]")
    console.print(f"[dim]Reviewers: {', '.join(reviewer_ids)}[/dim]")
    console.print(f"[dim]Max rounds: {max_rounds} | Convergence: {'enabled' if check_convergence else 'disabled'}[/dim]\n")

    observer = ConsoleObserver(max_rounds, interactive)
    observer.on_context_gathered(_context_status(config, reviewer_ids))
    orchestrator = DebateOrchestrator(
        reviewers,
        summarizer,
        analyzer,
        DebateOptions(
            max_rounds=max_rounds,
            interactive=interactive,
            check_convergence=check_convergence,
            cost_per_token=config.defaults.cost_per_token,
        ),
        observer,
    )

    prompt = (
        f"Please review PR #{pr}. Use 'gh pr view {pr}' and 'gh pr diff {pr}' to get the PR details, "
        "then analyze the changes."
    )
    result = _run(orchestrator, observer, pr, prompt)
    _finish(result, config, output, fmt)


@main.command()
@click.argument("topic")
@common_options
@click.option("--devil-advocate", is_flag=True, help="Add a reviewer that challenges the majority view")
def discuss(
    topic: str,
    config_path: str | None,
    rounds: int | None,
    interactive: bool,
    output: str | None,
    fmt: str | None,
    converge: bool | None,
    reviewers_arg: str | None,
    verbose: bool,
    devil_advocate: bool,
) -> None:
    """Discuss a topic (text or path to a .md file) through adversarial debate.

    Precedence for settings: CLI flag > topic frontmatter > config default.
    """
    _setup_logging(verbose)
    config = _load(config_path)
    topic_text, meta, source = resolve_topic(topic)
    if not topic_text:
        _fail("Topic is empty.")

    max_rounds = (
        rounds if rounds is not None
        else int(meta["rounds"]) if "rounds" in meta
        else config.defaults.max_rounds
    )
    check_convergence = (
        converge if converge is not None
        else bool(meta["converge"]) if "converge" in meta
        else config.defaults.check_convergence
    )
    effective_reviewers = reviewers_arg if reviewers_arg is not None else meta.get("reviewers")

    discuss_cfg = config.discuss
    try:
        reviewer_ids = _select_reviewer_ids(config, effective_reviewers)
        reviewers = _build_reviewers(
            config,
            reviewer_ids,
            base_prompt=discuss_cfg.with_rule(discuss_cfg.reviewer) if discuss_cfg.reviewer else None,
            devil_advocate_prompt=discuss_cfg.with_rule(discuss_cfg.devil_advocate) if devil_advocate else None,
        )
        summarizer = Reviewer(
            SUMMARIZER_ID,
            create_provider(config.summarizer.model, config),
            discuss_cfg.with_rule(discuss_cfg.summarizer or config.summarizer.prompt),
        )
        analyzer = Reviewer(
            ANALYZER_ID,
            create_provider(config.analyzer.model, config),
            discuss_cfg.with_rule(discuss_cfg.analyzer or config.analyzer.prompt),
        )
    except (ValueError, ProviderError) as exc:
        _fail(str(exc))

    console.print("\n[bold magenta]Discussion[/bold magenta]")
    console.print(f"[dim]Topic: {topic_text[:80]}{'...' if len(topic_text) > 80 else ''} ({source})[/dim]")
    console.print(f"[dim]Reviewers: {', '.join(r.id for r in reviewers)}[/dim]")
    console.print(f"[dim]Max rounds: {max_rounds} | Convergence: {'enabled' if check_convergence else 'disabled'}[/dim]\n")

    observer = ConsoleObserver(max_rounds, interactive)
    observer.on_context_gathered(_context_status(config, reviewer_ids))
    orchestrator = DebateOrchestrator(
        reviewers,
        summarizer,
        analyzer,
        DebateOptions(
            max_rounds=max_rounds,
            interactive=interactive,
            check_convergence=check_convergence,
            cost_per_token=config.defaults.cost_per_token,
        ),
        observer,
    )

    label = topic_text.splitlines()[0][:80]
    result = _run(orchestrator, observer, label, build_discuss_prompt(topic_text))
    _finish(result, config, output, fmt)


if __name__ == "__main__":
    main()
