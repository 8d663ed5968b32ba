"""Load project context files (CLAUDE.md, AGENTS.md, GEMINI.md) for reviewer system prompts."""

import logging
from pathlib import Path

logger = logging.getLogger(__name__)

# Provider -> preferred context file, then fallbacks
_PROVIDER_CONTEXT_FILES: dict[str, list[str]] = {
    "claude-code": ["CLAUDE.md", "AGENTS.md", "GEMINI.md"],
    "gemini-cli": ["GEMINI.md", "AGENTS.md", "CLAUDE.md"],
    "codex-cli": ["AGENTS.md", "CLAUDE.md", "GEMINI.md"],
}
_DEFAULT_CONTEXT_FILES = ["CLAUDE.md", "AGENTS.md", "GEMINI.md"]


def _find_upwards(start_dir: Path, filename: str) -> str:
    """Return the content of the nearest filename at or above start_dir, or ''."""
    for directory in (start_dir, *start_dir.parents):
        candidate = directory / filename
        if candidate.is_file():
            return candidate.read_text(encoding="utf-8").strip()
    return ""


def load_project_context(
    model: str | None = None,
    start_dir: Path | None = None,
    home_dir: Path | None = None,
) -> str:
    """Collect user-level and project-level context for one reviewer model.

    The user-level ``~/.claude/CLAUDE.md`` comes first, then the first
    project file found among the model's preferred candidates.
    """
    start = (start_dir or Path.cwd()).resolve()
    home = home_dir or Path.home()
    parts: list[str] = []

    user_context = home / ".claude" / "CLAUDE.md"
    if user_context.is_file():
        parts.append(user_context.read_text(encoding="utf-8").strip())

    for filename in _PROVIDER_CONTEXT_FILES.get(model or "", _DEFAULT_CONTEXT_FILES):
        content = _find_upwards(start, filename)
        if content:
            logger.debug("Loaded project context %s for %s", filename, model)
            parts.append(content)
            break

    return "\n\n---\n\n".join(p for p in parts if p)


def with_project_context(base_prompt: str, context: str) -> str:
    if not context:
        return base_prompt
    return f"{base_prompt}\n\n---\nProject context:\n{context}"
