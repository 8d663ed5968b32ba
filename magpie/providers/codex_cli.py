"""Codex CLI provider (stateless: every call carries the full transcript)."""

from magpie.providers.cli_base import CliProvider


class CodexCliProvider(CliProvider):
    """Runs `codex exec -` with the prompt on stdin."""

    executable = "codex"

    def _args(self) -> list[str]:
        args = ["exec", "--skip-git-repo-check"]
        if self._model and self._model != "codex-cli":
            args += ["-m", self._model]
        return [*args, "-"]
