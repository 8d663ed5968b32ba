"""Shared plumbing for agents driven through a local CLI subprocess."""

import asyncio
import codecs
import logging
import os
from abc import abstractmethod
from collections.abc import AsyncIterator

from config.config_loader import ProviderConfig
from magpie.models import Message
from magpie.providers.base import AIProvider, ProviderError, render_transcript

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096


class CliProvider(AIProvider):
    """Runs one CLI process per call; the prompt goes on stdin unless use_stdin is False."""

    executable: str = ""
    use_stdin: bool = True

    def __init__(self, config: ProviderConfig, model: str | None = None) -> None:
        self._config = config
        self._model = model
        self._cwd = os.getcwd()

    def name(self) -> str:
        return self._config.name

    @abstractmethod
    def _args(self) -> list[str]:
        """Arguments following the executable for the next call."""
        ...

    def _prompt(self, messages: list[Message], system_prompt: str | None) -> str:
        return render_transcript(messages, system_prompt)

    def _after_call(self) -> None:
        """Hook run after every successful call."""

    def _command(self, prompt: str) -> list[str]:
        cmd = [self.executable, *self._args()]
        if not self.use_stdin:
            cmd.append(prompt)
        return cmd

    async def _spawn(self, cmd: list[str]) -> asyncio.subprocess.Process:
        try:
            return await asyncio.create_subprocess_exec(
                *cmd,
                stdin=asyncio.subprocess.PIPE,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=self._cwd,
            )
        except OSError as exc:
            raise ProviderError(self.name(), f"Failed to run {self.executable} CLI: {exc}") from exc

    async def chat(self, messages: list[Message], system_prompt: str | None = None) -> str:
        prompt = self._prompt(messages, system_prompt)
        proc = await self._spawn(self._command(prompt))
        stdin_data = prompt.encode("utf-8") if self.use_stdin else None
        try:
            stdout, stderr = await asyncio.wait_for(
                proc.communicate(input=stdin_data),
                timeout=self._config.timeout_sec or None,
            )
        except TimeoutError as exc:
            proc.kill()
            await proc.wait()
            raise ProviderError(self.name(), f"{self.executable} CLI timed out after {self._config.timeout_sec}s") from exc
        except asyncio.CancelledError:
            # A cancelled call must not leave the CLI running against a session
            proc.kill()
            raise

        if proc.returncode != 0:
            raise ProviderError(
                self.name(),
                f"{self.executable} CLI exited with code {proc.returncode}: {stderr.decode('utf-8', 'replace').strip()}",
            )
        self._after_call()
        return stdout.decode("utf-8", "replace").strip()

    async def chat_stream(
        self, messages: list[Message], system_prompt: str | None = None
    ) -> AsyncIterator[str]:
        prompt = self._prompt(messages, system_prompt)
        proc = await self._spawn(self._command(prompt))
        if self.use_stdin:
            proc.stdin.write(prompt.encode("utf-8"))
            await proc.stdin.drain()
        proc.stdin.close()

        # stderr is drained concurrently so a chatty CLI cannot block on a full pipe
        stderr_task = asyncio.ensure_future(proc.stderr.read())
        inactivity = self._config.timeout_sec or None
        decoder = codecs.getincrementaldecoder("utf-8")("replace")
        try:
            while True:
                try:
                    data = await asyncio.wait_for(proc.stdout.read(_READ_CHUNK), timeout=inactivity)
                except TimeoutError as exc:
                    raise ProviderError(
                        self.name(),
                        f"{self.executable} CLI timed out after {self._config.timeout_sec}s of inactivity",
                    ) from exc
                text = decoder.decode(data, final=not data)
                if not data:
                    if text:
                        yield text
                    break
                if text:
                    yield text
        except BaseException:
            if proc.returncode is None:
                proc.kill()
            raise
        finally:
            returncode = await proc.wait()
            stderr = await stderr_task

        if returncode != 0:
            raise ProviderError(
                self.name(),
                f"{self.executable} CLI exited with code {returncode}: {stderr.decode('utf-8', 'replace').strip()}",
            )
        self._after_call()
