"""In-memory stand-ins for the command layer."""

import shlex
from pathlib import Path

from core.command.runner import CommandResult
from core.command.streaming import ProcessFailed, check_cancelled


class FakeExecutor:
    """Records streamed commands instead of spawning them.

    ``fail_on`` maps a command substring to the exit code it should fail with.
    ``db-export`` writes the requested backup file so migrations can find it.
    """

    def __init__(self, fail_on: dict[str, int] | None = None, output: dict[str, list[str]] | None = None,
                 export_creates_file: bool = True):
        self.fail_on = fail_on or {}
        self.output = output or {}
        self.export_creates_file = export_creates_file
        self.commands: list[str] = []
        self.on_command = None

    async def stream(self, record, command, cwd=None, cancel=None):
        check_cancelled(cancel)
        self.commands.append(command)
        if self.on_command is not None:
            self.on_command(command)
        if "db-export" in command and self.export_creates_file:
            Path(cwd, shlex.split(command)[-1]).write_text("-- dump\n", encoding="utf-8")
        for needle, lines in self.output.items():
            if needle in command:
                await record.append(lines)
        for needle, code in self.fail_on.items():
            if needle in command:
                raise ProcessFailed(code)
        return 0

    def ran(self, needle: str) -> bool:
        return any(needle in command for command in self.commands)


class FakeRunner:
    def __init__(self, results: dict[str, CommandResult] | None = None):
        self.results = results or {}
        self.commands: list[tuple[str, str | None]] = []

    async def run(self, command, cwd=None, timeout=None):
        self.commands.append((command, cwd))
        for needle, result in self.results.items():
            if needle in command:
                return result
        return CommandResult(success=True, stdout="", exit_code=0)
