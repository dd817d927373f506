"""Command execution: buffered runner, streaming executor, terminal sanitizing."""

from .ansi import split_lines, strip_ansi
from .runner import CommandResult, CommandRunner
from .streaming import LineAssembler, OperationCancelled, ProcessFailed, StreamingExecutor, check_cancelled

__all__ = [
    "CommandResult",
    "CommandRunner",
    "LineAssembler",
    "OperationCancelled",
    "ProcessFailed",
    "StreamingExecutor",
    "check_cancelled",
    "split_lines",
    "strip_ansi",
]
