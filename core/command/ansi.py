"""Terminal output sanitizing helpers.

Lando and docker write colored, cursor-driven progress output. Operation logs
keep only the plain text so clients can render it safely.
"""

from __future__ import annotations

import re

# OSC: ESC ] ... terminated by BEL or ST (ESC \)
_OSC_RE = re.compile(r"\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)?")
# CSI: ESC [ params intermediates final
_CSI_RE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]")
# Other two-byte escapes (charset selection, keypad modes, ...)
_ESC_RE = re.compile(r"\x1b[ -/]*[0-~]")
# Remaining C0/C1 controls except tab; newlines are handled by split_lines
_CONTROL_RE = re.compile(r"[\x00-\x08\x0b-\x1f\x7f\x80-\x9f]")

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")


def strip_ansi(text: str) -> str:
    """Remove escape sequences and control characters from decoded text.

    Only whole recognized sequences are removed. Text without escapes comes
    back unchanged.
    """
    if not text:
        return text
    text = _OSC_RE.sub("", text)
    text = _CSI_RE.sub("", text)
    text = _ESC_RE.sub("", text)
    return _CONTROL_RE.sub("", text)


def split_lines(text: str) -> list[str]:
    """Split on \\n, \\r\\n and lone \\r; drop whitespace-only lines."""
    lines: list[str] = []
    for raw in _LINE_BREAK_RE.split(text):
        line = strip_ansi(raw).rstrip()
        if line.strip():
            lines.append(line)
    return lines
