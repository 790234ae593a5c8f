# Copyright (c) Microsoft. All rights reserved.

"""Prefixed, colorized output of script processes."""

from __future__ import annotations

import asyncio
import codecs
import re

from rich.console import Console
from rich.text import Text

__all__ = ["OutputStreamer", "make_console", "split_lines", "strip_ansi_cursor"]

# Cursor movement, erase and mode set/reset sequences. Anything else is kept.
ANSI_CURSOR_PATTERN = re.compile(r"\x1b(c|\[\d+;\d+[Hf]|\[[HMsuJK]|\[\d+[ABCDEFGnJK]|\[[=?]\d+[hl])")
LINE_BREAK_PATTERN = re.compile(r"\r\n|\n|\r")

CHUNK_SIZE = 64 * 1024
LABEL_STYLE = "cyan"


def strip_ansi_cursor(text: str) -> str:
    """Remove terminal cursor and control sequences that would garble prefixed output."""
    return ANSI_CURSOR_PATTERN.sub("", text)


def split_lines(text: str) -> list[str]:
    """Split on LF, CRLF or a bare CR."""
    return LINE_BREAK_PATTERN.split(text)


def make_console(stderr: bool = False) -> Console:
    """Console used for script output and status messages."""
    return Console(stderr=stderr, highlight=False, soft_wrap=True)


class OutputStreamer:
    """Writes a child process's output line by line behind a fixed-width label.

    stdout and stderr are pumped independently; lines are only ordered within one stream.
    """

    def __init__(self, label: str, stdout: Console, stderr: Console, style: str = LABEL_STYLE):
        self.label = label
        self.stdout = stdout
        self.stderr = stderr
        self.style = style

    @property
    def prefix(self) -> str:
        return f"[{self.label}] "

    def lines(self, chunk: str) -> list[str]:
        """Lines to print for one chunk of output, empty if the chunk holds nothing visible."""
        text = strip_ansi_cursor(chunk).strip()
        if not text:
            return []
        return split_lines(text)

    def write(self, console: Console, chunk: str) -> None:
        """Print each line of *chunk* behind the styled label.

        Only the label goes through rich; the line itself is written as received, so the
        child's colors, tabs and any sequence not stripped above reach the terminal intact.
        """
        for line in self.lines(chunk):
            console.print(Text(self.prefix, style=self.style), end="")
            console.file.write(f"{line}\n")
            console.file.flush()

    async def pump(self, reader: asyncio.StreamReader, console: Console) -> None:
        """Copy *reader* to *console* until EOF."""
        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        while True:
            chunk = await reader.read(CHUNK_SIZE)
            if not chunk:
                break
            self.write(console, decoder.decode(chunk))
        tail = decoder.decode(b"", final=True)
        if tail:
            self.write(console, tail)

    async def pump_process(self, process: asyncio.subprocess.Process) -> None:
        """Pump both output streams of *process* until they close."""
        pumps = []
        if process.stdout is not None:
            pumps.append(self.pump(process.stdout, self.stdout))
        if process.stderr is not None:
            pumps.append(self.pump(process.stderr, self.stderr))
        await asyncio.gather(*pumps)
