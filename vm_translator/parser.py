"""
Command parser for the Hack VM Translator.

Turns the raw lines of one VM source into a lazy, restartable sequence
of Command values, one per significant line, in file order:

  - blank lines and lines starting with // are skipped
  - a trailing // comment after a command is stripped
  - the remaining text is split on whitespace and classified by its
    first token

The parser knows command shapes only. Segment names and operator values
are checked later by the code generator.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Tuple
from .commands import ArithmeticOp, Command, CommandType, VMTranslatorError

log = logging.getLogger('vm_translator.parser')

COMMENT_MARKER = "//"

ARITHMETIC_WORDS = frozenset(op.value for op in ArithmeticOp)

# command word -> (command type, expected token count, arg2 is an integer)
COMMAND_WORDS = {
    "push":     (CommandType.PUSH, 3, True),
    "pop":      (CommandType.POP, 3, True),
    "label":    (CommandType.LABEL, 2, False),
    "goto":     (CommandType.GOTO, 2, False),
    "if-goto":  (CommandType.IF_GOTO, 2, False),
    "function": (CommandType.FUNCTION, 3, True),
    "call":     (CommandType.CALL, 3, True),
    "return":   (CommandType.RETURN, 1, False),
}


class MalformedCommand(VMTranslatorError):
    def __init__(self, message: str, token: str, source_name: str = "",
                 line_number: int = 0, line: str = ""):
        self.token = token
        self.source_name = source_name
        self.line_number = line_number
        self.line = line
        loc = f"{source_name or '<input>'}:{line_number}"
        super().__init__(f"Malformed command at {loc}: {message} (line = {line!r})")


def strip_comment(line: str) -> str:
    """Drop a // comment and surrounding whitespace from one source line."""
    pos = line.find(COMMENT_MARKER)
    if pos >= 0:
        line = line[:pos]
    return line.strip()


def parse_line(line: str, source_name: str = "", line_number: int = 0) -> Optional[Command]:
    """Parse a single source line. Returns None for blank/comment lines."""
    text = strip_comment(line)
    if not text:
        return None

    tokens = text.split()
    word = tokens[0]

    def fail(message: str, token: str):
        raise MalformedCommand(message, token, source_name, line_number, line.rstrip("\n"))

    if word in ARITHMETIC_WORDS:
        if len(tokens) != 1:
            fail(f"{word!r} takes no arguments", tokens[1])
        return Command(CommandType.ARITHMETIC, word)

    if word not in COMMAND_WORDS:
        fail(f"unknown command {word!r}", word)

    ctype, count, int_arg = COMMAND_WORDS[word]
    if len(tokens) != count:
        fail(f"{word!r} expects {count - 1} argument(s), got {len(tokens) - 1}", word)

    if ctype is CommandType.RETURN:
        return Command(ctype)

    arg2 = None
    if int_arg:
        if not tokens[2].isdecimal():
            fail(f"{tokens[2]!r} is not a non-negative integer", tokens[2])
        arg2 = int(tokens[2])
    return Command(ctype, tokens[1], arg2)


def read_source(path) -> Tuple[str, List[str]]:
    """Read one VM file. Returns (source name, lines); the name is the file's stem."""
    path = Path(path)
    with open(path, "r", encoding="utf-8") as f:
        lines = f.read().splitlines()
    return path.stem, lines


class Parser:
    """Lazy, restartable command sequence over one named VM source.

    The source lines are taken once at construction; restart() only
    rewinds the cursor. Use either iteration or the advance() /
    has_more_commands pair, not both on the same pass.
    """

    def __init__(self, lines: Iterable[str], source_name: str = ""):
        self.source_name = source_name
        self._lines: List[str] = list(lines)
        self._pos = 0
        self.current: Optional[Command] = None
        self.line_number = 0

    @classmethod
    def from_file(cls, path) -> Parser:
        name, lines = read_source(path)
        return cls(lines, name)

    # ── Cursor ──────────────────────────────

    def _skip_insignificant(self):
        while self._pos < len(self._lines) and not strip_comment(self._lines[self._pos]):
            self._pos += 1

    def _next_significant(self) -> Optional[Tuple[int, Command]]:
        self._skip_insignificant()
        if self._pos >= len(self._lines):
            return None
        self._pos += 1
        return self._pos, parse_line(self._lines[self._pos - 1], self.source_name, self._pos)

    @property
    def has_more_commands(self) -> bool:
        """True while a significant line remains.

        Skipped lines are consumed here, so a loop over has_more_commands
        and advance() reads each line once. A malformed line still counts;
        advance() raises MalformedCommand when it gets there.
        """
        self._skip_insignificant()
        return self._pos < len(self._lines)

    def advance(self) -> Command:
        """Move to the next command and return it. Raises StopIteration at the end."""
        found = self._next_significant()
        if found is None:
            raise StopIteration
        self.line_number, self.current = found
        log.debug("%s:%d: %s", self.source_name, self.line_number, self.current)
        return self.current

    def restart(self):
        """Rewind to the first significant line of the same source."""
        self._pos = 0
        self.current = None
        self.line_number = 0

    def __iter__(self) -> Iterator[Command]:
        while True:
            try:
                yield self.advance()
            except StopIteration:
                return
