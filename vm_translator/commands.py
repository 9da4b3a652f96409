"""
Command model for the Hack VM Translator.

Defines the closed set of VM command types, memory segments and
arithmetic operators, plus the immutable Command value passed from
the parser to the code generator.
"""

from __future__ import annotations
import enum
from dataclasses import dataclass
from typing import Optional


# ──────────────────────────────────────────────
# Enumerations
# ──────────────────────────────────────────────

class CommandType(enum.Enum):
    ARITHMETIC = "arithmetic"
    PUSH = "push"
    POP = "pop"
    LABEL = "label"
    GOTO = "goto"
    IF_GOTO = "if-goto"
    FUNCTION = "function"
    CALL = "call"
    RETURN = "return"


class Segment(enum.Enum):
    CONSTANT = "constant"
    LOCAL = "local"
    ARGUMENT = "argument"
    THIS = "this"
    THAT = "that"
    POINTER = "pointer"
    TEMP = "temp"
    STATIC = "static"


class ArithmeticOp(enum.Enum):
    ADD = "add"
    SUB = "sub"
    NEG = "neg"
    EQ = "eq"
    GT = "gt"
    LT = "lt"
    AND = "and"
    OR = "or"
    NOT = "not"


class VMTranslatorError(Exception):
    """Base class for every fatal translation error."""


# Which of arg1 / arg2 each command type carries
_ARG_SHAPE = {
    CommandType.ARITHMETIC: (True, False),
    CommandType.PUSH: (True, True),
    CommandType.POP: (True, True),
    CommandType.LABEL: (True, False),
    CommandType.GOTO: (True, False),
    CommandType.IF_GOTO: (True, False),
    CommandType.FUNCTION: (True, True),
    CommandType.CALL: (True, True),
    CommandType.RETURN: (False, False),
}


# ──────────────────────────────────────────────
# Command value
# ──────────────────────────────────────────────

@dataclass(frozen=True)
class Command:
    """One parsed VM command.

    arg1 is the operator (ARITHMETIC), the segment (PUSH/POP) or the
    label/function name. arg2 is the offset (PUSH/POP) or the
    argument/local count (FUNCTION/CALL).
    """
    type: CommandType
    arg1: Optional[str] = None
    arg2: Optional[int] = None

    def __post_init__(self):
        wants_arg1, wants_arg2 = _ARG_SHAPE[self.type]
        if wants_arg1 != (self.arg1 is not None):
            raise ValueError(f"{self.type.value} command {'requires' if wants_arg1 else 'takes no'} arg1")
        if wants_arg2 != (self.arg2 is not None):
            raise ValueError(f"{self.type.value} command {'requires' if wants_arg2 else 'takes no'} arg2")

    def __str__(self) -> str:
        if self.type is CommandType.ARITHMETIC:
            return self.arg1
        parts = [self.type.value]
        if self.arg1 is not None:
            parts.append(self.arg1)
        if self.arg2 is not None:
            parts.append(str(self.arg2))
        return " ".join(parts)
