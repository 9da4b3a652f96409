"""
Hack Code Generator for the Hack VM Translator.

Translates one VM Command at a time into Hack assembly text.

Memory map (RAM addresses):
  - 0     SP    stack pointer, stack grows upward from STACK_BASE
  - 1     LCL   base of the current function's local segment
  - 2     ARG   base of the current function's argument segment
  - 3     THIS  base of the this segment   (pointer 0)
  - 4     THAT  base of the that segment   (pointer 1)
  - 5-12        temp segment
  - 13    R13   general-purpose scratch (pop address, return address,
                compare operand)
  - 14    R14   frame pointer scratch used by return
  - 16+         static variables, allocated by the assembler from
                the <source>.<index> symbols emitted here

Calling convention:
  - caller pushes the arguments, then call pushes the saved frame:
    return address, LCL, ARG, THIS, THAT
  - ARG = SP - FRAME_SIZE - nArgs, LCL = SP, jump to the callee
  - callee's return value replaces ARG[0]; SP = ARG + 1
  - booleans are -1 (true) and 0 (false); any non-zero value is true
    for if-goto
"""

from __future__ import annotations
import logging
from typing import Callable, Dict, List, Optional
from .commands import ArithmeticOp, Command, CommandType, Segment, VMTranslatorError

log = logging.getLogger('vm_translator.codegen')


# ──────────────────────────────────────────────
# Hack memory map
# ──────────────────────────────────────────────

STACK_BASE = 256
TEMP_BASE = 5
TEMP_SIZE = 8
SCRATCH_REGISTER = "R13"
FRAME_REGISTER = "R14"

# Order in which call saves the caller's registers; return restores in reverse
SAVED_REGISTERS = ("LCL", "ARG", "THIS", "THAT")
# Return address + saved registers
FRAME_SIZE = len(SAVED_REGISTERS) + 1

SEGMENT_REGISTERS = {
    Segment.LOCAL: "LCL",
    Segment.ARGUMENT: "ARG",
    Segment.THIS: "THIS",
    Segment.THAT: "THAT",
}

POINTER_REGISTERS = ("THIS", "THAT")

ENTRY_FUNCTION = "Sys.init"

# Binary ops: M holds the second-pushed operand, D holds the top
BINARY_OPS = {
    ArithmeticOp.ADD: "M=D+M",
    ArithmeticOp.SUB: "M=M-D",
    ArithmeticOp.AND: "M=D&M",
    ArithmeticOp.OR: "M=D|M",
}

UNARY_OPS = {
    ArithmeticOp.NEG: "M=-M",
    ArithmeticOp.NOT: "M=!M",
}

# Jump taken when the sign of (second - top) satisfies the comparison
COMPARE_JUMPS = {
    ArithmeticOp.EQ: "JEQ",
    ArithmeticOp.GT: "JGT",
    ArithmeticOp.LT: "JLT",
}


class UnsupportedOperation(VMTranslatorError):
    def __init__(self, message: str, token: str, command: Optional[Command] = None,
                 source_name: str = ""):
        self.token = token
        self.command = command
        self.source_name = source_name
        where = f" in {source_name}" if source_name else ""
        shape = f" ({command})" if command is not None else ""
        super().__init__(f"Unsupported operation{where}: {message}{shape}")


class CodeGenerator:
    """Generates Hack assembly for VM commands.

    One instance serves one translation run. The orchestrator sets
    source_name before each source so static symbols are namespaced
    per source.
    """

    def __init__(self, annotate: bool = False, stack_base: int = STACK_BASE):
        self.annotate = annotate
        self.stack_base = stack_base

        self._lines: List[str] = []
        self._dispatch: Dict[CommandType, Callable[[Command], None]] = {
            CommandType.ARITHMETIC: self._gen_arithmetic,
            CommandType.PUSH: self._gen_push,
            CommandType.POP: self._gen_pop,
            CommandType.LABEL: self._gen_label,
            CommandType.GOTO: self._gen_goto,
            CommandType.IF_GOTO: self._gen_if_goto,
            CommandType.FUNCTION: self._gen_function,
            CommandType.CALL: self._gen_call,
            CommandType.RETURN: self._gen_return,
        }
        self.reset()

    def reset(self):
        """Start a fresh run: counters to zero, no source or function."""
        self.command_counter = 0
        self.call_counter = 0
        self._source_name: Optional[str] = None
        self._function_name: Optional[str] = None

    @property
    def source_name(self) -> Optional[str]:
        return self._source_name

    @source_name.setter
    def source_name(self, name: str):
        log.debug("static namespace -> %s", name)
        self._source_name = name

    # ── Public API ───────────────────────────

    def translate(self, command: Command) -> str:
        """Return the assembly text implementing one command."""
        self._lines = []
        if self.annotate:
            self._emit_comment(str(command))
        self._dispatch[command.type](command)
        return self._flush()

    def bootstrap(self) -> str:
        """SP = stack base, then call Sys.init with no arguments."""
        self._lines = []
        if self.annotate:
            self._emit_comment("bootstrap")
        self._emit(f"@{self.stack_base}", "D=A", "@SP", "M=D")
        self._emit_call(ENTRY_FUNCTION, 0)
        return self._flush()

    # ── Output helpers ────────────────────────

    def _emit(self, *lines: str):
        self._lines.extend(lines)

    def _emit_label(self, label: str):
        self._lines.append(f"({label})")

    def _emit_comment(self, text: str):
        self._lines.append(f"// {text}")

    def _flush(self) -> str:
        text = "\n".join(self._lines) + "\n" if self._lines else ""
        self._lines = []
        return text

    # ── Stack primitives ──────────────────────

    def _push_d(self):
        """Push D onto the stack."""
        self._emit("@SP", "A=M", "M=D", "@SP", "M=M+1")

    def _pop_d(self):
        """Pop the stack top into D (A is left pointing at the old top)."""
        self._emit("@SP", "AM=M-1", "D=M")

    # ── Labels ────────────────────────────────

    def _next_compare_tag(self, op: ArithmeticOp) -> str:
        self.command_counter += 1
        return f"{op.value.upper()}_{self.command_counter}"

    def _next_return_label(self) -> str:
        label = f"{self._function_name or 'Bootstrap'}$ret.{self.call_counter}"
        self.call_counter += 1
        return label

    # ── Operand decoding ──────────────────────

    def _fail(self, message: str, token: str, command: Optional[Command] = None):
        raise UnsupportedOperation(message, token, command, self._source_name or "")

    def _operator(self, command: Command) -> ArithmeticOp:
        try:
            return ArithmeticOp(command.arg1)
        except ValueError:
            self._fail(f"unknown arithmetic operator {command.arg1!r}", command.arg1, command)

    def _segment(self, command: Command) -> Segment:
        try:
            return Segment(command.arg1)
        except ValueError:
            self._fail(f"unknown memory segment {command.arg1!r}", command.arg1, command)

    def _static_symbol(self, command: Command) -> str:
        if not self._source_name:
            self._fail("static access with no source name set", command.arg1, command)
        return f"{self._source_name}.{command.arg2}"

    def _pointer_register(self, command: Command) -> str:
        if command.arg2 not in (0, 1):
            self._fail(f"pointer index must be 0 or 1, got {command.arg2}", str(command.arg2), command)
        return POINTER_REGISTERS[command.arg2]

    # ── Arithmetic ────────────────────────────

    def _gen_arithmetic(self, command: Command):
        op = self._operator(command)
        if op in BINARY_OPS:
            self._pop_d()
            self._emit("A=A-1", BINARY_OPS[op])
        elif op in UNARY_OPS:
            self._emit("@SP", "A=M-1", UNARY_OPS[op])
        else:
            self._gen_compare(op)

    def _gen_compare(self, op: ArithmeticOp):
        tag = self._next_compare_tag(op)
        true_label, end_label = f"__CMP_TRUE_{tag}", f"__CMP_END_{tag}"
        if op is ArithmeticOp.EQ:
            # x - y is zero only when x == y, even if it wraps
            self._pop_d()
            self._emit("A=A-1", "D=M-D")
        else:
            self._emit_ordered_difference(tag)
        self._emit(f"@{true_label}", f"D;{COMPARE_JUMPS[op]}",
                   "@SP", "A=M-1", "M=0",
                   f"@{end_label}", "0;JMP")
        self._emit_label(true_label)
        self._emit("@SP", "A=M-1", "M=-1")
        self._emit_label(end_label)

    def _emit_ordered_difference(self, tag: str):
        """Leave in D a value with the sign of x - y, without overflow.

        x is the second-pushed value (left on the stack), y the popped top.
        When the operands' signs differ, x - y can wrap, so D is set to
        +1 or -1 from the sign of x instead of subtracting.
        """
        x_neg, same_sign, test = f"__CMP_XNEG_{tag}", f"__CMP_SAME_{tag}", f"__CMP_TEST_{tag}"
        self._pop_d()
        self._emit(f"@{SCRATCH_REGISTER}", "M=D",
                   "@SP", "A=M-1", "D=M",
                   f"@{x_neg}", "D;JLT",
                   # x >= 0
                   f"@{SCRATCH_REGISTER}", "D=M",
                   f"@{same_sign}", "D;JGE",
                   "D=1",
                   f"@{test}", "0;JMP")
        self._emit_label(x_neg)
        self._emit(f"@{SCRATCH_REGISTER}", "D=M",
                   f"@{same_sign}", "D;JLT",
                   "D=-1",
                   f"@{test}", "0;JMP")
        self._emit_label(same_sign)
        self._emit(f"@{SCRATCH_REGISTER}", "D=M",
                   "@SP", "A=M-1", "D=M-D")
        self._emit_label(test)

    # ── Memory access ─────────────────────────

    def _gen_push(self, command: Command):
        segment = self._segment(command)
        index = command.arg2

        if segment is Segment.CONSTANT:
            self._emit(f"@{index}", "D=A")
        elif segment in SEGMENT_REGISTERS:
            self._emit(f"@{index}", "D=A", f"@{SEGMENT_REGISTERS[segment]}", "A=D+M", "D=M")
        elif segment is Segment.TEMP:
            self._emit(f"@{TEMP_BASE + index}", "D=M")
        elif segment is Segment.POINTER:
            self._emit(f"@{self._pointer_register(command)}", "D=M")
        else:
            self._emit(f"@{self._static_symbol(command)}", "D=M")
        self._push_d()

    def _gen_pop(self, command: Command):
        segment = self._segment(command)
        index = command.arg2

        if segment is Segment.CONSTANT:
            self._fail("cannot pop into the constant segment", segment.value, command)

        if segment in SEGMENT_REGISTERS:
            # Address must be computed before SP moves
            self._emit(f"@{index}", "D=A", f"@{SEGMENT_REGISTERS[segment]}", "D=D+M",
                       f"@{SCRATCH_REGISTER}", "M=D")
            self._pop_d()
            self._emit(f"@{SCRATCH_REGISTER}", "A=M", "M=D")
            return

        if segment is Segment.TEMP:
            target = str(TEMP_BASE + index)
        elif segment is Segment.POINTER:
            target = self._pointer_register(command)
        else:
            target = self._static_symbol(command)
        self._pop_d()
        self._emit(f"@{target}", "M=D")

    # ── Control flow ──────────────────────────

    def _gen_label(self, command: Command):
        self._emit_label(command.arg1)

    def _gen_goto(self, command: Command):
        self._emit(f"@{command.arg1}", "0;JMP")

    def _gen_if_goto(self, command: Command):
        self._pop_d()
        self._emit(f"@{command.arg1}", "D;JNE")

    # ── Function protocol ─────────────────────

    def _gen_function(self, command: Command):
        self._function_name = command.arg1
        self._emit_label(command.arg1)
        for _ in range(command.arg2):
            self._emit("@SP", "A=M", "M=0", "@SP", "M=M+1")

    def _gen_call(self, command: Command):
        self._emit_call(command.arg1, command.arg2)

    def _emit_call(self, function: str, n_args: int):
        return_label = self._next_return_label()

        self._emit(f"@{return_label}", "D=A")
        self._push_d()
        for register in SAVED_REGISTERS:
            self._emit(f"@{register}", "D=M")
            self._push_d()

        # ARG = SP - FRAME_SIZE - nArgs
        self._emit("@SP", "D=M", f"@{FRAME_SIZE + n_args}", "D=D-A", "@ARG", "M=D")
        # LCL = SP
        self._emit("@SP", "D=M", "@LCL", "M=D")
        self._emit(f"@{function}", "0;JMP")
        self._emit_label(return_label)

    def _gen_return(self, command: Command):
        # frame = LCL
        self._emit("@LCL", "D=M", f"@{FRAME_REGISTER}", "M=D")
        # Return address is read first: with no arguments ARG[0] is its slot
        self._emit(f"@{FRAME_SIZE}", "A=D-A", "D=M", f"@{SCRATCH_REGISTER}", "M=D")
        # ARG[0] = pop()
        self._pop_d()
        self._emit("@ARG", "A=M", "M=D")
        # SP = ARG + 1
        self._emit("@ARG", "D=M+1", "@SP", "M=D")
        # THAT, THIS, ARG, LCL = frame[-1], frame[-2], frame[-3], frame[-4]
        for offset, register in enumerate(reversed(SAVED_REGISTERS), start=1):
            self._emit(f"@{FRAME_REGISTER}", "D=M", f"@{offset}", "A=D-A", "D=M",
                       f"@{register}", "M=D")
        self._emit(f"@{SCRATCH_REGISTER}", "A=M", "0;JMP")
