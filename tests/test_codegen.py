"""
Code generator tests for the Hack VM Translator.

Tests cover the emitted text and the session state:
  - Unique comparison labels (command counter) and return labels
    (call-site counter), each bumped once per command
  - Segment addressing: pointer, temp, static namespacing
  - Function entry locals, call frame arithmetic, return ordering
  - Bootstrap sequence
  - UnsupportedOperation on values outside the closed enumerations
  - Annotation comments and reset()
"""

import re
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest
from vm_translator.commands import Command, CommandType
from vm_translator.codegen import (CodeGenerator, FRAME_SIZE, SAVED_REGISTERS, TEMP_BASE, TEMP_SIZE,
                                   UnsupportedOperation)
from vm_translator.parser import parse_line


def _gen(source_name: str = "Main") -> CodeGenerator:
    gen = CodeGenerator()
    gen.source_name = source_name
    return gen


def _asm(line: str, gen: CodeGenerator = None) -> list:
    """Translate one VM line and return the assembly lines."""
    gen = gen or _gen()
    return gen.translate(parse_line(line)).splitlines()


def _labels(asm: str) -> list:
    return re.findall(r"^\((.+)\)$", asm, re.MULTILINE)


# ─── Label uniqueness ─────────────────────

class TestLabels:
    def test_comparison_labels_distinct(self):
        gen = _gen()
        seen = []
        for op in ["eq", "gt", "lt", "eq", "eq", "gt"]:
            seen.extend(_labels(gen.translate(parse_line(op))))
        # eq: taken + end; gt/lt add three sign-check labels
        assert len(seen) == 3 * 2 + 3 * 5
        assert len(set(seen)) == len(seen)

    def test_ordered_compare_labels_share_one_suffix(self):
        gen = _gen()
        labels = _labels(gen.translate(parse_line("gt")))
        assert len(labels) == 5
        assert all(label.endswith("_GT_1") for label in labels)
        assert gen.command_counter == 1

    def test_command_counter_bumped_once_per_comparison(self):
        gen = _gen()
        gen.translate(parse_line("eq"))
        assert gen.command_counter == 1
        gen.translate(parse_line("add"))
        gen.translate(parse_line("push constant 1"))
        assert gen.command_counter == 1
        gen.translate(parse_line("lt"))
        assert gen.command_counter == 2
        assert gen.call_counter == 0

    def test_return_labels_unique_per_call_site(self):
        gen = _gen()
        gen.translate(parse_line("function Main.main 0"))
        a = gen.translate(parse_line("call Main.fact 1"))
        b = gen.translate(parse_line("call Main.fact 1"))
        assert _labels(a) == ["Main.main$ret.0"]
        assert _labels(b) == ["Main.main$ret.1"]
        assert gen.call_counter == 2
        assert gen.command_counter == 0

    def test_return_labels_unique_across_functions(self):
        gen = _gen()
        labels = []
        for fn in ["Main.a", "Main.b", "Main.a"]:
            gen.translate(parse_line(f"function {fn} 0"))
            labels.extend(_labels(gen.translate(parse_line("call Main.x 0"))))
        assert len(set(labels)) == 3

    def test_label_is_bare(self):
        assert _asm("label LOOP_START") == ["(LOOP_START)"]

    def test_goto(self):
        assert _asm("goto END") == ["@END", "0;JMP"]

    def test_if_goto_pops_and_jumps_on_nonzero(self):
        assert _asm("if-goto END") == ["@SP", "AM=M-1", "D=M", "@END", "D;JNE"]


# ─── Segment addressing ─────────────────────

class TestSegments:
    def test_push_constant(self):
        assert _asm("push constant 17")[:2] == ["@17", "D=A"]

    def test_pointer_resolves_to_this_that(self):
        assert _asm("push pointer 0")[:2] == ["@THIS", "D=M"]
        assert _asm("push pointer 1")[:2] == ["@THAT", "D=M"]
        assert _asm("pop pointer 0")[-2:] == ["@THIS", "M=D"]
        assert _asm("pop pointer 1")[-2:] == ["@THAT", "M=D"]

    def test_pointer_never_uses_generic_path(self):
        lines = _asm("push pointer 1")
        assert "A=D+M" not in lines
        assert "@THAT" in lines

    def test_temp_fixed_base(self):
        assert _asm("push temp 0")[:2] == ["@5", "D=M"]
        assert _asm(f"pop temp {TEMP_SIZE - 1}")[-2:] == [f"@{TEMP_BASE + TEMP_SIZE - 1}", "M=D"] == ["@12", "M=D"]

    def test_based_segments(self):
        for seg, reg in [("local", "LCL"), ("argument", "ARG"), ("this", "THIS"), ("that", "THAT")]:
            assert _asm(f"push {seg} 3")[:5] == ["@3", "D=A", f"@{reg}", "A=D+M", "D=M"]

    def test_pop_based_segment_uses_scratch(self):
        lines = _asm("pop local 2")
        assert lines.count("@R13") == 2
        assert lines.index("@R13") < lines.index("AM=M-1")

    def test_static_namespaced_by_source(self):
        gen = _gen("Foo")
        assert _asm("push static 3", gen)[0] == "@Foo.3"
        gen.source_name = "Bar"
        assert _asm("pop static 3", gen)[-2:] == ["@Bar.3", "M=D"]

    def test_static_same_source_same_symbol(self):
        gen = _gen("Foo")
        assert _asm("push static 1", gen)[0] == _asm("pop static 1", gen)[-2]


# ─── Function protocol ─────────────────────

class TestFunctionProtocol:
    def test_frame_size_derived(self):
        assert FRAME_SIZE == len(SAVED_REGISTERS) + 1 == 5

    def test_function_zero_locals(self):
        assert _asm("function Main.f 0") == ["(Main.f)"]

    def test_function_locals_pushed_as_zero(self):
        lines = _asm("function Main.f 3")
        assert lines[0] == "(Main.f)"
        assert lines.count("M=0") == 3
        assert lines.count("M=M+1") == 3

    def test_call_saves_frame_in_order(self):
        lines = _asm("call Main.f 2")
        pushed = [lines[i] for i in range(len(lines) - 1)
                  if lines[i + 1] == "D=M" and lines[i] in ("@LCL", "@ARG", "@THIS", "@THAT")]
        assert pushed == ["@LCL", "@ARG", "@THIS", "@THAT"]

    def test_call_arg_offset(self):
        lines = _asm("call Main.f 2")
        assert "@7" in lines
        lines = _asm("call Main.f 0")
        assert "@5" in lines

    def test_call_jumps_then_marks_return(self):
        lines = _asm("call Main.f 1")
        assert lines[-3:-1] == ["@Main.f", "0;JMP"]
        assert lines[-1].startswith("(") and "$ret." in lines[-1]
        assert lines[0] == "@" + lines[-1][1:-1]

    def test_return_restore_order(self):
        lines = _asm("return")
        restored = [lines[i][1:] for i in range(len(lines) - 1)
                    if lines[i + 1] == "M=D" and lines[i][1:] in SAVED_REGISTERS]
        assert restored == ["THAT", "THIS", "ARG", "LCL"]

    def test_return_reads_frame_from_scratch_only(self):
        lines = _asm("return")
        # LCL read once as the frame, written once as the last restore
        assert lines.count("@LCL") == 2
        assert lines[:4] == ["@LCL", "D=M", "@R14", "M=D"]
        assert lines.count("@R14") == 1 + len(SAVED_REGISTERS)

    def test_return_address_saved_before_arg0_written(self):
        text = "\n".join(_asm("return"))
        assert text.index("@R13\nM=D") < text.index("@ARG\nA=M\nM=D")
        assert text.endswith("@R13\nA=M\n0;JMP")

    def test_bootstrap(self):
        gen = CodeGenerator()
        lines = gen.bootstrap().splitlines()
        assert lines[:4] == ["@256", "D=A", "@SP", "M=D"]
        assert "@Sys.init" in lines
        assert gen.call_counter == 1

    def test_bootstrap_stack_base(self):
        gen = CodeGenerator(stack_base=0x400)
        assert gen.bootstrap().splitlines()[0] == "@1024"


# ─── Unsupported operations ─────────────────────

class TestUnsupported:
    def test_pop_constant(self):
        with pytest.raises(UnsupportedOperation) as exc:
            _asm("pop constant 3")
        assert exc.value.token == "constant"

    def test_unknown_segment(self):
        with pytest.raises(UnsupportedOperation) as exc:
            _asm("push heap 0")
        assert exc.value.token == "heap"
        assert "heap" in str(exc.value)

    def test_unknown_operator(self):
        with pytest.raises(UnsupportedOperation) as exc:
            _gen().translate(Command(CommandType.ARITHMETIC, "mul"))
        assert exc.value.token == "mul"

    def test_pointer_out_of_range(self):
        with pytest.raises(UnsupportedOperation):
            _asm("push pointer 2")

    def test_static_without_source(self):
        with pytest.raises(UnsupportedOperation):
            CodeGenerator().translate(parse_line("push static 0"))

    def test_error_names_source(self):
        with pytest.raises(UnsupportedOperation) as exc:
            _asm("pop constant 0", _gen("Prog"))
        assert "Prog" in str(exc.value)
        assert exc.value.command == parse_line("pop constant 0")


# ─── Annotation and session reset ─────────────────────

class TestSession:
    def test_annotate(self):
        gen = CodeGenerator(annotate=True)
        gen.source_name = "Main"
        lines = gen.translate(parse_line("push local 1")).splitlines()
        assert lines[0] == "// push local 1"

    def test_no_annotation_by_default(self):
        assert not any(line.startswith("//") for line in _asm("push local 1"))

    def test_output_ends_with_newline(self):
        assert _gen().translate(parse_line("add")).endswith("\n")

    def test_reset(self):
        gen = _gen()
        gen.translate(parse_line("eq"))
        gen.translate(parse_line("call Main.f 0"))
        gen.reset()
        assert gen.command_counter == 0
        assert gen.call_counter == 0
        assert gen.source_name is None

    def test_deterministic_after_reset(self):
        gen = _gen()
        first = gen.translate(parse_line("gt"))
        gen.reset()
        gen.source_name = "Main"
        assert gen.translate(parse_line("gt")) == first
