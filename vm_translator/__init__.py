"""
Hack VM Translator
==================
Back end of the two-tier Hack compiler: translates stack-machine VM
commands (.vm) into Hack assembly (.asm).

Architecture:
    ┌──────────┐    ┌──────────┐    ┌───────────┐    ┌───────────┐
    │ VM code  │───>│  Parser  │───>│  CodeGen  │───>│ Hack asm  │
    │ (.vm)    │    │(Commands)│    │ (asm text)│    │ (.asm)    │
    └──────────┘    └──────────┘    └───────────┘    └───────────┘

    - commands.py:    Command value + closed enums (type, segment, operator)
    - parser.py:      Lazy, restartable line parser
    - codegen.py:     Per-command Hack emitter, call/return protocol, bootstrap
    - translation.py: Source discovery, output naming, the translate loop
    - log_setup.py:   Logging configuration
"""

__version__ = "0.1.0"

from .commands import ArithmeticOp, Command, CommandType, Segment, VMTranslatorError
from .parser import MalformedCommand, Parser
from .codegen import CodeGenerator, UnsupportedOperation
from .translation import (SourceError, VMTranslation, discover_sources,
                          output_path_for, translate_path, translate_sources)


def translate_source(source: str, name: str = "Main", *, bootstrap: bool = False,
                     annotate: bool = False) -> str:
    """Translate VM source text into Hack assembly.

    Args:
        source: VM program text.
        name: Source name used to namespace static variables.
        bootstrap: Prefix the SP setup and call to Sys.init.
        annotate: Put a // comment with the VM command before each block.

    Returns:
        Hack assembly text.
    """
    return translate_sources([(name, source.splitlines())],
                             bootstrap=bootstrap, annotate=annotate)
