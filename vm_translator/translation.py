"""
Translation driver for the Hack VM Translator.

Finds the .vm sources for an input path, names the .asm output, and
runs the pull pipeline:

    for each (source name, lines):
        generator.source_name = source name
        parse next command -> translate -> append

A whole program (a directory of sources) is prefixed with the
bootstrap sequence so that Sys.init runs first.
"""

from __future__ import annotations
import logging
from pathlib import Path
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple
from .commands import VMTranslatorError
from .codegen import CodeGenerator, STACK_BASE
from .parser import Parser, read_source

log = logging.getLogger('vm_translator.translation')

SOURCE_SUFFIX = ".vm"
OUTPUT_SUFFIX = ".asm"

Source = Tuple[str, Iterable[str]]


class SourceError(VMTranslatorError):
    """Input path cannot be turned into a list of VM sources."""


# ──────────────────────────────────────────────
# Source discovery
# ──────────────────────────────────────────────

def discover_sources(path) -> List[Path]:
    """Return the .vm files for a file or directory input, in translation order."""
    path = Path(path)
    if path.is_dir():
        sources = sorted(p for p in path.iterdir()
                         if p.is_file() and p.suffix == SOURCE_SUFFIX)
        if not sources:
            raise SourceError(f"No {SOURCE_SUFFIX} files in {path}")
        return sources
    if path.is_file():
        if path.suffix != SOURCE_SUFFIX:
            raise SourceError(f"Expected a {SOURCE_SUFFIX} file, got {path.name}")
        return [path]
    raise SourceError(f"Input not found: {path}")


def output_path_for(path) -> Path:
    """X.vm -> X.asm beside it; directory D -> D/D.asm."""
    path = Path(path)
    if path.is_dir():
        return path / (path.resolve().name + OUTPUT_SUFFIX)
    return path.with_suffix(OUTPUT_SUFFIX)


def load_sources(paths: Sequence[Path]) -> Iterator[Source]:
    """Yield (source name, lines) for each file, name = basename without extension."""
    for p in paths:
        yield read_source(p)


# ──────────────────────────────────────────────
# Translation run
# ──────────────────────────────────────────────

class VMTranslation:
    """One translation run over an ordered set of sources."""

    def __init__(self, bootstrap: bool = True, annotate: bool = False,
                 stack_base: int = STACK_BASE):
        self.bootstrap = bootstrap
        self.generator = CodeGenerator(annotate=annotate, stack_base=stack_base)
        self.command_count = 0

    def run(self, sources: Iterable[Source]) -> str:
        """Translate every source in order and return the concatenated assembly."""
        self.generator.reset()
        self.command_count = 0
        out: List[str] = []

        if self.bootstrap:
            log.debug("Emitting bootstrap (SP=%d, call Sys.init)", self.generator.stack_base)
            out.append(self.generator.bootstrap())

        for name, lines in sources:
            self.generator.source_name = name
            parser = Parser(lines, name)
            before = self.command_count
            for command in parser:
                out.append(self.generator.translate(command))
                self.command_count += 1
            log.info("Translated %s (%d commands)", name, self.command_count - before)

        return "".join(out)


def translate_sources(sources: Iterable[Source], *, bootstrap: bool = True,
                      annotate: bool = False, stack_base: int = STACK_BASE) -> str:
    """Translate (name, lines) pairs into one assembly text."""
    return VMTranslation(bootstrap=bootstrap, annotate=annotate,
                         stack_base=stack_base).run(sources)


def translate_path(path, output=None, *, bootstrap: Optional[bool] = None,
                   annotate: bool = False, stack_base: int = STACK_BASE) -> Path:
    """Translate a .vm file or a directory of them and write the .asm output.

    bootstrap=None picks the default: on for a directory (a whole
    program), off for a single file.
    """
    path = Path(path)
    sources = discover_sources(path)
    if bootstrap is None:
        bootstrap = path.is_dir()
    out_path = Path(output) if output else output_path_for(path)

    log.info("Input:  %s (%d source%s)", path, len(sources), "" if len(sources) == 1 else "s")
    asm = translate_sources(load_sources(sources), bootstrap=bootstrap,
                            annotate=annotate, stack_base=stack_base)

    # Written only after the whole run succeeded
    with open(out_path, "w", encoding="utf-8") as f:
        f.write(asm)
    log.info("Output: %s (%d lines)", out_path, asm.count("\n"))
    return out_path
