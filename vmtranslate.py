#!/usr/bin/env python3
"""
vmtranslate — Hack VM Translator CLI

Usage:
    python vmtranslate.py <input.vm | directory> [-o output.asm]
                          [--bootstrap | --no-bootstrap] [--annotate]
                          [--stack-base 256] [--stdout] [-v]

Output naming:
    Foo.vm      → Foo.asm beside it
    dir/        → dir/dir.asm

A directory is a whole program and gets the bootstrap sequence
(SP=256, call Sys.init) unless --no-bootstrap is given; a single file
does not unless --bootstrap is given.

Examples:
    python vmtranslate.py StackArithmetic/SimpleAdd/SimpleAdd.vm
    python vmtranslate.py FunctionCalls/FibonacciElement -v
    python vmtranslate.py BasicTest.vm --annotate --stdout
"""

import argparse
import logging
import sys
import os
from pathlib import Path

# Allow running from project root or as module
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from vm_translator import __version__
from vm_translator.log_setup import setup_logging
from vm_translator.parser import MalformedCommand
from vm_translator.codegen import STACK_BASE, UnsupportedOperation
from vm_translator.translation import (SourceError, discover_sources, load_sources,
                                       translate_path, translate_sources)

log = logging.getLogger('vm_translator.cli')


def parse_int_arg(value: str) -> int:
    """Parse an integer argument that may be hex (0x...), $ prefix, or decimal."""
    value = value.strip()
    if value.startswith("0x") or value.startswith("0X"):
        return int(value, 16)
    if value.startswith("$"):
        return int(value[1:], 16)
    return int(value)


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vmtranslate",
        description="Hack VM Translator: .vm stack-machine code to Hack assembly",
    )
    parser.add_argument("input", help="Input .vm file or directory of .vm files")
    parser.add_argument("-o", "--output", help="Output .asm file (default: derived from input)")
    boot = parser.add_mutually_exclusive_group()
    boot.add_argument("--bootstrap", dest="bootstrap", action="store_true", default=None,
                      help="Prefix the bootstrap sequence (default for directories)")
    boot.add_argument("--no-bootstrap", dest="bootstrap", action="store_false",
                      help="Omit the bootstrap sequence")
    parser.add_argument("--annotate", action="store_true",
                        help="Put a // comment with each VM command in the output")
    parser.add_argument("--stack-base", default=None,
                        help=f"Initial stack pointer for the bootstrap (default {STACK_BASE})")
    parser.add_argument("--stdout", action="store_true",
                        help="Print the assembly instead of writing a file")
    parser.add_argument("--verbose", "-v", action="count", default=0,
                        help="Log progress to stderr (-vv for every command)")
    parser.add_argument("--log-file", default=None,
                        help="Also write a DEBUG log to this file")
    parser.add_argument("--version", action="version",
                        version=f"vmtranslate {__version__}")
    return parser


def main(argv=None):
    args = build_arg_parser().parse_args(argv)

    console_level = {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    setup_logging(console_level=console_level,
                  log_file=Path(args.log_file) if args.log_file else None,
                  force=True)

    try:
        stack_base = parse_int_arg(args.stack_base) if args.stack_base else STACK_BASE
    except ValueError:
        log.error("Invalid --stack-base: %s", args.stack_base)
        return 1

    try:
        if args.stdout:
            input_path = Path(args.input)
            bootstrap = input_path.is_dir() if args.bootstrap is None else args.bootstrap
            asm = translate_sources(load_sources(discover_sources(input_path)),
                                    bootstrap=bootstrap, annotate=args.annotate,
                                    stack_base=stack_base)
            sys.stdout.write(asm)
        else:
            out_path = translate_path(args.input, args.output, bootstrap=args.bootstrap,
                                      annotate=args.annotate, stack_base=stack_base)
            print(out_path)

    except SourceError as e:
        log.error("Input error: %s", e)
        return 1
    except MalformedCommand as e:
        log.error("Parse error: %s", e)
        return 1
    except UnsupportedOperation as e:
        log.error("Translation error: %s", e)
        return 1
    except OSError as e:
        log.error("I/O error: %s", e)
        return 1
    except Exception as e:
        log.error("Internal translator error: %s", e)
        if args.verbose:
            log.exception("Traceback")
        return 2

    return 0


if __name__ == "__main__":
    sys.exit(main())
