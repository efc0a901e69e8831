#!/usr/bin/env python3
"""
CLI for the scorch interpreter.

Usage:
    python -m scorch run FILE.scorch [FILE.scorch ...] [--dump]
    python -m scorch repl
    python -m scorch tokens FILE.scorch
    python -m scorch ast FILE.scorch
    python -m scorch project DIR_OR_MANIFEST

Examples:
    # Run two modules on one interpreter and show the global bindings
    python -m scorch run shapes.scorch main.scorch --dump

    # Run with limits from a YAML file
    python -m scorch --config limits.yaml run deep.scorch

    # Run every module listed in ./scorch.yaml
    python -m scorch project .
"""

import argparse
import logging
import sys
from dataclasses import fields
from pathlib import Path
from typing import List, Optional

from .ast import AstNode
from .config import InterpreterConfig, load_config, load_project
from .errors import ScorchError
from .runtime.interpreter import Interpreter
from .runtime.values import display
from .tokens import TokenType, operator_symbol

logger = logging.getLogger(__name__)

REPL_PROMPT = "> "


def configure_logging(verbose: bool, level: str = "WARNING") -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else getattr(logging, level.upper()),
        format="%(levelname)s %(name)s: %(message)s",
    )


def read_source(path: str) -> str:
    source_path = Path(path)
    if not source_path.exists():
        raise FileNotFoundError(f"file not found: {source_path}")
    return source_path.read_text(encoding="utf-8")


def format_bindings(interp: Interpreter) -> List[str]:
    """One line per binding in the interpreter's global frame."""
    lines = []
    for name, instance in interp.context.root.variables.items():
        keyword = "var" if instance.mutable else "const"
        lines.append(f"{keyword} {name}: {instance.type.name} = {display(instance.value, True)}")
    return lines


def _format_scalar(value) -> str:
    if isinstance(value, TokenType):
        return operator_symbol(value)
    return repr(value)


def format_ast(node: AstNode, indent: int = 0) -> List[str]:
    """Render an AST as an indented outline, one node per line."""
    pad = "  " * indent
    scalars = []
    children = []
    for f in fields(node):
        if f.name == "span":
            continue
        value = getattr(node, f.name)
        if isinstance(value, AstNode):
            children.append(value)
        elif isinstance(value, list) and value and isinstance(value[0], AstNode):
            children.extend(value)
        else:
            scalars.append(f"{f.name}={_format_scalar(value)}")
    lines = [f"{pad}{type(node).__name__}({', '.join(scalars)})"]
    for child in children:
        lines.extend(format_ast(child, indent + 1))
    return lines


def report(exc: Exception) -> int:
    """Print an error to stderr and return the failure exit code."""
    if isinstance(exc, ScorchError):
        print(str(exc), file=sys.stderr)
    else:
        print(f"Error: {exc}", file=sys.stderr)
    return 1


def cmd_run(args, config: InterpreterConfig) -> int:
    """Run source files as modules of one program."""
    try:
        sources = [read_source(path) for path in args.files]
        interp = Interpreter(config)
        interp.run_with_modules(sources, args.files)
    except (ScorchError, OSError) as exc:
        return report(exc)

    if args.dump:
        for line in format_bindings(interp):
            print(line)
    return 0


def cmd_repl(args, config: InterpreterConfig) -> int:
    """Read-eval-print loop; errors are reported and the session continues."""
    interp = Interpreter(config)
    stream = config.stdin if config.stdin is not None else sys.stdin
    while True:
        print(REPL_PROMPT, end="", flush=True)
        line = stream.readline()
        if not line or line.strip() == "exit":
            print()
            return 0
        if not line.strip():
            continue
        try:
            result = interp.run(line, "<repl>")
        except ScorchError as exc:
            report(exc)
            continue
        if not result.is_none:
            print(display(result, True))


def cmd_tokens(args, config: InterpreterConfig) -> int:
    """Print the token stream of a file."""
    from .lexer import tokenize

    try:
        tokens = tokenize(read_source(args.file), args.file)
    except (ScorchError, OSError) as exc:
        return report(exc)

    for token in tokens:
        print(f"{token.span.start.line}:{token.span.start.column}\t{token}")
    return 0


def cmd_ast(args, config: InterpreterConfig) -> int:
    """Print the parsed program of a file."""
    from .parser import parse_source

    try:
        source = read_source(args.file)
        program = parse_source(source, args.file, config.max_parse_depth)
    except ScorchError as exc:
        exc.attach_source(source.splitlines())
        return report(exc)
    except OSError as exc:
        return report(exc)

    for line in format_ast(program):
        print(line)
    return 0


def cmd_project(args, config: InterpreterConfig) -> int:
    """Run the modules listed in a scorch.yaml manifest."""
    try:
        project = load_project(args.manifest)
        logger.info("running project %s (%d modules)", project.name, len(project.modules))
        interp = Interpreter(project.config)
        interp.run_with_modules(project.read_sources(), [str(m) for m in project.modules])
    except (ScorchError, OSError, ValueError) as exc:
        return report(exc)

    if args.dump:
        for line in format_bindings(interp):
            print(line)
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='scorch',
        description='scorch interpreter',
    )
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Enable debug logging')
    parser.add_argument('--config', metavar='FILE',
                        help='YAML file with interpreter settings')

    subparsers = parser.add_subparsers(dest='action', required=True)

    # run command
    run_parser = subparsers.add_parser('run', help='Run source files in order')
    run_parser.add_argument('files', nargs='+', help='Source files')
    run_parser.add_argument('--dump', action='store_true',
                            help='Print global bindings after running')

    # repl command
    subparsers.add_parser('repl', help='Start an interactive session')

    # tokens command
    tokens_parser = subparsers.add_parser('tokens', help='Print the tokens of a file')
    tokens_parser.add_argument('file', help='Source file')

    # ast command
    ast_parser = subparsers.add_parser('ast', help='Print the syntax tree of a file')
    ast_parser.add_argument('file', help='Source file')

    # project command
    project_parser = subparsers.add_parser('project', help='Run a scorch.yaml project')
    project_parser.add_argument('manifest', help='Manifest file or its directory')
    project_parser.add_argument('--dump', action='store_true',
                                help='Print global bindings after running')

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = load_config(args.config) if args.config else InterpreterConfig()
    except (OSError, ValueError) as exc:
        return report(exc)
    configure_logging(args.verbose, config.log_level)

    if args.action == 'run':
        return cmd_run(args, config)
    elif args.action == 'repl':
        return cmd_repl(args, config)
    elif args.action == 'tokens':
        return cmd_tokens(args, config)
    elif args.action == 'ast':
        return cmd_ast(args, config)
    elif args.action == 'project':
        return cmd_project(args, config)
    else:
        parser.print_help()
        return 1


if __name__ == '__main__':
    sys.exit(main())
