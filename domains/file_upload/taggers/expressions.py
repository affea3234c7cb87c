"""
Sandboxed tag expressions.

Expressions are compiled once when an upload task is built and evaluated for
every file with ``simpleeval``, which only allows a safe subset of Python
expression syntax (no imports, no private attributes, no statements).

Only ``compile_expression`` and ``run_expression`` are meant to be used by the
taggers, so the evaluator behind them can be replaced freely.
"""

import ast
from dataclasses import dataclass
from typing import Any, Mapping

from simpleeval import DEFAULT_FUNCTIONS, EvalWithCompoundTypes

from service.utils.errors import ConfigError, TagEvaluationError


@dataclass(frozen=True)
class Program:
    """A parsed tag expression."""

    source: str
    node: ast.AST


def compile_expression(text: str) -> Program:
    """
    Parse a tag expression.

    Args:
        text: Expression source

    Returns:
        Compiled program

    Raises:
        ConfigError: If the expression is empty or not a valid expression
    """
    source = text.strip()
    if not source:
        raise ConfigError("can't compile tag expr []: empty expression")
    try:
        tree = ast.parse(source, mode="eval")
    except SyntaxError as e:
        raise ConfigError(f"can't compile tag expr [{text}]: {e.msg}") from e
    return Program(source=source, node=tree.body)


def run_expression(program: Program, env: Mapping[str, Any]) -> Any:
    """
    Evaluate a compiled expression.

    Callables in ``env`` become functions of the expression, everything else
    becomes a name.

    Raises:
        TagEvaluationError: If evaluation fails for any reason
    """
    functions = dict(DEFAULT_FUNCTIONS)
    names = {}
    for key, value in env.items():
        if callable(value):
            functions[key] = value
        else:
            names[key] = value

    evaluator = EvalWithCompoundTypes(names=names, functions=functions)
    try:
        return evaluator.eval(program.source, previously_parsed=program.node)
    except Exception as e:  # any failure of user supplied code
        raise TagEvaluationError(program.source, f"{type(e).__name__}: {e}") from e
