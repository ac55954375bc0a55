"""
Child-process entry point for the execute_code tool.

Reads Python source from stdin, runs it against a restricted builtins table
and writes one JSON object to stdout:

    {"ok": true, "logs": [...], "result": "<json text>" | null}
    {"ok": false, "logs": [...], "error": "<Type>: <message>"}

Run with ``python -I sandbox_runner.py`` so no user site-packages or
environment variables leak into the child.

Helpers are exposed as plain namespaces of selected callables, never as
module objects, and the source is rejected before compiling if it touches
underscore-prefixed attributes, dunder names or frame/code introspection
attributes.
"""

import ast
import builtins
import collections
import datetime
import functools
import itertools
import json
import math
import re
import statistics
import string
import sys
from types import SimpleNamespace

SAFE_BUILTINS = [
    "abs", "all", "any", "ascii", "bin", "bool", "bytes", "callable", "chr",
    "complex", "dict", "divmod", "enumerate", "filter", "float", "format",
    "frozenset", "hash", "hex", "int", "isinstance", "issubclass", "iter",
    "len", "list", "map", "max", "min", "next", "oct", "ord", "pow", "range",
    "repr", "reversed", "round", "set", "slice", "sorted", "str", "sum",
    "tuple", "zip", "True", "False", "None",
    "Exception", "ValueError", "TypeError", "KeyError", "IndexError",
    "ZeroDivisionError", "ArithmeticError", "StopIteration", "RuntimeError",
]

# Generator, coroutine, frame, traceback and code object internals
BLOCKED_ATTR_PREFIXES = ("_", "gi_", "cr_", "ag_", "f_", "tb_", "co_")


def _pick(module, names):
    return SimpleNamespace(**{name: getattr(module, name) for name in names})


def _public(module):
    return _pick(module, [n for n in dir(module) if not n.startswith("_")])


SAFE_MODULES = {
    "math": _public(math),
    "itertools": _public(itertools),
    "json": _pick(json, ["dumps", "loads"]),
    "datetime": _pick(datetime, ["date", "datetime", "time", "timedelta", "timezone"]),
    "re": _pick(re, [
        "compile", "search", "match", "fullmatch", "findall", "finditer", "sub",
        "subn", "split", "escape", "IGNORECASE", "MULTILINE", "DOTALL", "I", "M", "S",
    ]),
    "string": _pick(string, [
        "ascii_letters", "ascii_lowercase", "ascii_uppercase", "digits",
        "hexdigits", "octdigits", "punctuation", "whitespace", "printable",
    ]),
    "statistics": _pick(statistics, [
        "mean", "fmean", "geometric_mean", "harmonic_mean", "median", "median_low",
        "median_high", "mode", "multimode", "quantiles", "stdev", "pstdev",
        "variance", "pvariance",
    ]),
    "collections": _pick(collections, ["Counter", "OrderedDict", "defaultdict", "deque", "namedtuple"]),
    "functools": _pick(functools, ["reduce", "partial", "cmp_to_key", "lru_cache"]),
}


class SandboxViolation(Exception):
    pass


def check_source(tree: ast.AST):
    """Reject code that reaches for interpreter internals."""
    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute) and node.attr.startswith(BLOCKED_ATTR_PREFIXES):
            raise SandboxViolation(f"Access to attribute '{node.attr}' is not allowed")
        if isinstance(node, ast.Name) and node.id.startswith("__"):
            raise SandboxViolation(f"Access to name '{node.id}' is not allowed")


def run_source(source: str) -> dict:
    logs = []

    def _print(*args, sep=" ", end="\n", **kwargs):
        logs.append(sep.join(str(a) for a in args))

    safe_builtins = {name: getattr(builtins, name) for name in SAFE_BUILTINS}
    safe_builtins["print"] = _print
    namespace = {"__builtins__": safe_builtins, "__name__": "__sandbox__"}
    namespace.update(SAFE_MODULES)

    try:
        tree = ast.parse(source, mode="exec")
        check_source(tree)
        last = None
        if tree.body and isinstance(tree.body[-1], ast.Expr):
            last = ast.Expression(tree.body.pop().value)

        exec(compile(tree, "<sandbox>", "exec"), namespace)
        value = eval(compile(last, "<sandbox>", "eval"), namespace) if last is not None else None
    except Exception as e:
        return {"ok": False, "logs": logs, "error": f"{type(e).__name__}: {e}"}

    result = None
    if value is not None:
        result = json.dumps(value, indent=2, default=repr)
    return {"ok": True, "logs": logs, "result": result}


def main():
    outcome = run_source(sys.stdin.read())
    sys.stdout.write(json.dumps(outcome))
    sys.stdout.flush()


if __name__ == "__main__":
    main()
