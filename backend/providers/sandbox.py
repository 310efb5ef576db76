"""Restricted execution of provider module source text.

Provider modules are plain Python source fetched at runtime. They run in a
fresh namespace that exposes only the capability objects below; imports are
limited to an allowlist of pure standard library modules, and private
attribute access is rejected before compilation.

This is an interpreter-level boundary. It keeps well-behaved modules away from
host authority, but it is not a substitute for process isolation when module
authors are hostile.
"""
from __future__ import annotations

import ast
import asyncio
import builtins
import importlib
import inspect
import logging
from dataclasses import dataclass, field
from types import ModuleType, SimpleNamespace
from typing import Any, Iterable, Mapping

from .errors import ExecutionError, SandboxViolationError

logger = logging.getLogger(__name__)

MAX_SOURCE_BYTES = 512 * 1024

ALLOWED_IMPORTS = frozenset(
    {
        "__future__",
        "base64",
        "binascii",
        "collections",
        "datetime",
        "functools",
        "hashlib",
        "html",
        "itertools",
        "json",
        "math",
        "re",
        "string",
        "typing",
        "urllib.parse",
    }
)

_SAFE_BUILTINS = (
    "abs", "all", "any", "bool", "bytes", "callable", "chr", "classmethod", "dict",
    "divmod", "enumerate", "filter", "float", "format", "frozenset", "hasattr", "hash",
    "hex", "int", "isinstance", "issubclass", "iter", "len", "list", "map", "max", "min",
    "next", "object", "oct", "ord", "pow", "property", "range", "repr", "reversed",
    "round", "set", "slice", "sorted", "staticmethod", "str", "sum", "super", "tuple",
    "zip", "ArithmeticError", "AttributeError", "Exception", "IndexError", "KeyError",
    "LookupError", "NotImplementedError", "RuntimeError", "StopAsyncIteration",
    "StopIteration", "TimeoutError", "TypeError", "ValueError", "ZeroDivisionError",
    "__build_class__",
)

_ALLOWED_DUNDER_NAMES = frozenset({"__name__"})

# Names the host injects; never treated as bare exports.
_INJECTED_NAMES = frozenset(
    {"exports", "module", "console", "print", "Promise", "provider_context", "__name__", "__builtins__"}
)


class Exports(SimpleNamespace):
    """Export container supporting both attribute and item assignment."""

    def __getitem__(self, key: str) -> Any:
        return getattr(self, key)

    def __setitem__(self, key: str, value: Any) -> None:
        setattr(self, key, value)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and hasattr(self, key)

    def keys(self) -> list[str]:
        return list(vars(self))


class ModuleConsole:
    """Logging capability handed to provider code in place of stdout."""

    def __init__(self, tag: str) -> None:
        self._tag = tag

    def _emit(self, level: int, args: Iterable[Any]) -> None:
        logger.log(level, "[provider-module %s] %s", self._tag, " ".join(str(arg) for arg in args))

    def log(self, *args: Any) -> None:
        self._emit(logging.INFO, args)

    info = log

    def debug(self, *args: Any) -> None:
        self._emit(logging.DEBUG, args)

    def warn(self, *args: Any) -> None:
        self._emit(logging.WARNING, args)

    warning = warn

    def error(self, *args: Any) -> None:
        self._emit(logging.ERROR, args)


def _collect(args: tuple[Any, ...]) -> list[Any]:
    if len(args) == 1 and not inspect.isawaitable(args[0]) and isinstance(args[0], Iterable):
        return list(args[0])
    return list(args)


class PromiseCapability:
    """Async helpers exposed to provider code as ``Promise``."""

    @staticmethod
    async def all(*awaitables: Any) -> list[Any]:
        return list(await asyncio.gather(*_collect(awaitables)))

    @staticmethod
    async def all_settled(*awaitables: Any) -> list[dict[str, Any]]:
        results = await asyncio.gather(*_collect(awaitables), return_exceptions=True)
        settled: list[dict[str, Any]] = []
        for result in results:
            if isinstance(result, BaseException):
                settled.append({"status": "rejected", "reason": result})
            else:
                settled.append({"status": "fulfilled", "value": result})
        return settled

    @staticmethod
    async def race(*awaitables: Any) -> Any:
        tasks = [asyncio.ensure_future(item) for item in _collect(awaitables)]
        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            return next(iter(done)).result()
        finally:
            for task in tasks:
                task.cancel()

    @staticmethod
    async def sleep(seconds: float) -> None:
        await asyncio.sleep(seconds)

    @staticmethod
    async def timeout(awaitable: Any, seconds: float) -> Any:
        return await asyncio.wait_for(awaitable, timeout=seconds)

    @staticmethod
    async def resolve(value: Any = None) -> Any:
        if inspect.isawaitable(value):
            return await value
        return value


def _guarded_import(
    name: str,
    globals: Mapping[str, Any] | None = None,
    locals: Mapping[str, Any] | None = None,
    fromlist: Iterable[str] | None = (),
    level: int = 0,
) -> Any:
    if level:
        raise SandboxViolationError("Relative imports are not available to provider modules")
    if name not in ALLOWED_IMPORTS:
        raise SandboxViolationError(f"Import of '{name}' is not allowed in provider modules")

    imported = importlib.import_module(name)
    if fromlist or "." not in name:
        return imported

    # ``import urllib.parse`` binds the top package; expose only the allowed path.
    head, _, tail = name.partition(".")
    root = SimpleNamespace()
    node = root
    parts = tail.split(".")
    for part in parts[:-1]:
        child = SimpleNamespace()
        setattr(node, part, child)
        node = child
    setattr(node, parts[-1], imported)
    return root


def _safe_getattr(obj: Any, name: str, *default: Any) -> Any:
    if name.startswith("_"):
        raise SandboxViolationError(f"Access to private attribute '{name}' is not allowed")
    return getattr(obj, name, *default)


def _build_builtins(console: ModuleConsole) -> dict[str, Any]:
    table = {name: getattr(builtins, name) for name in _SAFE_BUILTINS}
    table["__import__"] = _guarded_import
    table["getattr"] = _safe_getattr
    table["print"] = console.log
    return table


def check_source(tree: ast.AST) -> None:
    """Reject private attribute access and dunder names before compilation.

    Attributes follow the same rule as the ``getattr`` builtin handed to
    modules: nothing starting with an underscore is reachable.
    """

    for node in ast.walk(tree):
        if isinstance(node, ast.Attribute) and node.attr.startswith("_"):
            raise SandboxViolationError(
                f"Access to private attribute '{node.attr}' is not allowed (line {node.lineno})"
            )
        if (
            isinstance(node, ast.Name)
            and node.id.startswith("__")
            and node.id not in _ALLOWED_DUNDER_NAMES
        ):
            raise SandboxViolationError(f"Use of '{node.id}' is not allowed (line {node.lineno})")
        if isinstance(node, (ast.Global, ast.Nonlocal)) and any(
            name.startswith("__") for name in node.names
        ):
            raise SandboxViolationError("Dunder globals are not allowed")


def export_mapping(value: Any) -> dict[str, Any]:
    """Flatten an export container (namespace, dict or object) into a dict."""

    if value is None:
        return {}
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (SimpleNamespace, ModuleType)):
        return {key: item for key, item in vars(value).items() if not key.startswith("_")}
    return {
        key: getattr(value, key)
        for key in dir(value)
        if not key.startswith("_")
    }


@dataclass(slots=True)
class ExecutedModule:
    """Result of evaluating module source text."""

    label: str
    exports: dict[str, Any]
    top_level: dict[str, Any] = field(default_factory=dict)

    def keys(self) -> list[str]:
        return list(self.exports)


class SandboxExecutor:
    """Evaluate provider module source in an isolated namespace."""

    def __init__(self, provider_context: Any, *, max_source_bytes: int = MAX_SOURCE_BYTES) -> None:
        self._context = provider_context
        self._max_source_bytes = max_source_bytes

    def execute(self, source_text: str, *, label: str = "module") -> ExecutedModule:
        """Run ``source_text`` and return its exports.

        ``module.exports`` wins when it has any keys, otherwise ``exports`` is
        returned. Every call builds a fresh namespace, so executing the same
        text twice yields independent export sets.
        """

        size = len(source_text.encode("utf-8"))
        if size > self._max_source_bytes:
            raise SandboxViolationError(
                f"Module {label} is {size} bytes, above the {self._max_source_bytes} byte limit"
            )

        filename = f"<provider:{label}>"
        try:
            tree = ast.parse(source_text, filename=filename)
        except SyntaxError as exc:
            raise ExecutionError(
                f"Module {label} has a syntax error: {exc.msg} (line {exc.lineno})", cause=exc
            ) from exc
        check_source(tree)
        code = compile(tree, filename, "exec")

        console = ModuleConsole(label)
        exports = Exports()
        module = SimpleNamespace(exports=Exports())
        namespace: dict[str, Any] = {
            "__builtins__": _build_builtins(console),
            "__name__": f"provider_module_{label.replace('/', '_')}",
            "exports": exports,
            "module": module,
            "console": console,
            "print": console.log,
            "Promise": PromiseCapability,
            "provider_context": self._context,
        }

        logger.debug("Executing module %s (%d chars)", label, len(source_text))
        try:
            exec(code, namespace)  # noqa: S102 - restricted namespace
        except SandboxViolationError:
            raise
        except Exception as exc:
            raise ExecutionError(
                f"Module {label} raised {exc.__class__.__name__}: {exc}", cause=exc
            ) from exc

        module_exports = export_mapping(module.exports)
        selected = module_exports if module_exports else export_mapping(namespace["exports"])
        top_level = {
            key: value
            for key, value in namespace.items()
            if key not in _INJECTED_NAMES
            and not key.startswith("_")
            and not isinstance(value, (ModuleType, SimpleNamespace))
        }
        logger.debug("Module %s exported %s", label, sorted(selected) or "nothing")
        return ExecutedModule(label=label, exports=selected, top_level=top_level)
