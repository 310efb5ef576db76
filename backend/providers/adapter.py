"""Normalize provider module exports to one calling contract."""
from __future__ import annotations

import asyncio
import inspect
import logging
from typing import Any, Callable, Mapping

from .errors import AbortedError, ExecutionError
from .sandbox import ExecutedModule, SandboxExecutor, export_mapping

logger = logging.getLogger(__name__)

# Canonical name -> accepted export names, in lookup order. Each name is tried
# on the top-level exports first and then on a ``default`` export.
FUNCTION_ALIASES: dict[str, tuple[str, ...]] = {
    "get_stream": ("get_stream", "getStream", "stream"),
    "get_episode_links": ("get_episode_links", "getEpisodeLinks", "GetEpisodeLinks", "episodes"),
    "get_posts": ("get_posts", "getPosts", "posts"),
    "get_search_posts": ("get_search_posts", "getSearchPosts", "search"),
    "get_meta": ("get_meta", "getMeta", "meta"),
    "debug": ("debug", "test", "get_info", "getInfo", "info"),
}

DATA_ALIASES: dict[str, tuple[str, ...]] = {
    "catalog": ("catalog", "catalogs"),
    "genres": ("genres", "genre"),
}


class ModuleFunction:
    """Callable wrapper turning provider failures into ``ExecutionError``."""

    def __init__(self, fn: Callable[..., Any], *, name: str, label: str) -> None:
        self._fn = fn
        self.name = name
        self.label = label
        self._parameters: set[str] | None
        try:
            signature = inspect.signature(fn)
        except (TypeError, ValueError):
            self._parameters = None
        else:
            if any(p.kind is inspect.Parameter.VAR_KEYWORD for p in signature.parameters.values()):
                self._parameters = None
            else:
                self._parameters = {
                    p.name
                    for p in signature.parameters.values()
                    if p.kind in (inspect.Parameter.POSITIONAL_OR_KEYWORD, inspect.Parameter.KEYWORD_ONLY)
                }

    def accepts(self, argument: str) -> bool:
        return self._parameters is None or argument in self._parameters

    async def __call__(self, **kwargs: Any) -> Any:
        if self._parameters is not None:
            kwargs = {key: value for key, value in kwargs.items() if key in self._parameters}
        try:
            result = self._fn(**kwargs)
            if inspect.isawaitable(result):
                result = await result
        except (AbortedError, asyncio.CancelledError):
            raise
        except ExecutionError:
            raise
        except Exception as exc:
            logger.warning("%s.%s failed: %s", self.label, self.name, exc)
            raise ExecutionError(
                f"{self.name} in module {self.label} failed: {exc.__class__.__name__}: {exc}",
                cause=exc,
            ) from exc
        return result

    def __repr__(self) -> str:
        return f"ModuleFunction({self.label}.{self.name})"


def _lookup(sources: list[Mapping[str, Any]], names: tuple[str, ...], *, want_callable: bool) -> Any:
    for name in names:
        for source in sources:
            if name not in source:
                continue
            value = source[name]
            if want_callable and not callable(value):
                continue
            if not want_callable and callable(value):
                continue
            return value
    return None


class ProviderModule:
    """Executed module exposed through canonical names.

    Exports are mapped once when the module is loaded; the lookup tolerates
    camelCase names, a ``default`` export container and bare top-level
    definitions for modules that never touch ``exports``.
    """

    def __init__(self, executed: ExecutedModule, *, role: str) -> None:
        self.label = executed.label
        self.role = role
        exports = executed.exports or executed.top_level
        self.export_names = sorted(exports)

        sources: list[Mapping[str, Any]] = [exports]
        default = exports.get("default")
        if default is not None and not callable(default):
            sources.append(export_mapping(default))

        self._functions: dict[str, ModuleFunction] = {}
        for canonical, names in FUNCTION_ALIASES.items():
            fn = _lookup(sources, names, want_callable=True)
            if fn is not None:
                self._functions[canonical] = ModuleFunction(fn, name=canonical, label=self.label)
        if "get_stream" not in self._functions and role == "stream" and callable(default):
            self._functions["get_stream"] = ModuleFunction(default, name="get_stream", label=self.label)

        self._data: dict[str, Any] = {}
        for canonical, names in DATA_ALIASES.items():
            value = _lookup(sources, names, want_callable=False)
            if value is not None:
                self._data[canonical] = value

        logger.debug(
            "Adapted module %s: functions=%s data=%s",
            self.label,
            sorted(self._functions),
            sorted(self._data),
        )

    def function(self, name: str) -> ModuleFunction | None:
        return self._functions.get(name)

    def functions(self) -> list[str]:
        return sorted(self._functions)

    @property
    def get_stream(self) -> ModuleFunction | None:
        return self._functions.get("get_stream")

    @property
    def get_episode_links(self) -> ModuleFunction | None:
        return self._functions.get("get_episode_links")

    @property
    def get_posts(self) -> ModuleFunction | None:
        return self._functions.get("get_posts")

    @property
    def get_search_posts(self) -> ModuleFunction | None:
        return self._functions.get("get_search_posts")

    @property
    def get_meta(self) -> ModuleFunction | None:
        return self._functions.get("get_meta")

    @property
    def debug(self) -> ModuleFunction | None:
        return self._functions.get("debug")

    @property
    def catalog(self) -> Any:
        return self._data.get("catalog", [])

    @property
    def genres(self) -> Any:
        return self._data.get("genres", [])


def load_provider_module(executor: SandboxExecutor, source_text: str, *, role: str, label: str) -> ProviderModule:
    """Execute ``source_text`` in a fresh namespace and adapt its exports."""

    return ProviderModule(executor.execute(source_text, label=label), role=role)
