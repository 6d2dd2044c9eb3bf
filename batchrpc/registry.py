from __future__ import annotations

"""Procedure records and the name -> procedure registry."""

from collections.abc import Awaitable, Callable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any, Union

Execute = Callable[..., Union[Any, Awaitable[Any]]]
ArgsValidator = Callable[[list[Any]], bool]


def accept_any(_params: list[Any]) -> bool:
    return True


@dataclass(frozen=True)
class Procedure:
    """A callable exposed over RPC.

    ``execute`` is called as ``execute(context, *params)`` and may be a
    plain function or a coroutine function. ``validate_args`` receives the
    raw params array and decides whether the call is well-formed.
    """

    execute: Execute
    validate_args: ArgsValidator = accept_any


class Registry(Mapping[str, Procedure]):
    """Read-only mapping of procedure names, populated during start-up."""

    def __init__(self, procedures: Mapping[str, Procedure] | None = None):
        self._procedures: dict[str, Procedure] = {}
        self._frozen = False
        for name, proc in (procedures or {}).items():
            self.add(name, proc)

    def add(self, name: str, proc: Procedure) -> None:
        if self._frozen:
            raise RuntimeError("registry is frozen")
        if not isinstance(name, str) or not name:
            raise ValueError("procedure name is required")
        if name in self._procedures:
            raise ValueError(f"procedure {name!r} already registered")
        self._procedures[name] = proc

    def register(
        self,
        name: str,
        execute: Execute,
        validate_args: ArgsValidator = accept_any,
    ) -> Procedure:
        proc = Procedure(execute=execute, validate_args=validate_args)
        self.add(name, proc)
        return proc

    def procedure(
        self,
        name: str,
        validate_args: ArgsValidator = accept_any,
    ) -> Callable[[Execute], Execute]:
        """Decorator form of :meth:`register`."""

        def _decorate(fn: Execute) -> Execute:
            self.register(name, fn, validate_args)
            return fn

        return _decorate

    def freeze(self) -> Registry:
        self._frozen = True
        return self

    @property
    def frozen(self) -> bool:
        return self._frozen

    def __getitem__(self, name: str) -> Procedure:
        return self._procedures[name]

    def __contains__(self, name: object) -> bool:
        return name in self._procedures

    def __iter__(self) -> Iterator[str]:
        return iter(self._procedures)

    def __len__(self) -> int:
        return len(self._procedures)
