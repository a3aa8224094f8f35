"""CLI package for interacting with the agro analysis worker."""

from importlib import import_module
from types import ModuleType


def __getattr__(name: str) -> ModuleType:
    if name == "app":
        return import_module("cli.app")
    raise AttributeError(name)

# The Typer application lives in ``cli.app``; the tests patch ``cli.app.ApiClient``
# so the module path must not be shadowed by the Typer instance.

__all__ = []
