from __future__ import annotations

import importlib
import pkgutil
from collections.abc import Iterable
from types import ModuleType

from .config import ConfigError
from .logging import get_logger
from .modules import Module

logger = get_logger(__name__)

MODULE_ATTR = "MODULE"


def _import_package(name: str) -> ModuleType:
    try:
        package = importlib.import_module(name)
    except ImportError as exc:
        raise ConfigError(f"Cannot import module package {name!r}: {exc}") from exc
    if not hasattr(package, "__path__"):
        raise ConfigError(f"{name!r} is a plain module, expected a package")
    return package


def discover_modules(package_name: str) -> list[Module]:
    """Collect the ``MODULE`` attribute of every submodule of ``package_name``.

    A module without a name is named after the file that defines it.
    Submodules (recursively) without ``MODULE`` are skipped.
    """
    package = _import_package(package_name)
    found: list[Module] = []
    prefix = package.__name__ + "."
    for module_info in pkgutil.walk_packages(package.__path__, prefix):
        mod = importlib.import_module(module_info.name)
        module = getattr(mod, MODULE_ATTR, None)
        if module is None:
            continue
        if not isinstance(module, Module):
            raise ConfigError(f"{module_info.name}.{MODULE_ATTR} is not a Module")
        stem = module_info.name.rsplit(".", 1)[-1]
        if not module.name:
            module.name = stem
        module.meta.setdefault("id", f"{module.name}_{module.type}")
        module.meta.setdefault("origin", module_info.name)
        found.append(module)
    logger.debug(
        "loader.discovered",
        package=package_name,
        modules=[module.name for module in found],
    )
    return found


def discover_all(package_names: Iterable[str]) -> list[Module]:
    modules: list[Module] = []
    for name in package_names:
        modules.extend(discover_modules(name))
    return modules
