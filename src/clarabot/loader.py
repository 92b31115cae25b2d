"""Concrete implementations for capability loaders."""

import importlib.util
import logging
import sys
from abc import ABC, abstractmethod
from pathlib import Path
from typing import List, Union

from .capability import missing_methods
from .errors import LoadError

logger = logging.getLogger(__name__)

PLUGIN_SYMBOL = "Plugin"


class Loader(ABC):
    """Interface for turning loadable artifacts into capability objects."""

    @abstractmethod
    def discover(self, directory: Union[str, Path]) -> List[Path]:
        """Lists the loadable artifacts in ``directory``."""
        pass

    @abstractmethod
    def load(self, path: Union[str, Path]):
        """Loads one artifact and returns a conforming, uninitialized capability.

        Raises
        ------
        LoadError
            If the artifact cannot be opened or does not conform.
        """
        pass


class ModuleLoader(Loader):
    """Loads Python modules (source or bytecode) exposing a ``Plugin`` object."""

    SUFFIXES = (".pyc", ".py")

    def __init__(self, namespace: str = "clarabot_units"):
        self.namespace = namespace

    def discover(self, directory: Union[str, Path]) -> List[Path]:
        directory = Path(directory)
        if not directory.is_dir():
            logger.info("No capability directory at %s", directory)
            return []
        return sorted(
            p
            for p in directory.iterdir()
            if p.is_file() and p.suffix in self.SUFFIXES and not p.name.startswith("_")
        )

    def load(self, path: Union[str, Path]):
        path = Path(path)
        module_name = f"{self.namespace}.{path.stem}"
        spec = importlib.util.spec_from_file_location(module_name, str(path))
        if spec is None or spec.loader is None:
            raise LoadError(f"unsupported capability unit: {path}", path=str(path))

        module = importlib.util.module_from_spec(spec)
        sys.modules[module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            sys.modules.pop(module_name, None)
            raise LoadError(f"error opening {path}: {exc}", path=str(path)) from exc

        capability = getattr(module, PLUGIN_SYMBOL, None)
        if capability is None:
            raise LoadError(f"{path} does not define '{PLUGIN_SYMBOL}'", path=str(path))
        if isinstance(capability, type):
            raise LoadError(
                f"'{PLUGIN_SYMBOL}' in {path} must be an instance, not a class",
                path=str(path),
            )
        missing = missing_methods(capability)
        if missing:
            raise LoadError(
                f"unexpected type from module symbol in {path}: "
                f"missing {', '.join(missing)}",
                path=str(path),
            )
        return capability
