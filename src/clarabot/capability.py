"""The capability interface and the context handed to each capability."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from .config import Config

REQUIRED_METHODS = ("init", "id", "description", "function_schema", "execute")

Notifier = Callable[[str, str], None]


@dataclass
class CapabilityContext:
    """Shared handles passed to ``Capability.init``.

    Attributes
    ----------
    config : Config
        Credentials, paths and limits.
    llm : Any
        The completion client (an ``llm.LLM``), for capabilities that talk
        to the model themselves.
    notify : callable, optional
        ``notify(sender, text)`` posts a progress line to whatever UI is
        attached. ``None`` when running headless.
    capability_ids : callable, optional
        Returns the ids currently registered.
    """

    config: Config
    llm: Any = None
    notify: Optional[Notifier] = None
    capability_ids: Optional[Callable[[], List[str]]] = None

    def post(self, sender: str, text: str) -> None:
        if self.notify is not None:
            self.notify(sender, text)

    def loaded_ids(self) -> List[str]:
        if self.capability_ids is None:
            return []
        return list(self.capability_ids())


class Capability(ABC):
    """Interface for a callable unit exposed to the model as a function."""

    context: Optional[CapabilityContext] = None
    #: Seconds the registry waits for ``execute``; ``None`` uses the registry default.
    invoke_timeout: Optional[float] = None

    def init(self, context: CapabilityContext) -> None:
        """Receives the shared context. Raise to signal a load failure."""
        self.context = context

    @abstractmethod
    def id(self) -> str:
        """Unique id; also the function name shown to the model."""
        pass

    @abstractmethod
    def description(self) -> str:
        pass

    @abstractmethod
    def function_schema(self) -> Dict[str, Any]:
        """Returns ``{"name", "description", "parameters"}``."""
        pass

    @abstractmethod
    def execute(self, arguments: str) -> str:
        """Runs the capability with JSON-encoded arguments.

        Raise any exception to report an error back to the model.
        """
        pass


def missing_methods(candidate: Any) -> list:
    """Names of interface methods ``candidate`` lacks or has non-callable."""
    return [
        name for name in REQUIRED_METHODS if not callable(getattr(candidate, name, None))
    ]
