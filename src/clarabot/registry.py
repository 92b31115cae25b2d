"""The capability registry: load, index, invoke."""

import json
import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import ValidationError

from .capability import CapabilityContext
from .errors import DuplicateCapabilityError, LoadError
from .loader import Loader, ModuleLoader
from .models import FunctionSchema, InvocationResult

logger = logging.getLogger(__name__)


def describe_capability(capability) -> Tuple[str, FunctionSchema]:
    """Returns the id and validated function schema of ``capability``.

    Raises
    ------
    LoadError
        If the schema is malformed or its name differs from the id.
    """
    try:
        capability_id = capability.id()
        schema = FunctionSchema.model_validate(capability.function_schema())
    except ValidationError as exc:
        raise LoadError(f"invalid function schema: {exc}") from exc
    except Exception as exc:
        raise LoadError(f"error describing capability: {exc}") from exc

    if schema.name != capability_id:
        raise LoadError(
            f"function name '{schema.name}' does not match capability id "
            f"'{capability_id}'"
        )
    return capability_id, schema


class Registry:
    """Id-indexed catalog of initialized capabilities.

    Parameters
    ----------
    context : CapabilityContext
        Passed to every capability's ``init`` on registration.
    loader : Loader, optional
        Mechanism used by ``load_all``. Defaults to ``ModuleLoader``.
    duplicate_policy : {"reject", "overwrite"}
        ``reject`` raises ``DuplicateCapabilityError`` for a repeated id;
        ``overwrite`` keeps the last one registered.
    load_policy : {"fail-fast", "skip"}
        ``fail-fast`` aborts ``load_all`` on the first failing unit;
        ``skip`` logs a warning and carries on.
    invoke_timeout : float, optional
        Seconds to wait for ``execute``. ``None`` waits forever. A capability
        with its own ``invoke_timeout`` uses that instead. On timeout the
        capability's ``cancel()`` is called when it has one.
    """

    def __init__(
        self,
        context: CapabilityContext,
        loader: Optional[Loader] = None,
        duplicate_policy: str = "reject",
        load_policy: str = "fail-fast",
        invoke_timeout: Optional[float] = None,
    ):
        self.context = context
        self.loader = loader if loader is not None else ModuleLoader()
        self.duplicate_policy = duplicate_policy
        self.load_policy = load_policy
        self.invoke_timeout = invoke_timeout
        self._capabilities: Dict[str, Any] = {}
        self._schemas: Dict[str, FunctionSchema] = {}
        self._executor: Optional[ThreadPoolExecutor] = None

    @classmethod
    def from_config(cls, context: CapabilityContext, loader: Optional[Loader] = None):
        config = context.config
        return cls(
            context,
            loader=loader,
            duplicate_policy=config.duplicate_policy,
            load_policy=config.load_policy,
            invoke_timeout=config.invoke_timeout,
        )

    def register(self, capability) -> str:
        """Initializes ``capability`` and indexes it by id.

        Raises
        ------
        LoadError
            If ``init`` fails or the function schema is malformed.
        DuplicateCapabilityError
            If the id is taken and the policy is ``reject``.
        """
        capability_id, schema = describe_capability(capability)
        if capability_id in self._capabilities:
            if self.duplicate_policy == "reject":
                raise DuplicateCapabilityError(
                    f"plugin with ID {capability_id} is already loaded"
                )
            logger.warning("Overwriting capability %s", capability_id)

        try:
            capability.init(self.context)
        except Exception as exc:
            raise LoadError(
                f"error initializing plugin {capability_id}: {exc}"
            ) from exc

        self._capabilities[capability_id] = capability
        self._schemas[capability_id] = schema
        logger.info("Registered capability %s", capability_id)
        return capability_id

    def load_all(self, directory: Union[str, Path]) -> List[str]:
        """Loads and registers every unit the loader discovers in ``directory``.

        Returns the ids registered by this call.
        """
        loaded = []
        for path in self.loader.discover(directory):
            try:
                capability = self.loader.load(path)
                loaded.append(self.register(capability))
            except LoadError as exc:
                if exc.path is None:
                    exc.path = str(path)
                if self.load_policy == "skip":
                    logger.warning("Skipping capability unit %s: %s", path, exc)
                    continue
                logger.error("Failed to load capability unit %s: %s", path, exc)
                raise
        return loaded

    def is_loaded(self, capability_id: str) -> bool:
        return capability_id in self._capabilities

    def get(self, capability_id: str):
        return self._capabilities.get(capability_id)

    def ids(self) -> List[str]:
        return list(self._capabilities)

    def list_function_schemas(self) -> List[Dict[str, Any]]:
        """One function definition per registered capability."""
        return [schema.model_dump() for schema in self._schemas.values()]

    def invoke(self, capability_id: str, arguments: str) -> InvocationResult:
        """Runs a capability and wraps the outcome in an envelope. Never raises."""
        capability = self._capabilities.get(capability_id)
        if capability is None:
            logger.warning("Invocation of unknown capability %s", capability_id)
            return InvocationResult(error=f"plugin with ID {capability_id} not found")

        timeout = self.timeout_for(capability)
        try:
            result = self._execute(capability, arguments, timeout)
        except FutureTimeoutError:
            logger.warning("Capability %s timed out after %ss", capability_id, timeout)
            cancel = getattr(capability, "cancel", None)
            if callable(cancel):
                cancel()
            return InvocationResult(
                error=f"plugin {capability_id} timed out after {timeout}s"
            )
        except Exception as exc:
            logger.info("Capability %s failed: %s", capability_id, exc)
            return InvocationResult(error=str(exc) or type(exc).__name__)

        if not isinstance(result, str):
            try:
                result = json.dumps(result)
            except (TypeError, ValueError):
                result = str(result)
        return InvocationResult(result=result)

    def timeout_for(self, capability) -> Optional[float]:
        own = getattr(capability, "invoke_timeout", None)
        if isinstance(own, (int, float)) and not isinstance(own, bool):
            return own
        return self.invoke_timeout

    def _execute(self, capability, arguments: str, timeout: Optional[float]):
        if timeout is None:
            return capability.execute(arguments)
        if self._executor is None:
            self._executor = ThreadPoolExecutor(
                max_workers=4, thread_name_prefix="capability"
            )
        future = self._executor.submit(capability.execute, arguments)
        return future.result(timeout=timeout)

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
