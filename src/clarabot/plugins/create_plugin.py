import json
import logging
import threading
from typing import List, Optional

from ..authoring import AuthoringPipeline, SubprocessBuilder
from ..capability import Capability
from ..errors import InvocationError

logger = logging.getLogger(__name__)


class CreatePlugin(Capability):
    """Writes and builds a new capability with the model's help.

    The new capability is loaded on the next start, not into the running
    registry. Its id may not clash with any capability already registered.
    """

    def __init__(self, builder=None):
        self.builder = builder
        self._lock = threading.Lock()
        self._running: List[AuthoringPipeline] = []

    def id(self):
        return "create-plugin"

    def description(self):
        return "Create a plugin"

    def function_schema(self):
        return {
            "name": "create-plugin",
            "description": "Create a plugin that can be used to add functionality to Clara",
            "parameters": {
                "type": "object",
                "properties": {
                    "pluginDescription": {
                        "type": "string",
                        "description": "A detailed description of the plugin, what it needs to do",
                    }
                },
                "required": ["pluginDescription"],
            },
        }

    @property
    def invoke_timeout(self) -> Optional[float]:
        """Worst case of one run: every attempt waits out a completion and a build."""
        if self.context is None:
            return None
        config = self.context.config
        return config.max_build_attempts * (config.completion_timeout + config.build_timeout)

    @property
    def running(self) -> int:
        with self._lock:
            return len(self._running)

    def pipeline(self) -> AuthoringPipeline:
        config = self.context.config
        builder = self.builder
        if builder is None:
            builder = SubprocessBuilder(timeout=config.build_timeout)
        return AuthoringPipeline(
            self.context.llm,
            config.generated_dir,
            config.compiled_dir,
            builder=builder,
            max_attempts=config.max_build_attempts,
            notify=self.context.notify,
            reserved_ids=self.context.loaded_ids(),
        )

    def cancel(self) -> None:
        """Cancels every run in progress."""
        with self._lock:
            running = list(self._running)
        for pipeline in running:
            pipeline.cancel()

    def execute(self, arguments):
        args = json.loads(arguments)
        description = args.get("pluginDescription")
        if not isinstance(description, str) or not description.strip():
            raise InvocationError("pluginDescription not found or not a string")

        pipeline = self.pipeline()
        with self._lock:
            self._running.append(pipeline)
        try:
            artifact = pipeline.run(description)
        finally:
            with self._lock:
                self._running.remove(pipeline)
        logger.info("Created plugin %s", artifact.identifier)
        return (
            f"Plugin {artifact.identifier} has successfully been created. "
            "Clara will need to be restarted to load the plugin."
        )
