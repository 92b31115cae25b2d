"""Key/value long-term memory."""

import json
import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Dict, Optional

from ..capability import Capability
from ..errors import InvocationError

logger = logging.getLogger(__name__)


class ReadWriteLock:
    """Many concurrent readers or one writer."""

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0

    @contextmanager
    def read(self):
        with self._cond:
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if not self._readers:
                    self._cond.notify_all()

    @contextmanager
    def write(self):
        with self._cond:
            while self._readers:
                self._cond.wait()
            yield


class Memory(Capability):
    """Stores and retrieves named memories.

    Entries live in a dict guarded by a reader/writer lock. When
    ``memory_file`` is configured, the dict is loaded on init and written
    back after every store.
    """

    def __init__(self, path: Optional[Path] = None):
        self.path = path
        self._entries: Dict[str, str] = {}
        self._lock = ReadWriteLock()

    def init(self, context):
        super().init(context)
        if self.path is None:
            self.path = context.config.memory_file
        if self.path is not None and Path(self.path).exists():
            data = json.loads(Path(self.path).read_text(encoding="utf-8"))
            with self._lock.write():
                self._entries = {str(k): str(v) for k, v in data.items()}
            logger.info("Loaded %d memories from %s", len(self._entries), self.path)

    def id(self):
        return "memory"

    def description(self):
        return "Store and retrieve memories from long term memory."

    def function_schema(self):
        return {
            "name": "memory",
            "description": (
                "Store and retrieve memories. Use action 'set' to store a memory "
                "under a name and action 'get' to retrieve it. Use generic names "
                "without punctuation, e.g. 'name' rather than \"Josh's name\"."
            ),
            "parameters": {
                "type": "object",
                "properties": {
                    "action": {
                        "type": "string",
                        "enum": ["set", "get"],
                        "description": "'set' to store a memory, 'get' to retrieve one",
                    },
                    "name": {
                        "type": "string",
                        "description": "The name of the memory",
                    },
                    "memory": {
                        "type": "string",
                        "description": "The memory to store; required for 'set'",
                    },
                },
                "required": ["action", "name"],
            },
        }

    def execute(self, arguments):
        args = json.loads(arguments)
        action = args.get("action")
        name = args.get("name")
        if not isinstance(name, str) or not name:
            raise InvocationError("name is required")
        if action == "set":
            memory = args.get("memory")
            if not isinstance(memory, str):
                raise InvocationError("memory is required for 'set'")
            self.store(name, memory)
            return "Memory has been stored successfully."
        if action == "get":
            return self.retrieve(name)
        raise InvocationError(f"unknown action {action!r}, expected 'set' or 'get'")

    def store(self, name: str, memory: str) -> None:
        with self._lock.write():
            self._entries[name] = memory
            if self.path is not None:
                Path(self.path).parent.mkdir(parents=True, exist_ok=True)
                Path(self.path).write_text(json.dumps(self._entries), encoding="utf-8")

    def retrieve(self, name: str) -> str:
        with self._lock.read():
            memory = self._entries.get(name)
        if memory is None:
            raise InvocationError(f"memory with name {name} not found")
        return memory
