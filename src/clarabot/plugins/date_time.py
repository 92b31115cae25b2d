from datetime import datetime

from ..capability import Capability


class DateTime(Capability):
    """Reports the local date and time."""

    def __init__(self, clock=datetime.now):
        self._clock = clock

    def id(self):
        return "date-time"

    def description(self):
        return "Get the current date and time"

    def function_schema(self):
        return {
            "name": "date-time",
            "description": "Get the current local date and time in ISO 8601 format",
            "parameters": {"type": "object", "properties": {}},
        }

    def execute(self, arguments):
        return self._clock().astimezone().isoformat(timespec="seconds")
