"""Capabilities shipped with the assistant."""

from typing import List

from .add_numbers import AddNumbers
from .create_plugin import CreatePlugin
from .date_time import DateTime
from .memory import Memory


def builtin_capabilities() -> List:
    """Fresh instances of every built-in capability."""
    return [AddNumbers(), DateTime(), Memory(), CreatePlugin()]
