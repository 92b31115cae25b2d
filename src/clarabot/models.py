"""
Defines the core Pydantic data models for the application.

These models serve as the formal, validated data contract between all other pillars,
aligning with the chat-completions wire format used by the OpenAI SDK.
"""

import json
import uuid
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field, model_validator

# --- Constants ---
USER_ROLE = "user"
ASSISTANT_ROLE = "assistant"
SYSTEM_ROLE = "system"
FUNCTION_ROLE = "function"
Role = Literal[USER_ROLE, ASSISTANT_ROLE, SYSTEM_ROLE, FUNCTION_ROLE]

FINISH_STOP = "stop"
FINISH_FUNCTION_CALL = "function_call"


# --- Models ---
class ChatMessage(BaseModel):
    """Represents a single message within a conversation."""

    role: Role
    content: str = ""
    name: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        """Returns the message in the shape the completion API expects."""
        payload = {"role": self.role, "content": self.content}
        if self.name:
            payload["name"] = self.name
        return payload


class Conversation(BaseModel):
    """Represents a complete chat conversation session."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    messages: List[ChatMessage] = Field(default_factory=list)


class FunctionSchema(BaseModel):
    """A function definition presented to the model."""

    name: str = Field(min_length=1)
    description: str = ""
    parameters: Dict[str, Any] = Field(
        default_factory=lambda: {"type": "object", "properties": {}}
    )


class FunctionCall(BaseModel):
    """A request from the model to invoke a capability."""

    name: str
    arguments: str = "{}"


class Completion(BaseModel):
    """Provider-neutral view of a single completion response."""

    finish_reason: Optional[str] = None
    content: str = ""
    function_call: Optional[FunctionCall] = None

    @property
    def is_function_call(self) -> bool:
        return self.finish_reason == FINISH_FUNCTION_CALL and self.function_call is not None


class InvocationResult(BaseModel):
    """The envelope returned for every capability invocation.

    Exactly one of ``result`` and ``error`` is populated.
    """

    result: Optional[str] = None
    error: Optional[str] = None

    @model_validator(mode="after")
    def _exactly_one(self) -> "InvocationResult":
        if (self.result is None) == (self.error is None):
            raise ValueError("exactly one of 'result' or 'error' must be set")
        return self

    @property
    def is_error(self) -> bool:
        return self.error is not None

    def to_json(self) -> str:
        return json.dumps(self.model_dump(exclude_none=True))


class BuildStatus(str, Enum):
    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class GeneratedArtifact(BaseModel):
    """A capability written by the self-authoring pipeline."""

    identifier: str
    source: str = ""
    source_path: str
    output_path: str
    status: BuildStatus = BuildStatus.PENDING
    repair_attempts: int = 0
    diagnostics: List[str] = Field(default_factory=list)
