"""The dispatch loop that interleaves completions with capability calls."""

import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, List, Optional

from .errors import AUTH_REMEDIATION, AuthenticationError, CallChainTooDeep, CompletionAPIError
from .models import ASSISTANT_ROLE, FINISH_STOP, FUNCTION_ROLE, USER_ROLE, ChatMessage, Completion
from .session import Session

logger = logging.getLogger(__name__)


class DispatchState(str, Enum):
    AWAITING_USER_INPUT = "awaiting_user_input"
    REQUESTING_COMPLETION = "requesting_completion"
    HANDLING_FUNCTION_CALL = "handling_function_call"
    DONE = "done"
    ERROR = "error"


class Engine(ABC):
    """Drives one conversational turn against the app's pillars.

    The engine reads ``app.llm``, ``app.registry`` and ``app.config``. The
    app reference may be bound after construction.
    """

    def __init__(self, app: Any = None):
        self.app = app

    @abstractmethod
    def handle_message(self, session: Session, user_input: str) -> str:
        """Appends a user turn and returns the assistant's final answer."""
        pass

    @abstractmethod
    def restart(self, session: Session, system_prompt: str) -> str:
        """Resets the session and returns the model's acknowledgement."""
        pass


class Synchronous(Engine):
    """Blocking dispatch loop.

    Each completion that ends in a function call is answered by invoking the
    named capability and appending two function-role messages (the raw call,
    then the JSON envelope) before asking again. A turn issues at most
    ``max_chain_depth`` completion requests.
    """

    MAX_AGENTIC_TURNS = 10

    def __init__(self, app: Any = None, max_chain_depth: Optional[int] = None):
        super().__init__(app)
        self._max_chain_depth = max_chain_depth
        self.state = DispatchState.AWAITING_USER_INPUT

    @property
    def max_chain_depth(self) -> int:
        if self._max_chain_depth is not None:
            return self._max_chain_depth
        config = getattr(self.app, "config", None)
        depth = getattr(config, "max_chain_depth", None)
        return depth if isinstance(depth, int) else self.MAX_AGENTIC_TURNS

    def handle_message(self, session: Session, user_input: str) -> str:
        with session.lock:
            self._transition(DispatchState.AWAITING_USER_INPUT)
            session.append(ChatMessage(role=USER_ROLE, content=user_input))
            return self._run(session)

    def restart(self, session: Session, system_prompt: str) -> str:
        with session.lock:
            self._transition(DispatchState.AWAITING_USER_INPUT)
            session.reset(system_prompt)
            return self._run(session)

    def _run(self, session: Session) -> str:
        try:
            for _ in range(self.max_chain_depth):
                self._transition(DispatchState.REQUESTING_COMPLETION)
                self._before_llm_call(session)
                completion = self._request_completion(session)
                self._after_llm_call(completion)

                if not completion.is_function_call:
                    return self._finalize(session, completion)

                self._transition(DispatchState.HANDLING_FUNCTION_CALL)
                self._handle_function_call(session, completion)
            raise CallChainTooDeep(self.max_chain_depth)
        except Exception:
            self._transition(DispatchState.ERROR)
            raise

    def _request_completion(self, session: Session) -> Completion:
        functions: List = self.app.registry.list_function_schemas()
        try:
            response = self.app.llm.generate_response(
                session.to_payload(), functions=functions or None
            )
        except CompletionAPIError as exc:
            if exc.status_code == 401:
                logger.warning(AUTH_REMEDIATION)
                if not isinstance(exc, AuthenticationError):
                    raise AuthenticationError() from exc
            raise
        return self.app.llm.parse_completion(response)

    def _handle_function_call(self, session: Session, completion: Completion) -> None:
        call = completion.function_call
        logger.debug("Function call detected, calling function: %s", call.name)
        envelope = self.app.registry.invoke(call.name, call.arguments)
        session.append(
            ChatMessage(role=FUNCTION_ROLE, content=call.model_dump_json(), name=call.name)
        )
        session.append(
            ChatMessage(role=FUNCTION_ROLE, content=envelope.to_json(), name=call.name)
        )

    def _finalize(self, session: Session, completion: Completion) -> str:
        if completion.finish_reason != FINISH_STOP:
            logger.warning("Completion finished with reason %s", completion.finish_reason)
        self._before_save(session, completion)
        session.append(ChatMessage(role=ASSISTANT_ROLE, content=completion.content))
        self._transition(DispatchState.DONE)
        return completion.content

    def _transition(self, state: DispatchState) -> None:
        logger.debug("Dispatch state %s -> %s", self.state.value, state.value)
        self.state = state

    # --- Hooks ---
    def _before_llm_call(self, session: Session) -> None:
        pass

    def _after_llm_call(self, completion: Completion) -> None:
        pass

    def _before_save(self, session: Session, completion: Completion) -> None:
        pass
