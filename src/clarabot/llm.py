"""Concrete implementations for LLM providers."""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from .errors import AuthenticationError, CompletionAPIError, CompletionTimeout, ConfigError
from .models import Completion, FunctionCall


class LLM(ABC):
    """Abstract Base Class for all LLM providers."""

    @abstractmethod
    def generate_response(
        self,
        messages: List[Dict[str, Any]],
        functions: Optional[List[Dict[str, Any]]] = None,
        model: Optional[str] = None,
        **kwargs: Any,
    ) -> Any:
        """Generates a response from the LLM provider.

        This method should return the provider's native, rich response object
        directly from their SDK.

        Parameters
        ----------
        messages : List[Dict[str, Any]]
            The full conversation history, oldest first.
        functions : List[Dict[str, Any]], optional
            Function definitions the model may call. When given, automatic
            function selection is enabled.
        model : str, optional
            Overrides the provider's default model.
        **kwargs : Any
            Provider-specific parameters passed directly to the SDK.

        Returns
        -------
        Any
            The provider's native, rich response object.

        Raises
        ------
        CompletionAPIError
            For transport and status failures, with ``status_code`` set when
            the provider reported one.
        """
        pass

    @abstractmethod
    def parse_completion(self, response: Any) -> Completion:
        """Converts the provider's native response into a ``Completion``.

        Parameters
        ----------
        response : Any
            The provider's native response object from generate_response.

        Returns
        -------
        Completion
            The finish reason, text content, and function call, if any.
        """
        pass


class OpenAI(LLM):
    def __init__(
        self,
        default_model: str = "gpt-4o-mini",
        api_key: Optional[str] = None,
        timeout: Optional[float] = 60.0,
    ):
        import openai

        try:
            self.client = openai.OpenAI(api_key=api_key, timeout=timeout)
        except openai.OpenAIError as exc:
            raise ConfigError(f"OpenAI client could not be created: {exc}") from exc
        self.model = default_model

    def generate_response(self, messages, functions=None, model=None, **kwargs):
        import openai

        if functions:
            kwargs["functions"] = functions
            kwargs.setdefault("function_call", "auto")
        try:
            return self.client.chat.completions.create(
                messages=messages, model=model or self.model, **kwargs
            )
        except openai.AuthenticationError as exc:
            raise AuthenticationError() from exc
        except openai.APITimeoutError as exc:
            raise CompletionTimeout(str(exc)) from exc
        except openai.APIStatusError as exc:
            raise CompletionAPIError(str(exc), status_code=exc.status_code) from exc
        except openai.APIError as exc:
            raise CompletionAPIError(str(exc)) from exc

    def parse_completion(self, response: Any) -> Completion:
        choice = response.choices[0]
        message = choice.message
        function_call = None
        if getattr(message, "function_call", None) is not None:
            function_call = FunctionCall(
                name=message.function_call.name,
                arguments=message.function_call.arguments or "{}",
            )
        return Completion(
            finish_reason=choice.finish_reason,
            content=message.content or "",
            function_call=function_call,
        )

