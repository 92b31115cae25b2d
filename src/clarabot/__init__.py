"""
The main entrypoint for the Clarabot package.

This module contains the primary Clarabot class, which wires the pillars of
the capability runtime together: the completion client (``llm``), the
capability ``registry`` and its ``loader``, the conversation ``session``, and
the dispatch ``engine``.
"""

import logging
from typing import Callable, Iterable, Optional

from . import engine, llm, loader, plugins, prompts, registry, session
from .capability import CapabilityContext
from .config import Config

logger = logging.getLogger(__name__)

__all__ = ["Clarabot", "Config"]


class Clarabot:
    """
    A conversational assistant whose abilities are extended by capabilities.

    Parameters
    ----------
    config : Config, optional
        Paths, limits and credentials. Defaults to ``Config()``.
    llm : llm.LLM, optional
        Completion client. Defaults to ``llm.OpenAI`` built from ``config``.
    registry : registry.Registry, optional
        Capability catalog. Defaults to one built from ``config``.
    loader : loader.Loader, optional
        Used by the default registry. Defaults to ``loader.ModuleLoader``.
    engine : engine.Engine, optional
        Dispatch loop. Defaults to ``engine.Synchronous``.
    session : session.Session, optional
        Conversation owner. Defaults to a fresh session.
    builtins : iterable of capabilities, optional
        Registered before compiled units are loaded. Defaults to
        ``plugins.builtin_capabilities()``.
    notify : callable, optional
        ``notify(sender, text)`` receives progress lines from capabilities.
    system_prompt : str, optional
        Seeds every conversation. Defaults to ``prompts.SYSTEM_PROMPT``.

    Examples
    --------
    >>> bot = Clarabot(config=Config.load("clarabot.json"))
    >>> greeting = bot.start()
    >>> answer = bot.message("What is 2 + 3?")
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        llm: Optional["llm.LLM"] = None,
        registry: Optional["registry.Registry"] = None,
        loader: Optional["loader.Loader"] = None,
        engine: Optional["engine.Engine"] = None,
        session: Optional["session.Session"] = None,
        builtins: Optional[Iterable] = None,
        notify: Optional[Callable[[str, str], None]] = None,
        system_prompt: Optional[str] = None,
    ) -> None:
        llm_module = globals()["llm"]
        registry_module = globals()["registry"]
        engine_module = globals()["engine"]
        session_module = globals()["session"]

        self.config = config if config is not None else Config()
        self.llm = (
            llm
            if llm is not None
            else llm_module.OpenAI(
                default_model=self.config.model,
                api_key=self.config.api_key,
                timeout=self.config.completion_timeout,
            )
        )
        self.context = CapabilityContext(config=self.config, llm=self.llm, notify=notify)
        self.registry = (
            registry
            if registry is not None
            else registry_module.Registry.from_config(self.context, loader=loader)
        )
        self.registry.context.capability_ids = self.registry.ids
        self.engine = engine if engine is not None else engine_module.Synchronous()
        self.engine.app = self
        self.session = session if session is not None else session_module.Session()
        self.builtins = list(builtins) if builtins is not None else plugins.builtin_capabilities()
        self.system_prompt = system_prompt or prompts.SYSTEM_PROMPT

    def load_capabilities(self) -> None:
        """Registers built-ins, then every unit in the compiled directory.

        Raises
        ------
        LoadError
            Under the ``fail-fast`` load policy, on the first failing unit.
        """
        for capability in self.builtins:
            self.registry.register(capability)
        loaded = self.registry.load_all(self.config.compiled_dir)
        logger.info(
            "Loaded %d capabilities (%d from %s)",
            len(self.registry.ids()),
            len(loaded),
            self.config.compiled_dir,
        )

    def start(self) -> str:
        """Loads capabilities and opens the conversation.

        Returns the model's first acknowledgement.
        """
        self.load_capabilities()
        return self.restart()

    def restart(self) -> str:
        """Discards the conversation and starts a new one."""
        return self.engine.restart(self.session, self.system_prompt)

    def message(self, text: str) -> str:
        """Sends one user turn and returns the assistant's answer.

        ``/restart`` and ``/help`` are handled locally.
        """
        command = text.strip()
        if command == "/restart":
            return self.restart()
        if command == "/help":
            return prompts.HELP_TEXT
        return self.engine.handle_message(self.session, text)

    def close(self) -> None:
        self.registry.close()
