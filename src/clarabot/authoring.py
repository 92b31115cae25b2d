"""
The self-authoring pipeline.

Asks the model for a new capability module, writes it under the generated
source root, builds it into the compiled root, and feeds build diagnostics back
to the model for repair until the build succeeds or the attempt budget runs out:

    Idle -> Generating -> Writing -> Building -> (Repairing -> Writing -> Building)*
         -> Succeeded | Failed

The built unit is not registered with the running registry; it is picked up by
``Registry.load_all`` on the next start.
"""

import logging
import re
import secrets
import subprocess
import sys
import threading
from abc import ABC, abstractmethod
from enum import Enum
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

from .errors import BuildError, GenerationError, GenerationPipelineFailure
from .models import (
    ASSISTANT_ROLE,
    FINISH_STOP,
    SYSTEM_ROLE,
    USER_ROLE,
    BuildStatus,
    ChatMessage,
    GeneratedArtifact,
)
from .prompts import CREATE_PLUGIN_PROMPT, REPAIR_PROMPT

logger = logging.getLogger(__name__)

SOURCE_FILENAME = "plugin.py"
COMPILED_SUFFIX = ".pyc"
IDENTIFIER_BYTES = 4
MAX_IDENTIFIER_DRAWS = 16

_FENCE_OPEN = re.compile(r"\A\s*```[\w+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?```\s*\Z")


def strip_code_fences(text: str) -> str:
    """Removes a surrounding markdown code fence, with or without a language tag."""
    text = _FENCE_OPEN.sub("", text, count=1)
    text = _FENCE_CLOSE.sub("", text, count=1)
    return text.strip() + "\n"


class Builder(ABC):
    """Interface for the host build toolchain."""

    @abstractmethod
    def build(
        self, source_path: Path, output_path: Path, reserved: Sequence[str] = ()
    ) -> None:
        """Produces a loadable unit at ``output_path``.

        The unit's id must not be one of ``reserved``.

        Raises
        ------
        BuildError
            With the toolchain's diagnostic text when the build fails.
        """
        pass


class SubprocessBuilder(Builder):
    """Runs ``python -m clarabot.build`` in a child interpreter."""

    def __init__(self, timeout: Optional[float] = 120.0, python: Optional[str] = None):
        self.timeout = timeout
        self.python = python or sys.executable

    def command(
        self, source_path: Path, output_path: Path, reserved: Sequence[str] = ()
    ) -> List[str]:
        cmd = [self.python, "-m", "clarabot.build", str(source_path), str(output_path)]
        for capability_id in reserved:
            cmd.extend(["--reserved", capability_id])
        return cmd

    def build(
        self, source_path: Path, output_path: Path, reserved: Sequence[str] = ()
    ) -> None:
        cmd = self.command(source_path, output_path, reserved)
        logger.debug("Running build: %s", " ".join(cmd))
        try:
            proc = subprocess.run(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True,
                timeout=self.timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise BuildError(f"build timed out after {self.timeout}s") from exc
        if proc.returncode != 0:
            raise BuildError(proc.stdout.strip() or f"build exited with {proc.returncode}")


class PipelineState(str, Enum):
    IDLE = "idle"
    GENERATING = "generating"
    WRITING = "writing"
    BUILDING = "building"
    REPAIRING = "repairing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class AuthoringPipeline:
    """Generate, persist, build, and repair one capability.

    Parameters
    ----------
    llm : llm.LLM
        Completion client used for generation and repair.
    generated_dir : Path
        Source root; each artifact gets ``<generated_dir>/<id>/plugin.py``.
    compiled_dir : Path
        Output root; each artifact builds to ``<compiled_dir>/<id>.pyc``.
    builder : Builder, optional
        Defaults to ``SubprocessBuilder``.
    max_attempts : int
        Builds allowed per artifact. A repair round-trip happens only between
        two builds, so at most ``max_attempts - 1`` repairs are requested.
    reserved_ids : iterable of str
        Capability ids the new unit may not take, such as the built-ins.
        Ids of units already in ``compiled_dir`` are checked by the builder.
    """

    def __init__(
        self,
        llm: Any,
        generated_dir: Path,
        compiled_dir: Path,
        builder: Optional[Builder] = None,
        max_attempts: int = 3,
        notify=None,
        reserved_ids: Iterable[str] = (),
    ):
        self.llm = llm
        self.generated_dir = Path(generated_dir)
        self.compiled_dir = Path(compiled_dir)
        self.builder = builder if builder is not None else SubprocessBuilder()
        self.max_attempts = max_attempts
        self.notify = notify
        self.reserved_ids = sorted(set(reserved_ids))
        self.state = PipelineState.IDLE
        self.transitions: List[PipelineState] = [PipelineState.IDLE]
        self.conversation: List[ChatMessage] = []
        self._cancelled = threading.Event()

    def cancel(self) -> None:
        """Stops the run at its next write or build boundary.

        A unit built after cancellation is removed, so a cancelled run never
        leaves anything for the next start to load.
        """
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def run(self, description: str) -> GeneratedArtifact:
        """Builds a capability from a natural-language description.

        Raises
        ------
        GenerationError
            If the model does not finish a generation or repair with ``stop``,
            or the run was cancelled.
        GenerationPipelineFailure
            If every allowed build fails.
        """
        self.state = PipelineState.IDLE
        self.transitions = [PipelineState.IDLE]
        self.conversation = [
            ChatMessage(role=SYSTEM_ROLE, content=CREATE_PLUGIN_PROMPT),
            ChatMessage(role=USER_ROLE, content=description),
        ]
        try:
            self._transition(PipelineState.GENERATING)
            self._post("Generating plugin code...")
            source = self._complete()

            artifact = self._allocate()
            while True:
                self._check_cancelled()
                self._transition(PipelineState.WRITING)
                self._write(artifact, source)

                self._check_cancelled()
                self._transition(PipelineState.BUILDING)
                try:
                    self.builder.build(
                        Path(artifact.source_path),
                        Path(artifact.output_path),
                        reserved=self.reserved_ids,
                    )
                except BuildError as exc:
                    artifact.diagnostics.append(exc.diagnostic)
                    logger.info(
                        "Build %d of %d for %s failed: %s",
                        len(artifact.diagnostics),
                        self.max_attempts,
                        artifact.identifier,
                        exc.diagnostic,
                    )
                    if len(artifact.diagnostics) >= self.max_attempts:
                        artifact.status = BuildStatus.FAILED
                        raise GenerationPipelineFailure(
                            "failed to build the plugin after "
                            f"{self.max_attempts} attempts: {exc.diagnostic}",
                            artifact=artifact,
                        ) from exc
                    self._transition(PipelineState.REPAIRING)
                    self._post(f"Refining code due to build error: {exc.diagnostic}")
                    source = self._repair(artifact, exc.diagnostic)
                    continue

                if self.cancelled:
                    Path(artifact.output_path).unlink(missing_ok=True)
                    artifact.status = BuildStatus.FAILED
                    raise GenerationError("plugin creation was cancelled")
                artifact.status = BuildStatus.SUCCEEDED
                self._transition(PipelineState.SUCCEEDED)
                logger.info("Built capability %s at %s", artifact.identifier, artifact.output_path)
                return artifact
        except Exception:
            self._transition(PipelineState.FAILED)
            raise

    def _check_cancelled(self) -> None:
        if self.cancelled:
            raise GenerationError("plugin creation was cancelled")

    def _complete(self) -> str:
        response = self.llm.generate_response([m.to_payload() for m in self.conversation])
        completion = self.llm.parse_completion(response)
        if completion.finish_reason != FINISH_STOP:
            raise GenerationError(
                f"failed to generate plugin code (finish reason: {completion.finish_reason})"
            )
        self.conversation.append(ChatMessage(role=ASSISTANT_ROLE, content=completion.content))
        return strip_code_fences(completion.content)

    def _repair(self, artifact: GeneratedArtifact, diagnostic: str) -> str:
        artifact.repair_attempts += 1
        self.conversation.append(
            ChatMessage(
                role=USER_ROLE,
                content=REPAIR_PROMPT.format(source=artifact.source, diagnostic=diagnostic),
            )
        )
        return self._complete()

    def _allocate(self) -> GeneratedArtifact:
        for _ in range(MAX_IDENTIFIER_DRAWS):
            identifier = secrets.token_hex(IDENTIFIER_BYTES)
            source_path = self.generated_dir / identifier / SOURCE_FILENAME
            output_path = self.compiled_dir / f"{identifier}{COMPILED_SUFFIX}"
            if not source_path.parent.exists() and not output_path.exists():
                return GeneratedArtifact(
                    identifier=identifier,
                    source_path=str(source_path),
                    output_path=str(output_path),
                )
        raise GenerationError("could not allocate a unique plugin identifier")

    def _write(self, artifact: GeneratedArtifact, source: str) -> None:
        self._post("Writing code to file...")
        path = Path(artifact.source_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(source, encoding="utf-8")
        artifact.source = source

    def _transition(self, state: PipelineState) -> None:
        logger.debug("Authoring state %s -> %s", self.state.value, state.value)
        self.state = state
        self.transitions.append(state)

    def _post(self, text: str) -> None:
        if self.notify is not None:
            self.notify("SYSTEM", text)
