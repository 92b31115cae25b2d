"""Build toolchain for generated capabilities.

Run as ``python -m clarabot.build SOURCE OUTPUT [--reserved ID ...]``.
Byte-compiles SOURCE to OUTPUT, then loads OUTPUT through the startup loader
and applies the registration checks: a valid function schema named after the
capability id, and an id not listed with ``--reserved`` nor used by another
unit already in OUTPUT's directory. Exits non-zero with a diagnostic on stderr
when any step fails, removing OUTPUT.
"""

import argparse
import py_compile
import sys
import traceback
from pathlib import Path
from typing import Iterable, List, Optional, Set

from .errors import DuplicateCapabilityError, LoadError
from .loader import ModuleLoader
from .registry import describe_capability


def existing_ids(directory: Path, exclude: Path) -> Set[str]:
    """Ids of the units already built into ``directory``.

    Units that no longer load are left to the startup load policy.
    """
    loader = ModuleLoader(namespace="clarabot_build_existing")
    ids = set()
    for path in loader.discover(directory):
        if path.resolve() == exclude.resolve():
            continue
        try:
            capability_id, _ = describe_capability(loader.load(path))
        except LoadError as exc:
            print(f"warning: ignoring {path}: {exc}", file=sys.stderr)
            continue
        ids.add(capability_id)
    return ids


def build(source: Path, output: Path, reserved: Iterable[str] = ()) -> str:
    """Compiles and validates one unit, returning its capability id.

    Raises
    ------
    py_compile.PyCompileError
        If the source does not compile.
    LoadError
        If the compiled unit does not load or conform.
    DuplicateCapabilityError
        If its id is reserved or taken by another built unit.
    """
    output.parent.mkdir(parents=True, exist_ok=True)
    py_compile.compile(str(source), cfile=str(output), doraise=True)
    try:
        capability = ModuleLoader(namespace="clarabot_build").load(output)
        capability_id, _ = describe_capability(capability)
        if capability_id in set(reserved) or capability_id in existing_ids(
            output.parent, output
        ):
            raise DuplicateCapabilityError(
                f"plugin ID {capability_id} is already taken; "
                "choose a different ID in id() and the function schema name",
                path=str(output),
            )
    except LoadError:
        output.unlink(missing_ok=True)
        raise
    return capability_id


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(prog="python -m clarabot.build")
    parser.add_argument("source", type=Path)
    parser.add_argument("output", type=Path)
    parser.add_argument(
        "--reserved",
        action="append",
        default=[],
        metavar="ID",
        help="capability id the unit must not use (repeatable)",
    )
    args = parser.parse_args(argv)

    try:
        build(args.source, args.output, reserved=args.reserved)
    except py_compile.PyCompileError as exc:
        print(exc.msg, file=sys.stderr)
        return 1
    except LoadError as exc:
        cause = exc.__cause__
        if cause is not None:
            traceback.print_exception(type(cause), cause, cause.__traceback__)
        print(exc, file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"error building {args.source}: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
