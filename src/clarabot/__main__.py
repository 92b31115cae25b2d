"""Console entry point: ``python -m clarabot [--config FILE]``."""

import argparse
import logging
import sys

from . import Clarabot
from .config import DEFAULT_CONFIG_FILE, Config
from .errors import ClarabotError, LoadError


def _print_notice(sender: str, text: str) -> None:
    print(f"[{sender}] {text}")


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(prog="clarabot")
    parser.add_argument("--config", default=DEFAULT_CONFIG_FILE, help="JSON config file")
    args = parser.parse_args(argv)

    try:
        config = Config.load(args.config)
    except ClarabotError as exc:
        print(exc, file=sys.stderr)
        return 2

    logging.basicConfig(
        filename=str(config.log_file),
        level=logging.DEBUG if config.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        bot = Clarabot(config=config, notify=_print_notice)
    except ClarabotError as exc:
        print(exc, file=sys.stderr)
        return 2

    try:
        print(f"Clara: {bot.start()}\n")
    except LoadError as exc:
        print(f"Failed to load plugins: {exc}", file=sys.stderr)
        return 1
    except ClarabotError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    try:
        while True:
            try:
                text = input("You: ")
            except EOFError:
                break
            if text.strip() == "/exit":
                break
            if not text.strip():
                continue
            try:
                print(f"Clara: {bot.message(text)}\n")
            except ClarabotError as exc:
                print(f"Error: {exc}\n", file=sys.stderr)
    except KeyboardInterrupt:
        pass
    finally:
        bot.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
