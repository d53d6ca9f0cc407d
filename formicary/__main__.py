"""Entry point for ``python -m formicary``.

Loads the YAML config, registers with the arena and plays turns until
interrupted.  With ``--viewer`` the bot runs on a background thread and
a Pygame window shows the latest turn.
"""

from __future__ import annotations

import argparse
import logging
import pathlib
import sys
import threading

from formicary.runtime.config import BotConfig
from formicary.runtime.engine import ColonyBot
from formicary.runtime.errors import ConfigError, RegistrationError

_DEFAULT_CONFIG = (
    pathlib.Path(__file__).resolve().parent.parent / "config" / "default.yaml"
)

log = logging.getLogger("formicary")


def _play(bot: ColonyBot, max_turns: int | None) -> None:
    try:
        bot.register()
    except RegistrationError as exc:
        log.error("%s", exc)
        bot.stop()
        return
    bot.run(max_turns=max_turns)


def main(argv: list[str] | None = None) -> int:
    """Parse CLI args, build the bot, play until stopped."""
    parser = argparse.ArgumentParser(
        prog="formicary",
        description="Formicary - hex-grid ant colony bot",
    )
    parser.add_argument(
        "-c",
        "--config",
        type=pathlib.Path,
        default=_DEFAULT_CONFIG,
        help="Path to YAML config file (default: config/default.yaml)",
    )
    parser.add_argument(
        "--turns",
        type=int,
        default=None,
        help="Stop after this many turns (default: play until interrupted)",
    )
    parser.add_argument(
        "--viewer",
        action="store_true",
        help="Open a Pygame window showing the latest turn",
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=30,
        help="Viewer frames per second (default: 30)",
    )
    args = parser.parse_args(argv)

    try:
        config = BotConfig.from_yaml(args.config)
    except ConfigError as exc:
        logging.basicConfig(level=logging.ERROR)
        log.error("%s", exc)
        return 2

    logging.basicConfig(
        level=getattr(logging, str(config.log_level).upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    bot = ColonyBot(config)

    if not args.viewer:
        try:
            bot.register()
            bot.run(max_turns=args.turns)
        except RegistrationError as exc:
            log.error("%s", exc)
            return 1
        except KeyboardInterrupt:
            log.info("Interrupted, shutting down")
        finally:
            bot.client.close()
        return 0

    from formicary.ui.pygame_client import StatusViewer

    worker = threading.Thread(target=_play, args=(bot, args.turns), daemon=True)
    worker.start()
    try:
        StatusViewer(bot, refresh_interval=config.status_interval).run(fps=args.fps)
    except KeyboardInterrupt:
        log.info("Interrupted, shutting down")
    finally:
        bot.stop()
        worker.join(timeout=config.request_timeout + config.turn_interval)
        bot.client.close()
    return 1 if bot.waiting else 0


if __name__ == "__main__":
    sys.exit(main())
