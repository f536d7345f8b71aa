from __future__ import annotations

import argparse
import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional

from tty_relay import __version__
from tty_relay.tools import get_relay_controller
from tty_relay.tools.polarity import parse_polarity
from tty_relay.tools.port_locator import PortEnumerator, PortLocator, format_usb_id
from tty_relay.tools.usb_relay_controller import validate_delay
from tty_relay.util.constants import APP_NAME, RelayConfig, load_config, resolve_port
from tty_relay.util.errors import InvalidArgument, RelayError

SIMPLE_COMMANDS = {
    "on": "enable power",
    "off": "disable power",
    "toggle": "toggle power",
    "jog": "quick toggle power",
}


def _delay_arg(value: str) -> float:
    try:
        return validate_delay(value)
    except InvalidArgument as exc:
        raise argparse.ArgumentTypeError(str(exc)) from None


def _build_parser() -> argparse.ArgumentParser:
    """Define the global options and one sub-command per relay operation."""
    parser = argparse.ArgumentParser(prog=APP_NAME, description="tty power management")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument(
        "-t",
        "--tty",
        metavar="PATH",
        help="manually select tty port (skips auto-detection)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="YAML configuration file (default: config/tty_relay.yaml).",
    )
    parser.add_argument(
        "--polarity",
        choices=("NO", "NC"),
        type=str.upper,
        help="Relay contact wiring, overrides the configuration (default: NO).",
    )
    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Logging level (default: WARNING).",
    )

    sub = parser.add_subparsers(dest="command", metavar="COMMAND")
    sub.required = True
    for name, about in SIMPLE_COMMANDS.items():
        sub.add_parser(name, help=about)
    for name, action in (("timed_start", "on"), ("timed_stop", "off")):
        timed = sub.add_parser(name, help=f"{action} after n seconds")
        timed.add_argument("seconds", type=_delay_arg, help="delay in seconds")
    sub.add_parser("status", help="print the current relay state")
    sub.add_parser("ports", help="list serial ports with a supported USB id")
    return parser


def _list_ports(config: RelayConfig, enumerator: Optional[PortEnumerator]) -> int:
    for info in PortLocator(enumerator, config.usb_ids).matching_ports():
        usb_id = format_usb_id(info.vid, info.pid)
        description = getattr(info, "description", "") or ""
        print(f"{info.device}\t{usb_id}\t{description}".rstrip())
    return 0


def _run(args: argparse.Namespace, enumerator: Optional[PortEnumerator]) -> int:
    config = load_config(args.config)
    if args.polarity:
        config = dataclasses.replace(config, polarity=parse_polarity(args.polarity))
    if args.command == "ports":
        return _list_ports(config, enumerator)

    relay = get_relay_controller(config, resolve_port(args.tty, config), enumerator=enumerator)
    if args.command == "status":
        with relay:
            print(relay.state().value)
    else:
        relay.execute(args.command, getattr(args, "seconds", None))
    logging.info("%s completed on %s", args.command, relay.lines.port)
    return 0


def main(
    argv: Optional[List[str]] = None,
    *,
    enumerator: Optional[PortEnumerator] = None,
) -> int:
    """Parse ``argv``, run one relay command and return the exit status.

    Parameters:
        argv (list[str], optional): Command line without the program name;
            ``sys.argv[1:]`` when omitted.
        enumerator (PortEnumerator, optional): Port source for
            auto-detection, pyserial's by default.

    Returns:
        int: ``0`` on success, otherwise the ``exit_code`` of the raised
        :class:`~tty_relay.util.errors.RelayError`.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    log_level = getattr(logging, str(args.log_level).upper(), logging.WARNING)
    logging.basicConfig(level=log_level, format="%(asctime)s - %(levelname)s - %(name)s - %(message)s")

    try:
        return _run(args, enumerator)
    except RelayError as exc:
        logging.error("%s failed: %s", args.command, exc)
        print(f"{APP_NAME}: {args.command} failed: {exc}", file=sys.stderr)
        return exc.exit_code


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
