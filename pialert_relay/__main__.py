# PiAlert Relay Module - Command Line
# -*- coding: utf-8 -*-
"""
 Python module to drive a relay from PiAlert monitoring alerts

 Commands:
    python -m pialert_relay run [-simulate]    # Start poll loop and control surface
    python -m pialert_relay poll               # Query the alert API once and print the outcome
    python -m pialert_relay version            # Print version information

 Settings are read from the environment (and a .env file in the working
 directory). PIALERT_API_KEY is required for run and poll.
"""

import argparse
import logging
import sys

import dotenv

# Modules
from pialert_relay import version, set_debug
from pialert_relay.config import load_settings
from pialert_relay.exceptions import ConfigurationError, DeviceWriteError


def build_parser():
    p = argparse.ArgumentParser(prog="pialert_relay", description=f"PiAlert Relay Controller v{version}")
    subparsers = p.add_subparsers(dest="command", title='commands (run <command> -h to see usage information)',
                                  required=True)

    run_args = subparsers.add_parser("run", help='Start the relay controller and control surface')
    run_args.add_argument("-simulate", action="store_true", default=False,
                          help="Use a simulated relay instead of GPIO")
    run_args.add_argument("-port", type=int, default=None, help="Control surface port [Default=5000]")

    subparsers.add_parser("poll", help='Query the alert API once and print the classified outcome')

    subparsers.add_parser("version", help='Print version information')

    # Add a global debug flag
    p.add_argument("-debug", action="store_true", default=False, help="Enable debug output")
    return p


def main(argv=None):
    p = build_parser()
    if argv is None and len(sys.argv) == 1:
        p.print_help(sys.stderr)
        sys.exit(1)
    args = p.parse_args(argv)
    command = args.command

    # Set Debug Mode
    if args.debug:
        set_debug(True)

    if command == 'version':
        print("pialert_relay [%s]" % version)
        return 0

    dotenv.load_dotenv()
    overrides = {}
    if args.debug:
        overrides['debug'] = True
    if command == 'run':
        if args.simulate:
            overrides['simulate'] = True
        if args.port is not None:
            overrides['server_port'] = args.port
    try:
        settings = load_settings(**overrides)
    except ConfigurationError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)

    if command == 'poll':
        from pialert_relay.client import AlertClient

        client = AlertClient(settings.api_url, settings.api_key, timeout=settings.request_timeout_seconds)
        try:
            outcome = client.poll()
        finally:
            client.close()
        print(outcome.model_dump_json(indent=4))
        return 0

    # command == 'run'
    from pialert_relay.server.app import run_server

    logging.basicConfig(
        level=logging.DEBUG if settings.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    try:
        exit_code = run_server(settings)
    except DeviceWriteError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        sys.exit(1)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
