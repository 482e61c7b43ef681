"""Command-line access to configured hosting backends.

Examples:
    hosting-bridge drivers
    hosting-bridge --config hosting.yaml test --driver ploi
    hosting-bridge sites --driver forge --server 12345
    hosting-bridge capabilities
"""

import argparse
import json
import logging
import sys
from typing import Any, List, Optional

from .backends import HostingManager
from .capabilities import capability_matrix
from .config import load_config
from .exceptions import HostingError
from .normalize import serialize_value

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def _print_json(value: Any) -> None:
    print(json.dumps(serialize_value(value), indent=2, sort_keys=False))


def cmd_drivers(manager: HostingManager, args: argparse.Namespace) -> int:
    drivers = [
        {
            'driver': driver,
            'default': driver == manager.default_driver(),
            'configured': manager.is_configured(driver),
        }
        for driver in sorted(manager.available_drivers())
    ]
    _print_json(drivers)
    return 0


def cmd_test(manager: HostingManager, args: argparse.Namespace) -> int:
    result = manager.resolve(args.driver).test_connection()
    _print_json(result)
    return 0 if result.success else 1


def cmd_servers(manager: HostingManager, args: argparse.Namespace) -> int:
    _print_json(manager.resolve(args.driver).list_servers())
    return 0


def cmd_sites(manager: HostingManager, args: argparse.Namespace) -> int:
    _print_json(manager.resolve(args.driver).list_sites(args.server))
    return 0


def cmd_capabilities(manager: HostingManager, args: argparse.Namespace) -> int:
    if args.driver:
        backend = manager.resolve(args.driver)
        _print_json(sorted(capability.value for capability in backend.capabilities()))
        return 0

    backends = {driver: manager.resolve(driver) for driver in sorted(manager.available_drivers())}
    _print_json(capability_matrix(backends))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='hosting-bridge',
        description="Query hosting control panels through one interface",
    )
    parser.add_argument("--config", default=None,
                        help="YAML configuration file (default: $HOSTING_CONFIG)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    drivers = subparsers.add_parser("drivers", help="List available drivers")
    drivers.set_defaults(func=cmd_drivers)

    test = subparsers.add_parser("test", help="Test the API connection of a driver")
    test.add_argument("--driver", default=None, help="Driver name (default: configured default)")
    test.set_defaults(func=cmd_test)

    servers = subparsers.add_parser("servers", help="List servers")
    servers.add_argument("--driver", default=None, help="Driver name (default: configured default)")
    servers.set_defaults(func=cmd_servers)

    sites = subparsers.add_parser("sites", help="List sites")
    sites.add_argument("--driver", default=None, help="Driver name (default: configured default)")
    sites.add_argument("--server", default=None, help="Only list sites on this server")
    sites.set_defaults(func=cmd_sites)

    capabilities = subparsers.add_parser("capabilities", help="Show supported capabilities")
    capabilities.add_argument("--driver", default=None,
                              help="Driver name (default: matrix of all drivers)")
    capabilities.set_defaults(func=cmd_capabilities)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format=LOG_FORMAT,
    )

    try:
        manager = HostingManager(load_config(args.config))
    except HostingError as e:
        logger.error(f"Configuration error: {e}")
        return 2

    try:
        return args.func(manager, args)
    except HostingError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1
    finally:
        manager.close()


if __name__ == "__main__":
    sys.exit(main())
