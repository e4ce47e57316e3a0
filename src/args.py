"""Argument parsing functionality for depinstall."""

import argparse


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    parser = argparse.ArgumentParser(
        prog="depinstall",
        description="depinstall - resolve, fetch and lay out npm dependencies",
        add_help=True,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    install = subparsers.add_parser(
        "install",
        help="Install the dependencies listed in DIR/package.json into DIR/node_modules",
    )
    install.add_argument("directory",
                         help="Directory containing package.json",
                         type=str)
    install.add_argument("-r", "--registry",
                         dest="REGISTRY",
                         help="Primary registry URL",
                         action="store", type=str)
    install.add_argument("-m", "--modules-root",
                         dest="MODULES_ROOT",
                         help="Directory holding the shared tarball cache (default: DIR)",
                         action="store", type=str)
    install.add_argument("-c", "--config",
                         dest="CONFIG",
                         help="Path to a YAML config file",
                         action="store", type=str)
    install.add_argument("--timeout",
                         dest="TIMEOUT",
                         help="Per-attempt request timeout in seconds",
                         action="store", type=float)
    install.add_argument("--retries",
                         dest="RETRIES",
                         help="Attempts per metadata request",
                         action="store", type=int)
    install.add_argument("--loglevel",
                         dest="LOG_LEVEL",
                         help="Set the logging level",
                         action="store",
                         type=str,
                         choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
                         default="INFO")
    return parser.parse_args(argv)
