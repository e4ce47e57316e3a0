"""depinstall: install a package's dependency tree from an npm registry.

Thin command-line host around ``installer.DependenciesInstaller``: it loads
configuration, prints progress messages and maps failures to exit codes.
"""

from __future__ import annotations

import asyncio
import logging
import os
import sys

from args import parse_args
from cli_config import apply_cli_overrides, apply_config, apply_env_overrides, load_config
from common.errors import CancellationError, InstallError, NetworkError
from common.logging_utils import configure_logging, extra_context, is_debug_enabled
from constants import Constants, ExitCodes
from installer import DependenciesInstaller

logger = logging.getLogger(__name__)


def run_install(args) -> int:
    """Run the install command and return a process exit code."""
    apply_config(load_config(getattr(args, "CONFIG", None)))
    apply_env_overrides()
    apply_cli_overrides(args)

    directory = os.path.abspath(args.directory)
    if not os.path.isdir(directory):
        logger.error("Directory not found: %s", directory)
        return ExitCodes.FILE_ERROR.value

    installer = DependenciesInstaller(
        registry=Constants.REGISTRY_URL_NPM,
        modules_root=os.path.abspath(args.MODULES_ROOT or directory),
        on_message=print,
        timeout=Constants.REQUEST_TIMEOUT,
    )
    try:
        asyncio.run(installer.install_dependencies(directory))
    except KeyboardInterrupt:
        installer.cancel()
        logger.error("Install interrupted")
        return ExitCodes.CANCELLED.value
    except CancellationError as exc:
        logger.error("%s", exc)
        return ExitCodes.CANCELLED.value
    except NetworkError as exc:
        logger.error("Network failure: %s", exc)
        return ExitCodes.CONNECTION_ERROR.value
    except InstallError as exc:
        logger.error("Install failed: %s", exc)
        return ExitCodes.INSTALL_ERROR.value
    return ExitCodes.SUCCESS.value


def main(argv=None) -> None:
    """Main function of the program."""
    args = parse_args(argv)
    if getattr(args, "LOG_LEVEL", None):
        os.environ[Constants.LOG_LEVEL_ENV] = str(args.LOG_LEVEL).upper()
    configure_logging()

    if is_debug_enabled(logger):
        logger.debug(
            "CLI start",
            extra=extra_context(event="function_entry", component="cli", action="main")
        )

    if args.command == "install":
        sys.exit(run_install(args))
    sys.exit(ExitCodes.FILE_ERROR.value)


if __name__ == "__main__":
    main()
