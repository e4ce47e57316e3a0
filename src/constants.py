"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    FILE_ERROR = 1
    CONNECTION_ERROR = 2
    INSTALL_ERROR = 3
    CANCELLED = 130


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    REGISTRY_URL_NPM = "https://registry.npmjs.org/"
    REGISTRY_URL_YARN = "https://registry.yarnpkg.com/"
    REGISTRY_URL_MIRROR = "https://registry.npmmirror.com/"
    WELL_KNOWN_REGISTRY_HOSTS = ("registry.npmjs.org", "registry.yarnpkg.com")

    PACKAGE_JSON_FILE = "package.json"
    MODULES_DIR = "node_modules"
    CACHE_DIR = ".cache"
    # Manifest entry naming the host application itself; never installed.
    HOST_PACKAGE_NAME = "depinstall"

    LOG_FORMAT = "[%(levelname)s] %(message)s"
    LOG_LEVEL_ENV = "DEPINSTALL_LOG_LEVEL"
    REGISTRY_ENV = "DEPINSTALL_REGISTRY"
    TIMEOUT_ENV = "DEPINSTALL_TIMEOUT"

    REQUEST_TIMEOUT = 30  # Per-attempt timeout in seconds for metadata requests
    DOWNLOAD_TIMEOUT = 120  # Per-attempt timeout in seconds for tarballs
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.1
    DOWNLOAD_RETRY_MAX = 3
    DOWNLOAD_CONCURRENCY = 8
    DOWNLOAD_CHUNK_SIZE = 64 * 1024
    ARCHIVE_STRIP_LEVEL = 1
    USER_AGENT = "depinstall/0.1"
