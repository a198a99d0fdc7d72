"""Constants shared across the patcher update modules."""

from __future__ import annotations

DEFAULT_PATCH_SERVER_URL = "http://127.0.0.1:3000/bns-patch"

VERSION_DOCUMENT_NAME = "Version.ini"
VERSION_SECTION = "Version"
DOWNLOAD_SECTION = "Download"
PRODUCT_VERSION_KEY = "ProductVersion"
DOWNLOAD_VERSION_KEY = "Version"
DB_FILE_KEY = "DB file"
PRODUCT_VERSION_SEPARATOR = " v "
UNKNOWN_VERSION_TEXT = "Unknown"

SNAPSHOT_NAME_TEMPLATE = "server.db.{version}"
COMPRESSED_SUFFIX = ".cab"
SNAPSHOT_REMOTE_TEMPLATE = "db/server.db.{version}.cab"
PATCH_REMOTE_TEMPLATE = "patch/{file_id}-{version}.cab"
COMMIT_SNAPSHOT_NAME = "server.db"

DEFAULT_SETTLE_DELAY = 3.0
DEFAULT_PROGRESS_INTERVAL = 0.1
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY = 1.0
DEFAULT_REQUEST_TIMEOUT = 60.0
DEFAULT_CHUNK_SIZE = 128 * 1024

DEFAULT_CODEC_BINARY = "elzma"

SERVER_URL_ENV = "PATCHER_SERVER_URL"
CLIENT_DIR_ENV = "PATCHER_CLIENT_DIR"
VERSION_FILE_ENV = "PATCHER_VERSION_FILE"
TEMP_DIR_ENV = "PATCHER_TEMP_DIR"
