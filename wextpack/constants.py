IGNORE_FILE_NAME = ".wextignore"
MANIFEST_FILE_NAME = "manifest.json"
LOCALES_DIR_NAME = "_locales"
MESSAGES_FILE_NAME = "messages.json"
CONFIG_FILE_NAME = "wextpack.yml"

ARCHIVE_SUFFIX = ".zip"
DEFAULT_ARTIFACTS_DIR = "web-ext-artifacts"

# Resolved against the source dir, so they apply at any depth.
DEFAULT_IGNORED_PATTERNS = [
    "**/*.xpi",
    "**/*.zip",
    "**/.*",  # any hidden file and folder
    "**/.*/**/*",  # and the content inside hidden folders
    "**/node_modules",
    "**/node_modules/**/*",
]

# Seconds between two polls of the source tree in watch mode.
DEFAULT_POLL_INTERVAL = 1.0
# Change batches closer together than this are folded into one rebuild.
DEFAULT_DEBOUNCE = 0.5
