from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from .constants import LOCALES_DIR_NAME, MESSAGES_FILE_NAME
from .errors import UsageError

log = logging.getLogger(__name__)

_MESSAGE_TOKEN_RE = re.compile(r"__MSG_([A-Za-z0-9@_]+?)__")


def default_messages_file(source_dir: str | Path, locale: str) -> Path:
    return Path(source_dir) / LOCALES_DIR_NAME / locale / MESSAGES_FILE_NAME


def load_message_catalog(message_file: str | Path) -> dict:
    """Read and decode a `_locales/<locale>/messages.json` file."""
    message_file = Path(message_file)
    try:
        blob = message_file.read_bytes()
    except OSError as e:
        raise UsageError(f"Error reading messages.json file at {message_file}: {e}") from e

    try:
        data = json.loads(blob.decode("utf-8-sig"))
    except ValueError as e:
        raise UsageError(f"Error parsing messages.json {message_file}: {e}") from e

    if not isinstance(data, dict):
        raise UsageError(
            f"Error parsing messages.json {message_file}: expected an object at the top level"
        )
    return data


def get_default_localized_name(message_file: str | Path, manifest_data: dict) -> str:
    """
    Substitute every `__MSG_<key>__` token in the manifest name.

    The catalog is read and parsed even when the name has no tokens, so a
    broken locale file fails the build either way. One missing key aborts the
    whole substitution.
    """
    message_data = load_message_catalog(message_file)

    def _substitute(match: re.Match) -> str:
        key = match.group(1)
        entry = message_data.get(key)
        message = entry.get("message") if isinstance(entry, dict) else None
        if not message:
            raise UsageError(f"The locale file {message_file} is missing key: {key}")
        return str(message)

    name = _MESSAGE_TOKEN_RE.sub(_substitute, manifest_data["name"])
    log.debug("Localized extension name: %s", name)
    return name
