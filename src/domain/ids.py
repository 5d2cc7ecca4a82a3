"""Record ID generation."""

import secrets
import string

from src.core.config import constants


_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_record_id() -> str:
    """Generate a random 15-character lowercase alphanumeric ID.

    PocketBase only accepts client-supplied IDs of this shape, so the same
    format is used for every backend.
    """
    return "".join(secrets.choice(_ID_ALPHABET) for _ in range(constants.RECORD_ID_LENGTH))
