"""Pytest configuration shared by unit and integration tests."""

import os


# Keep tests independent of a developer's .env and of Logfire credentials
os.environ["STORAGE_BACKEND"] = "local"
os.environ.pop("LOGFIRE_TOKEN", None)
