"""Pytest configuration and fixtures for integration tests against a real PocketBase."""

import asyncio
import contextlib
import logging
import os
import shutil
import subprocess
import tempfile
import time
import uuid
from collections.abc import Generator

import pytest
from pocketbase import PocketBase

from src.core.schema import sync_schema


logger = logging.getLogger(__name__)

PB_URL = "http://127.0.0.1:8091"
ADMIN_EMAIL = "admin@test.local"
ADMIN_PASSWORD = "testpassword123"
USER_PASSWORD = "test_password"


@pytest.fixture(scope="session")
def pocketbase_server() -> Generator[str]:
    """Start ephemeral PocketBase instance for testing."""
    pb_binary = shutil.which("pocketbase")
    if pb_binary is None:
        pytest.skip("PocketBase binary not found in PATH")

    pb_data_dir = tempfile.mkdtemp(prefix="pb_test_")

    # Code-first schema (src/core/schema.py); keep PocketBase from picking up stray migrations
    process = subprocess.Popen(
        [
            pb_binary,
            "serve",
            "--dir",
            pb_data_dir,
            "--http",
            "127.0.0.1:8091",
            "--automigrate=false",
            f"--migrationsDir={pb_data_dir}/migrations",
        ],
        stdout=subprocess.PIPE,
        stderr=subprocess.PIPE,
    )

    max_wait = 10  # seconds
    start_time = time.time()
    while time.time() - start_time < max_wait:
        try:
            PocketBase(PB_URL).health.check()
            break
        except Exception:
            time.sleep(0.5)
    else:
        stdout, stderr = b"", b""
        with contextlib.suppress(Exception):
            stdout, stderr = process.communicate(timeout=1)
        process.kill()
        shutil.rmtree(pb_data_dir, ignore_errors=True)
        pytest.fail(
            f"PocketBase failed to start within {max_wait} seconds\n"
            f"Stdout: {stdout.decode()[:500]}\nStderr: {stderr.decode()[:500]}"
        )

    try:
        # Set BROWSER to empty string to prevent PocketBase from opening a browser
        env = {"BROWSER": "", **os.environ}
        subprocess.run(
            [pb_binary, "superuser", "upsert", ADMIN_EMAIL, ADMIN_PASSWORD, "--dir", pb_data_dir],
            check=True,
            capture_output=True,
            text=True,
            env=env,
        )
        time.sleep(1)
    except subprocess.CalledProcessError as e:
        logger.error(f"Failed to create admin user: {e.stderr}")
        process.kill()
        shutil.rmtree(pb_data_dir, ignore_errors=True)
        pytest.fail(f"Failed to create admin user: {e.stderr}")

    yield PB_URL

    process.kill()
    process.wait()
    shutil.rmtree(pb_data_dir, ignore_errors=True)


@pytest.fixture(scope="session")
def admin_client(pocketbase_server: str) -> PocketBase:
    """Sync the ledger collections and return an admin-authenticated client."""
    asyncio.run(
        sync_schema(pocketbase_url=pocketbase_server, admin_email=ADMIN_EMAIL, admin_password=ADMIN_PASSWORD)
    )
    client = PocketBase(pocketbase_server)
    client.admins.auth_with_password(ADMIN_EMAIL, ADMIN_PASSWORD)
    return client


@pytest.fixture
def user_factory(admin_client: PocketBase):
    """Factory for users in the PocketBase users collection.

    Usage:
        user = user_factory(name="Ana")
    """

    def _create_user(**kwargs) -> dict:
        user_data = {
            "email": kwargs.get("email", f"user_{uuid.uuid4().hex[:8]}@test.local"),
            "name": kwargs.get("name", f"User {uuid.uuid4().hex[:8]}"),
            "password": USER_PASSWORD,
            "passwordConfirm": USER_PASSWORD,
        }
        record = admin_client.collection("users").create(user_data)
        return {**record.__dict__, "email": user_data["email"]}

    return _create_user


@pytest.fixture
def user_client(pocketbase_server: str) -> PocketBase:
    """An unauthenticated client that tests sign in through the auth provider."""
    return PocketBase(pocketbase_server)
