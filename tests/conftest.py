"""Pytest configuration and fixtures for file provider tests."""

import asyncio
import sys
from pathlib import Path
from typing import Callable

import pytest
from watchdog.observers.polling import PollingObserver

# Allow running the suite from a checkout without installing the package
package_root = Path(__file__).parent.parent
if str(package_root) not in sys.path:
    sys.path.insert(0, str(package_root))


ROUTER_R1 = """
[routers.r1]
entryPoints = ["web"]
service = "s1"
rule = "Host(`one.example.com`)"
"""

ROUTERS_R1_R2 = ROUTER_R1 + """
[routers.r2]
entryPoints = ["web"]
service = "s2"
rule = "Host(`two.example.com`)"
"""


@pytest.fixture
def write_file() -> Callable[..., Path]:
    """Write a file, creating parent directories."""
    def _write(path: Path, content: str) -> Path:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(content)
        return path
    return _write


@pytest.fixture
def config_dir(tmp_path) -> Path:
    """Empty configuration directory."""
    directory = tmp_path / "cfg"
    directory.mkdir()
    return directory


@pytest.fixture
def polling_observer():
    """Observer factory that does not depend on inotify."""
    return lambda: PollingObserver(timeout=0.1)


@pytest.fixture
def wait_until():
    """Await a condition with a deadline."""
    async def _wait(predicate: Callable[[], bool], timeout: float = 3.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("Condition not met before timeout")
            await asyncio.sleep(0.01)
    return _wait
