"""Tests for the file provider: target resolution, initial delivery and watching."""

import asyncio
import os

import pytest

from conftest import ROUTER_R1, ROUTERS_R1_R2
from file_provider.channel import ConfigurationChannel
from file_provider.config.template import TemplateRenderer
from file_provider.errors import BuildError, DirectoryReadError, NoTargetError, WatchSetupError
from file_provider.models import ProviderSettings
from file_provider.pool import TaskPool
from file_provider.provider import FileProvider


def replace_atomically(path, content, staging_dir):
    """Write content through a rename so no reader sees a partial file."""
    staging_dir.mkdir(exist_ok=True)
    staged = staging_dir / path.name
    staged.write_text(content)
    os.replace(staged, path)


async def receive_until(channel, predicate, timeout=5.0):
    """Receive messages until one matches, returning everything received."""
    received = []

    async def _loop():
        while True:
            message = await channel.receive()
            received.append(message)
            if predicate(message):
                return

    await asyncio.wait_for(_loop(), timeout=timeout)
    return received


class TestBuildConfiguration:
    """Target precedence and build entry points."""

    def test_no_target(self):
        provider = FileProvider(ProviderSettings())

        with pytest.raises(NoTargetError):
            provider.build_configuration()

    def test_directory_takes_precedence(self, config_dir, tmp_path, write_file):
        write_file(config_dir / "a.toml", ROUTER_R1)
        single = write_file(tmp_path / "single.toml", ROUTERS_R1_R2)

        provider = FileProvider(ProviderSettings(directory=str(config_dir), filename=str(single)))

        assert set(provider.build_configuration().routers) == {"r1"}

    def test_filename_takes_precedence_over_fallback(self, tmp_path, write_file):
        filename = write_file(tmp_path / "dynamic.toml", ROUTERS_R1_R2)
        fallback = write_file(tmp_path / "static.toml", ROUTER_R1)

        provider = FileProvider(ProviderSettings(filename=str(filename), fallback_file=str(fallback)))

        assert set(provider.build_configuration().routers) == {"r1", "r2"}

    def test_filename_is_template_rendered(self, tmp_path, write_file):
        filename = write_file(tmp_path / "dynamic.toml", '[routers.r1]\nservice = "{{ backend() }}"\n')
        renderer = TemplateRenderer(functions={"backend": lambda: "rendered"})

        provider = FileProvider(ProviderSettings(filename=str(filename)), renderer=renderer)

        assert provider.build_configuration().routers["r1"].service == "rendered"

    def test_fallback_file_is_not_rendered(self, tmp_path, write_file):
        fallback = write_file(tmp_path / "static.toml", '[routers.r1]\nservice = "{{ literal }}"\n')

        provider = FileProvider(ProviderSettings(fallback_file=str(fallback)))

        assert provider.build_configuration().routers["r1"].service == "{{ literal }}"

    def test_missing_directory(self, tmp_path):
        provider = FileProvider(ProviderSettings(directory=str(tmp_path / "missing")))

        with pytest.raises(DirectoryReadError):
            provider.build_configuration()


class TestProvide:
    """Initial delivery and startup failures."""

    @pytest.mark.asyncio
    async def test_sends_initial_configuration(self, tmp_path, write_file):
        filename = write_file(tmp_path / "dynamic.toml", ROUTER_R1)
        provider = FileProvider(ProviderSettings(filename=str(filename)))
        channel = ConfigurationChannel(10)
        pool = TaskPool()

        await provider.provide(channel, pool)

        assert channel.qsize() == 1
        message = await channel.receive()
        assert message.provider_name == "file"
        assert set(message.configuration.routers) == {"r1"}
        assert pool.running == 0
        assert provider.watcher is None

    @pytest.mark.asyncio
    async def test_no_target_sends_nothing(self):
        provider = FileProvider(ProviderSettings(watch=True))
        channel = ConfigurationChannel(10)
        pool = TaskPool()

        with pytest.raises(NoTargetError):
            await provider.provide(channel, pool)

        assert channel.empty()
        assert pool.running == 0

    @pytest.mark.asyncio
    async def test_initial_build_failure_sends_nothing(self, tmp_path, write_file):
        filename = write_file(tmp_path / "dynamic.toml", "[routers.r1\n")
        provider = FileProvider(ProviderSettings(filename=str(filename), watch=True))
        channel = ConfigurationChannel(10)
        pool = TaskPool()

        with pytest.raises(BuildError):
            await provider.provide(channel, pool)

        assert channel.empty()
        assert pool.running == 0

    @pytest.mark.asyncio
    async def test_watch_setup_failure_is_fatal(self, tmp_path, write_file):
        class BrokenObserver:
            def schedule(self, *args, **kwargs):
                pass

            def start(self):
                raise OSError("no inotify instances left")

        filename = write_file(tmp_path / "dynamic.toml", ROUTER_R1)
        provider = FileProvider(
            ProviderSettings(filename=str(filename), watch=True),
            observer_factory=BrokenObserver
        )
        channel = ConfigurationChannel(10)
        pool = TaskPool()

        with pytest.raises(WatchSetupError):
            await provider.provide(channel, pool)

        assert channel.empty()
        assert pool.running == 0


class TestWatch:
    """Redelivery on real filesystem changes."""

    @pytest.mark.asyncio
    async def test_single_file_change_is_redelivered(self, tmp_path, write_file, polling_observer):
        """
        A real observer may report one replace as several events, so any
        number of follow-up messages is accepted here as long as each one
        carries the new content. Exactly one message per event is covered
        in test_file_watcher with a scripted subscription.
        """
        watched = tmp_path / "watched"
        filename = write_file(watched / "dynamic.toml", ROUTER_R1)
        provider = FileProvider(
            ProviderSettings(filename=str(filename), watch=True),
            observer_factory=polling_observer
        )
        channel = ConfigurationChannel(10)
        pool = TaskPool()

        try:
            await provider.provide(channel, pool)
            first = await asyncio.wait_for(channel.receive(), timeout=2)
            assert set(first.configuration.routers) == {"r1"}
            assert pool.running == 1

            replace_atomically(filename, ROUTERS_R1_R2, tmp_path / "staging")
            received = await receive_until(
                channel, lambda m: set(m.configuration.routers) == {"r1", "r2"}
            )
        finally:
            await pool.stop()

        assert all(set(m.configuration.routers) == {"r1", "r2"} for m in received)
        # Earlier message is untouched
        assert set(first.configuration.routers) == {"r1"}
        assert provider.watcher.subscription.is_open is False

    @pytest.mark.asyncio
    async def test_sibling_file_change_is_ignored(self, tmp_path, write_file, polling_observer):
        watched = tmp_path / "watched"
        filename = write_file(watched / "dynamic.toml", ROUTER_R1)
        provider = FileProvider(
            ProviderSettings(filename=str(filename), watch=True),
            observer_factory=polling_observer
        )
        channel = ConfigurationChannel(10)
        pool = TaskPool()

        try:
            await provider.provide(channel, pool)
            await channel.receive()

            write_file(watched / "unrelated.toml", ROUTERS_R1_R2)
            await asyncio.sleep(0.5)

            assert channel.empty()
            assert provider.watcher.rebuild_count == 0
        finally:
            await pool.stop()

    @pytest.mark.asyncio
    async def test_directory_change_is_redelivered(self, config_dir, tmp_path, write_file, polling_observer):
        write_file(config_dir / "10-base.toml", ROUTER_R1)
        (config_dir / "sub").mkdir()
        provider = FileProvider(
            ProviderSettings(directory=str(config_dir), watch=True),
            observer_factory=polling_observer
        )
        channel = ConfigurationChannel(10)
        pool = TaskPool()

        try:
            await provider.provide(channel, pool)
            first = await asyncio.wait_for(channel.receive(), timeout=2)
            assert set(first.configuration.routers) == {"r1"}

            replace_atomically(
                config_dir / "sub" / "20-new.toml",
                '[routers.r3]\nservice = "s3"\n',
                tmp_path / "staging"
            )
            await receive_until(channel, lambda m: "r3" in m.configuration.routers)
        finally:
            await pool.stop()

    @pytest.mark.asyncio
    async def test_broken_edit_keeps_watching(self, tmp_path, write_file, polling_observer, wait_until):
        watched = tmp_path / "watched"
        filename = write_file(watched / "dynamic.toml", ROUTER_R1)
        provider = FileProvider(
            ProviderSettings(filename=str(filename), watch=True),
            observer_factory=polling_observer
        )
        channel = ConfigurationChannel(10)
        pool = TaskPool()

        try:
            await provider.provide(channel, pool)
            await channel.receive()

            replace_atomically(filename, "[routers.r1\n", tmp_path / "staging")
            await wait_until(lambda: provider.watcher.failed_rebuild_count >= 1, timeout=5)
            assert channel.empty()

            replace_atomically(filename, ROUTERS_R1_R2, tmp_path / "staging")
            await receive_until(channel, lambda m: set(m.configuration.routers) == {"r1", "r2"})
        finally:
            await pool.stop()
