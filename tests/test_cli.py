"""
Tests for the cache-bench command line and backend factory.

Run with: python -m pytest tests/test_cli.py -v
"""

import json
import socket

import pytest

from cache_bench import cli
from cache_bench.backends import (
    HttpCacheClient,
    LineProtocolClient,
    LineProtocolPool,
    ManagedCacheClient,
    create_backend,
)
from cache_bench.benchmark.models import Operation
from cache_bench.config.settings import settings


def closed_port() -> int:
    """Return a port with nothing listening on it."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


class TestParseArgs:
    """Test argument parsing."""

    def test_defaults(self):
        args = cli.parse_args([])
        assert args.backend == ["line", "http"]
        assert args.operation == "both"
        assert args.mode == "sequential"
        assert args.iterations == settings.ITERATIONS
        assert args.concurrency is None
        assert args.failure_policy == "exclude"
        assert args.ttl is None
        assert args.key == settings.BENCHMARK_KEY
        assert json.loads(args.value)["Condition"] == "Sunny"

    def test_repeatable_backend(self):
        args = cli.parse_args(["-b", "line", "-b", "managed"])
        assert args.backend == ["line", "managed"]

    def test_overrides(self):
        args = cli.parse_args([
            "--mode", "concurrent", "-n", "5", "-c", "2",
            "--failure-policy", "retry-once", "--port", "7000",
        ])
        assert args.mode == "concurrent"
        assert args.iterations == 5
        assert args.concurrency == 2
        assert args.failure_policy == "retry-once"
        assert args.port == 7000

    @pytest.mark.parametrize("argv", [
        ["-n", "0"],
        ["-c", "0"],
        ["--backend", "memcached"],
        ["--mode", "parallel"],
        ["--ttl", "0"],
        ["--key", "two words"],
        ["-b", "line-pool", "--key", ""],
        ["-b", "line", "--value", "multi\nline"],
    ])
    def test_rejects(self, argv):
        with pytest.raises(SystemExit):
            cli.parse_args(argv)

    def test_http_only_accepts_any_key(self):
        args = cli.parse_args(["-b", "http", "--key", "two words"])
        assert args.key == "two words"

    def test_invalid_key_exits_without_traceback(self, capsys):
        with pytest.raises(SystemExit) as excinfo:
            cli.main(["-b", "line", "--key", "two words"])
        assert excinfo.value.code == 2
        assert "whitespace" in capsys.readouterr().err


class TestHelpers:
    """Test small CLI helpers."""

    @pytest.mark.parametrize("choice,expected", [
        ("both", [Operation.SET, Operation.GET]),
        ("get", [Operation.GET]),
        ("set", [Operation.SET]),
    ])
    def test_selected_operations(self, choice, expected):
        assert cli.selected_operations(choice) == expected

    def test_settings_from_args(self):
        args = cli.parse_args(["--host", "cache.local", "--port", "7001", "--pool-size", "3"])
        cfg = cli.settings_from_args(args)
        assert cfg.HOST == "cache.local"
        assert cfg.PORT == 7001
        assert cfg.POOL_SIZE == 3
        assert settings.HOST != "cache.local"


class TestCreateBackend:
    """Test the backend factory."""

    @pytest.mark.parametrize("kind,cls", [
        ("line", LineProtocolClient),
        ("line-pool", LineProtocolPool),
        ("http", HttpCacheClient),
        ("managed", ManagedCacheClient),
    ])
    def test_kinds(self, kind, cls):
        backend = create_backend(kind)
        assert isinstance(backend, cls)
        assert backend.name == kind

    def test_unknown(self):
        with pytest.raises(ValueError):
            create_backend("memcached")


@pytest.mark.asyncio
class TestRunBenchmark:
    """Test the benchmark pipeline against the reference server."""

    async def test_line_backend(self, server, server_port):
        args = cli.parse_args([
            "-b", "line", "--port", str(server_port), "--host", "127.0.0.1",
            "-n", "5", "--value", "sunny-25",
        ])
        report = await cli.run_benchmark(args)

        assert report.backends == ["line"]
        assert report.cell("line", Operation.SET).stats.count == 5
        assert report.cell("line", Operation.GET).stats.count == 5
        assert server.store.get(settings.BENCHMARK_KEY) == "sunny-25"

    async def test_duplicate_backends_collapse(self, server, server_port):
        args = cli.parse_args([
            "-b", "line", "-b", "line", "--port", str(server_port),
            "--host", "127.0.0.1", "-n", "2", "--operation", "set",
        ])
        report = await cli.run_benchmark(args)
        assert len(report.cells) == 1


class TestMain:
    """Test the entry point exit codes."""

    def test_unreachable_backend_is_excluded(self, capsys, tmp_path):
        output = tmp_path / "results.json"
        code = cli.main([
            "-b", "line", "--host", "127.0.0.1", "--port", str(closed_port()),
            "-n", "2", "-o", str(output),
        ])

        assert code == 0
        assert "n/a" in capsys.readouterr().out
        data = json.loads(output.read_text())
        assert data["results"]["line"]["set"]["failed"] == 2
        assert data["results"]["line"]["set"]["stats"] is None

    def test_abort_policy_fails_run(self):
        code = cli.main([
            "-b", "line", "--host", "127.0.0.1", "--port", str(closed_port()),
            "-n", "2", "--failure-policy", "abort",
        ])
        assert code == 1
