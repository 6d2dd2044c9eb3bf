"""Tests for batchrpc.config — YAML endpoint settings."""

import pytest

from batchrpc.client import BatchingQueue
from batchrpc.config import QueueConfig, load_config


def test_load_config(tmp_path):
    path = tmp_path / "rpc.yaml"
    path.write_text(
        'endpoint: "https://api.example.com/rpc"\n'
        'max_batch_size: 25\n'
        'timeout: 10\n'
        'headers:\n'
        '  X-Client: dashboard\n'
    )

    config = load_config(path)
    assert config.endpoint == "https://api.example.com/rpc"
    assert config.max_batch_size == 25
    assert config.timeout == 10.0
    assert config.headers == {"X-Client": "dashboard"}


def test_load_config_minimal(tmp_path):
    path = tmp_path / "rpc.yaml"
    path.write_text("endpoint: http://localhost:8000/rpc\n")

    config = load_config(path)
    assert config == QueueConfig(endpoint="http://localhost:8000/rpc")


def test_load_config_requires_endpoint(tmp_path):
    path = tmp_path / "rpc.yaml"
    path.write_text("max_batch_size: 5\n")

    with pytest.raises(ValueError, match="endpoint"):
        load_config(path)


def test_load_config_rejects_non_mapping(tmp_path):
    path = tmp_path / "rpc.yaml"
    path.write_text("- just\n- a list\n")

    with pytest.raises(ValueError, match="mapping"):
        load_config(path)


def test_load_config_rejects_bad_batch_size(tmp_path):
    path = tmp_path / "rpc.yaml"
    path.write_text("endpoint: http://x/rpc\nmax_batch_size: 0\n")

    with pytest.raises(ValueError, match="max_batch_size"):
        load_config(path)


def test_load_config_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.yaml")


def test_queue_from_config():
    queue = BatchingQueue.from_config(
        QueueConfig(endpoint="http://x/rpc", max_batch_size=3, headers={"X-A": "1"})
    )
    assert queue.endpoint == "http://x/rpc"
