from __future__ import annotations

"""Load batching-queue endpoint settings from YAML.

Example::

    endpoint: https://api.example.com/rpc
    max_batch_size: 50
    timeout: 10
    headers:
      X-Client: dashboard
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml


@dataclass
class QueueConfig:
    """Settings for one :class:`batchrpc.client.BatchingQueue`."""

    endpoint: str = ""
    max_batch_size: Optional[int] = None
    timeout: Optional[float] = None
    headers: dict[str, str] = field(default_factory=dict)


def load_config(path: str | Path) -> QueueConfig:
    """Parse a YAML settings file.

    Raises FileNotFoundError if the file doesn't exist.
    Raises ValueError if the document is not a mapping or lacks an endpoint.
    """
    path = Path(path)
    text = path.read_text(encoding="utf-8")

    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError(f"{path}: config is not a YAML mapping")

    endpoint = data.get("endpoint", "")
    if not isinstance(endpoint, str) or not endpoint.strip():
        raise ValueError(f"{path}: endpoint is required")

    max_batch_size = data.get("max_batch_size")
    if max_batch_size is not None:
        if isinstance(max_batch_size, bool) or not isinstance(max_batch_size, int) or max_batch_size < 1:
            raise ValueError(f"{path}: max_batch_size must be a positive integer")

    timeout = data.get("timeout")
    if timeout is not None:
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ValueError(f"{path}: timeout must be a positive number")
        timeout = float(timeout)

    headers = data.get("headers") or {}
    if not isinstance(headers, dict):
        raise ValueError(f"{path}: headers must be a mapping")

    return QueueConfig(
        endpoint=endpoint.strip(),
        max_batch_size=max_batch_size,
        timeout=timeout,
        headers={str(k): str(v) for k, v in headers.items()},
    )
