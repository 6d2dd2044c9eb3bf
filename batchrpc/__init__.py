"""batchrpc — batched JSON-RPC 2.0 over HTTP."""

from . import errors
from . import protocol
from . import registry
from . import dispatcher
from . import config
from . import client
from . import app

__all__ = ["errors", "protocol", "registry", "dispatcher", "config", "client", "app"]
