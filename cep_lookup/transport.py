"""requests transport whose sockets are torn down when a race is cancelled.

Session.close() only drops idle pooled connections; the one an in-flight
request has checked out stays open until the server answers. Here every
connection a pool creates is registered with the CancelToken, and cancel()
shuts its socket down, which wakes a recv blocked in another thread.
"""

import logging
import socket

import requests
from requests.adapters import HTTPAdapter
from urllib3.connectionpool import HTTPConnectionPool, HTTPSConnectionPool
from urllib3.poolmanager import PoolManager

from .cancel import CancelToken

logger = logging.getLogger(__name__)


class ConnectionCloser:
    """Cancel-time handle on one urllib3 connection."""

    def __init__(self, conn):
        self.conn = conn

    def close(self):
        sock = getattr(self.conn, "sock", None)
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError as e:
                # Already disconnected
                logger.debug(f"Socket shutdown on cancel: {e}")
        self.conn.close()


class _CancellablePoolMixin:
    cancel_token = None

    def _new_conn(self):
        conn = super()._new_conn()
        if self.cancel_token is not None:
            self.cancel_token.register(ConnectionCloser(conn))
        return conn


class CancellableHTTPConnectionPool(_CancellablePoolMixin, HTTPConnectionPool):
    pass


class CancellableHTTPSConnectionPool(_CancellablePoolMixin, HTTPSConnectionPool):
    pass


class CancellablePoolManager(PoolManager):
    def __init__(self, cancel_token: CancelToken, **kwargs):
        super().__init__(**kwargs)
        self.cancel_token = cancel_token
        self.pool_classes_by_scheme = {
            "http": CancellableHTTPConnectionPool,
            "https": CancellableHTTPSConnectionPool,
        }

    def _new_pool(self, scheme, host, port, request_context=None):
        pool = super()._new_pool(scheme, host, port, request_context)
        pool.cancel_token = self.cancel_token
        return pool


class CancellableHTTPAdapter(HTTPAdapter):
    """HTTPAdapter bound to one CancelToken; mount it on a per-lookup Session."""

    def __init__(self, cancel_token: CancelToken, **kwargs):
        # HTTPAdapter.__init__ calls init_poolmanager, which needs the token
        self.cancel_token = cancel_token
        super().__init__(**kwargs)

    def init_poolmanager(self, connections, maxsize, block=False, **pool_kwargs):
        self._pool_connections = connections
        self._pool_maxsize = maxsize
        self._pool_block = block
        self.poolmanager = CancellablePoolManager(
            self.cancel_token,
            num_pools=connections,
            maxsize=maxsize,
            block=block,
            **pool_kwargs,
        )


def cancellable_session(token: CancelToken):
    """A requests.Session whose connections (and itself) close on token.cancel()."""
    session = requests.Session()
    adapter = CancellableHTTPAdapter(token)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    return token.register(session)
