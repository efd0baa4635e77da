"""TLS certificate hot-reloading.

The serving key pair is mounted from a Secret and rotated on disk without the
process restarting. :class:`CertReloader` is consulted on every TLS handshake
(via the SSL context's SNI callback). It stats the certificate file and, when
the modification time has moved past what it last loaded, builds a fresh
``SSLContext`` from the pair.

Concurrency:
  • The loaded state is one immutable snapshot, replaced by a single
    reference assignment, so readers see either the old pair or the new one.
  • Handshakes whose snapshot is already current take no lock.
  • The check-reload-swap sequence runs under a lock and re-checks inside it,
    so concurrent handshakes never load the same rotation twice.
  • A failed reload fails only the handshake that attempted it. The last
    good snapshot keeps serving.
"""

from __future__ import annotations

import logging
import os
import ssl
import threading
from dataclasses import dataclass

logger = logging.getLogger(__name__)


class CertificateUnavailable(OSError):
    """The certificate file cannot be stat'd."""


class CertificateLoadError(OSError):
    """The key pair on disk cannot be read or parsed."""


@dataclass(frozen=True)
class _Snapshot:
    context: ssl.SSLContext
    mtime_ns: int


def load_server_context(cert_path: str, key_path: str) -> ssl.SSLContext:
    """Build a TLS 1.2+ server context for the given key pair."""
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_SERVER)
    context.minimum_version = ssl.TLSVersion.TLSv1_2
    try:
        context.load_cert_chain(cert_path, key_path)
    except (OSError, ssl.SSLError) as exc:
        raise CertificateLoadError(f"failed loading tls key pair: {exc}") from exc
    return context


class CertReloader:
    """Serve the newest key pair found at *cert_path* / *key_path*.

    Parameters
    ----------
    cert_path : str
        PEM certificate (chain). Its mtime drives reloads.
    key_path : str
        PEM private key.
    """

    def __init__(self, cert_path: str, key_path: str) -> None:
        self.cert_path = cert_path
        self.key_path = key_path
        self._snapshot: _Snapshot | None = None
        self._lock = threading.Lock()

    @property
    def loaded(self) -> bool:
        return self._snapshot is not None

    @property
    def cached_mtime_ns(self) -> int | None:
        snapshot = self._snapshot
        return snapshot.mtime_ns if snapshot else None

    def _stat_mtime_ns(self) -> int:
        try:
            return os.stat(self.cert_path).st_mtime_ns
        except OSError as exc:
            raise CertificateUnavailable(
                f"failed checking cert file modification time: {exc}"
            ) from exc

    @staticmethod
    def _is_current(snapshot: _Snapshot | None, mtime_ns: int) -> bool:
        return snapshot is not None and mtime_ns <= snapshot.mtime_ns

    def get_context(self) -> ssl.SSLContext:
        """Return the SSL context for the current key pair, reloading if it changed.

        Raises ``CertificateUnavailable`` if the certificate cannot be stat'd
        and ``CertificateLoadError`` if a changed pair cannot be loaded. In
        both cases the previously loaded pair stays cached.
        """
        mtime_ns = self._stat_mtime_ns()

        snapshot = self._snapshot
        if self._is_current(snapshot, mtime_ns):
            return snapshot.context

        with self._lock:
            # Another handshake may have finished the reload while we waited.
            snapshot = self._snapshot
            if self._is_current(snapshot, mtime_ns):
                return snapshot.context

            context = load_server_context(self.cert_path, self.key_path)
            self._snapshot = _Snapshot(context=context, mtime_ns=mtime_ns)
            logger.info("TLS certificate loaded from %s", self.cert_path)
            return context

    def sni_callback(
        self,
        ssl_object: ssl.SSLObject | ssl.SSLSocket,
        server_name: str | None,
        initial_context: ssl.SSLContext,
    ) -> int | None:
        """``SSLContext.sni_callback`` hook: switch the handshake to the current pair."""
        try:
            ssl_object.context = self.get_context()
        except (CertificateUnavailable, CertificateLoadError) as exc:
            logger.error("TLS handshake rejected: %s", exc)
            return ssl.ALERT_DESCRIPTION_INTERNAL_ERROR
        return None

    def server_context(self) -> ssl.SSLContext:
        """Initial context for the listening socket, wired to reload on every handshake.

        Loads the pair once up front so a broken mount fails at startup.
        """
        context = load_server_context(self.cert_path, self.key_path)
        context.sni_callback = self.sni_callback
        self.get_context()
        return context
