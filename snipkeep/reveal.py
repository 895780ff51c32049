"""Session-scoped unlock state for hidden snippets.

A hidden snippet starts locked. Unlocking asks for the passphrase, checks it
against the stored one, decrypts through the crypto gateway when the content is
ciphertext, then caches the plaintext until the snippet is locked again.
Copy and download use a parallel one-shot path that decrypts for that action
only and leaves the session state untouched.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from dataclasses import dataclass, field

from .crypto_gateway import CryptoGateway
from .dialogs import Dialogs
from .errors import AuthorizationError, CryptoError, NotFoundError, OperationCancelled
from .session import SessionContext
from .store import Snippet, normalize_id
from .sync.remote import RemoteStoreClient

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RevealView:
    unlocked: frozenset[int] = frozenset()
    plaintext: Mapping[int, str] = field(default_factory=dict)

    def is_unlocked(self, snippet_id: int) -> bool:
        return snippet_id in self.unlocked

    def plaintext_for(self, snippet_id: int) -> str | None:
        return self.plaintext.get(snippet_id)


class RevealEngine:
    def __init__(
        self,
        session: SessionContext,
        gateway: CryptoGateway,
        remote: RemoteStoreClient,
        dialogs: Dialogs,
    ) -> None:
        self._session = session
        self._gateway = gateway
        self._remote = remote
        self._dialogs = dialogs
        self._lock = threading.Lock()
        self._unlocked: set[int] = set()
        self._plaintext: dict[int, str] = {}

    def view(self) -> RevealView:
        with self._lock:
            return RevealView(unlocked=frozenset(self._unlocked), plaintext=dict(self._plaintext))

    def is_unlocked(self, snippet_id: object) -> bool:
        key = normalize_id(snippet_id)
        with self._lock:
            return key in self._unlocked

    def cached_plaintext(self, snippet_id: object) -> str | None:
        key = normalize_id(snippet_id)
        with self._lock:
            return self._plaintext.get(key)

    def unlock(self, snippet_id: object) -> str | None:
        """Reveal a hidden snippet for the rest of the session.

        Returns the readable content (decrypted when needed). Raises
        ``OperationCancelled`` when the prompt is dismissed, and
        ``AuthorizationError`` / ``CryptoError`` without touching any state.
        """
        snippet = self._require(snippet_id)
        if not snippet.hidden:
            return snippet.content
        viewing = self._session.viewing
        # The hold must be in place before the active mark drops.
        with viewing.viewing(snippet.id):
            password = self.authorize(
                snippet,
                "Enter password to view content:",
                "Incorrect password! Content remains hidden.",
            )
            plaintext = self.cached_plaintext(snippet.id)
            if snippet.is_encrypted and plaintext is None:
                plaintext = self._decrypt(snippet, password)
            with self._lock:
                self._unlocked.add(snippet.id)
                if plaintext is not None:
                    self._plaintext[snippet.id] = plaintext
            viewing.hold(snippet.id)
        logger.debug("unlocked snippet %s", snippet.id)
        return plaintext if plaintext is not None else snippet.content

    def lock(self, snippet_id: object) -> None:
        self.forget(snippet_id)
        self._session.viewing.release(snippet_id)

    def forget(self, snippet_id: object) -> None:
        key = normalize_id(snippet_id)
        with self._lock:
            self._unlocked.discard(key)
            self._plaintext.pop(key, None)

    def authorize_export(self, snippet_id: object, verb: str) -> str | None:
        """Gate a copy/download.

        Returns decrypted content for encrypted snippets, or None when the
        caller may read the stored (unencrypted) content itself.
        """
        snippet = self._require(snippet_id)
        cached = self.cached_plaintext(snippet.id)
        if cached is not None:
            return cached
        needs_password = snippet.is_encrypted or (
            snippet.hidden and not self.is_unlocked(snippet.id)
        )
        if not needs_password:
            return None
        with self._session.viewing.viewing(snippet.id):
            password = self.authorize(
                snippet,
                f"Enter password to {verb}:",
                f"Incorrect password! Cannot {verb} content.",
            )
            if not snippet.is_encrypted:
                return None
            return self._decrypt(snippet, password)

    def _require(self, snippet_id: object) -> Snippet:
        snippet = self._session.store.find_by_id(snippet_id)
        if snippet is None:
            raise NotFoundError("Snippet not found!")
        return snippet

    def authorize(self, snippet: Snippet, prompt: str, rejection: str) -> str:
        entered = self._dialogs.prompt_password(prompt)
        if entered is None:
            raise OperationCancelled()
        # Local equality check only; the gateway call is the real boundary.
        if entered != snippet.password:
            raise AuthorizationError(rejection)
        return entered

    def _ciphertext(self, snippet: Snippet) -> str:
        if snippet.content:
            return snippet.content
        if snippet.storage_path:
            self._dialogs.notify("Downloading encrypted file...")
            return self._remote.get_raw_content(snippet.id)
        raise CryptoError("No encrypted content found")

    def _decrypt(self, snippet: Snippet, password: str) -> str:
        plaintext = self._gateway.decrypt(self._ciphertext(snippet), password)
        if plaintext is None:
            raise CryptoError("Failed to decrypt! Incorrect password or corrupted data.")
        return plaintext
