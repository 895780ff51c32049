from __future__ import annotations

import datetime as dt
import logging
import threading
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Any

from .config import SnipkeepConfig, update_config_file
from .crypto_gateway import CryptoGateway
from .dialogs import Dialogs, GuardedDialogs
from .errors import (
    NetworkError,
    NotFoundError,
    OperationCancelled,
    ServerError,
    SnipkeepError,
    ValidationError,
)
from .render import RenderResult, render_snippets
from .reveal import RevealEngine
from .session import SessionContext, ViewingState
from .store import ContentType, Snippet, normalize_id
from .sync.poller import LiveSyncPoller, RefreshEvent
from .sync.remote import BlobTarget, RemoteStoreClient
from .sync.save_queue import SaveCoalescer
from .utils import FilePayload, decode_data_uri, format_timestamp

logger = logging.getLogger(__name__)

DELETE_PROMPT = "Enter password to delete this snippet:"
DELETE_REJECTED = "Incorrect password! Cannot delete snippet."
DELETE_CONFIRM = "Are you sure you want to delete this snippet? This action cannot be undone."
LOAD_FILE_FAILED = "Failed to load file. Please try again."


@dataclass(frozen=True)
class ActionResult:
    ok: bool
    message: str = ""
    cancelled: bool = False
    value: Any = None


@dataclass(frozen=True)
class AddRequest:
    title: str
    password: str
    content_type: ContentType = ContentType.TEXT
    text: str | None = None
    file: FilePayload | None = None
    hidden: bool = False


@dataclass(frozen=True)
class DownloadPayload:
    file_name: str
    data: bytes
    mime_type: str | None = None


def _persist_blob_target(target: BlobTarget) -> None:
    update_config_file(
        {"blob_url": target.url, "blob_anon_key": target.anon_key, "blob_bucket": target.bucket}
    )


class SnippetService:
    """User-facing operations over one session.

    Every public operation returns an ``ActionResult``; failures and dialog
    cancellations are reported there and never raised.
    """

    def __init__(
        self,
        session: SessionContext,
        remote: RemoteStoreClient,
        gateway: CryptoGateway,
        dialogs: Dialogs,
        *,
        config: SnipkeepConfig | None = None,
        on_change: Callable[[], None] | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.session = session
        self.remote = remote
        self.gateway = gateway
        self.config = config or SnipkeepConfig()
        self.dialogs = GuardedDialogs(dialogs, session.viewing)
        self.reveal = RevealEngine(session, gateway, remote, self.dialogs)
        self.on_change = on_change
        self._clock = clock
        self._saves = SaveCoalescer(remote.save_all, lambda: list(session.store.snapshot()))
        self._url_lock = threading.Lock()
        self._resolving: set[int] = set()
        self._failed_urls: set[int] = set()

    @classmethod
    def from_config(
        cls,
        config: SnipkeepConfig,
        dialogs: Dialogs,
        *,
        on_change: Callable[[], None] | None = None,
    ) -> SnippetService:
        session = SessionContext(viewing=ViewingState(cooldown_s=config.viewing_cooldown_s))
        blob_target = None
        if config.blob_url and config.blob_anon_key:
            blob_target = BlobTarget(
                url=config.blob_url, anon_key=config.blob_anon_key, bucket=config.blob_bucket
            )
        remote = RemoteStoreClient(
            config.api_base_url,
            timeout_s=config.request_timeout_s,
            blob_target=blob_target,
            on_blob_target=_persist_blob_target,
        )
        gateway = CryptoGateway(config.api_base_url, timeout_s=config.request_timeout_s)
        return cls(session, remote, gateway, dialogs, config=config, on_change=on_change)

    def create_poller(
        self, *, on_refresh: Callable[[RefreshEvent], None] | None = None
    ) -> LiveSyncPoller:
        cfg = self.config
        return LiveSyncPoller(
            self.session,
            self.remote,
            interval_s=cfg.poll_interval_s,
            input_quiet_s=cfg.input_quiet_s,
            page_size=cfg.page_size,
            lightweight=cfg.lightweight_list,
            on_refresh=on_refresh,
            notify=self.dialogs.notify,
        )

    def close(self) -> None:
        self.session.close()

    def _changed(self) -> None:
        if self.on_change is not None:
            self.on_change()

    def _run(self, action: Callable[[], ActionResult], *, failure: str | None = None) -> ActionResult:
        try:
            return action()
        except OperationCancelled:
            return ActionResult(ok=False, message="Cancelled", cancelled=True)
        except (NetworkError, ServerError) as exc:
            logger.warning("%s", failure or "remote call failed", exc_info=exc)
            return ActionResult(ok=False, message=failure or str(exc))
        except SnipkeepError as exc:
            logger.debug("operation failed: %s", exc)
            return ActionResult(ok=False, message=str(exc))

    def _require(self, snippet_id: object) -> Snippet:
        snippet = self.session.store.find_by_id(snippet_id)
        if snippet is None:
            raise NotFoundError("Snippet not found!")
        return snippet

    def load(self) -> ActionResult:
        """Replace the session store with the full remote list."""

        def action() -> ActionResult:
            fetched = self.remote.list_all(
                page_size=self.config.page_size, lightweight=self.config.lightweight_list
            )
            with self.session.lock:
                self.session.store.replace_all(fetched)
                total = len(self.session.store)
            self._changed()
            return ActionResult(ok=True, value=total)

        return self._run(
            action, failure="Failed to load data from database. Please check your connection."
        )

    def count(self) -> ActionResult:
        """Ask the remote how many snippets it holds without fetching them."""
        return self._run(
            lambda: ActionResult(ok=True, value=self.remote.count()),
            failure="Failed to load data from database. Please check your connection.",
        )

    def render(self, query: str | None = None, *, autoload: bool = True) -> RenderResult:
        result = render_snippets(self.session.store.snapshot(), query, self.reveal.view())
        if autoload and result.pending_file_urls:
            self.autoload_file_urls(result.pending_file_urls)
        return result

    # -- add ---------------------------------------------------------------

    def add(self, request: AddRequest) -> ActionResult:
        return self._run(
            lambda: self._add(request), failure="Failed to save to database. Please try again."
        )

    def _validated_content(self, request: AddRequest) -> str:
        if not request.password.strip():
            raise ValidationError("Please enter a password!")
        if not request.title.strip():
            raise ValidationError("Please enter a title!")
        if request.content_type is ContentType.TEXT:
            text = (request.text or "").strip()
            if not text:
                raise ValidationError("Please enter some text/code!")
            return text
        if request.file is None:
            raise ValidationError("Please select a file!")
        return request.file.as_data_uri()

    def _next_id(self) -> int:
        candidate = int(self._clock() * 1000)
        while self.session.store.find_by_id(candidate) is not None:
            candidate += 1
        return candidate

    def _add(self, request: AddRequest) -> ActionResult:
        content: str | None = self._validated_content(request)
        password = request.password.strip()
        if request.hidden:
            content = self.gateway.encrypt(content or "", password)
        upload = request.file
        with self.session.lock:
            snippet_id = self._next_id()
        storage_path = None
        if upload is not None and not request.hidden and len(content or "") > self.config.inline_max_bytes:
            logger.info("%s is %d bytes; uploading to blob storage", upload.name, upload.size)
            storage_path = self.remote.upload_blob_direct(
                upload.data, snippet_id, file_name=upload.name, file_type=upload.mime_type
            )
            content = None
        snippet = Snippet(
            id=snippet_id,
            title=request.title.strip(),
            content_type=request.content_type,
            content=content,
            storage_path=storage_path,
            file_name=upload.name if upload else None,
            file_type=upload.mime_type if upload else None,
            password=password,
            hidden=request.hidden,
            is_encrypted=request.hidden,
            timestamp=format_timestamp(dt.datetime.fromtimestamp(self._clock())),
        )

        with self.session.lock:
            self.session.store.add(snippet)
        self._changed()
        try:
            saved = self.remote.save(snippet)
        except SnipkeepError:
            with self.session.lock:
                self.session.store.remove(snippet.id)
            self._changed()
            raise
        with self.session.lock:
            self._adopt(snippet.id, saved)
        self._changed()
        return ActionResult(ok=True, message="Snippet added!", value=saved)

    def _adopt(self, local_id: int, saved: Snippet) -> None:
        store = self.session.store
        if saved.id != local_id:
            store.remove(local_id)
        if not store.replace(saved) and store.find_by_id(saved.id) is None:
            store.add(saved)

    # -- delete ------------------------------------------------------------

    def delete(self, snippet_id: object) -> ActionResult:
        return self._run(
            lambda: self._delete(snippet_id),
            failure="Failed to delete from database. Please try again.",
        )

    def _delete(self, snippet_id: object) -> ActionResult:
        snippet = self._require(snippet_id)
        with self.session.viewing.viewing(snippet.id):
            self.reveal.authorize(snippet, DELETE_PROMPT, DELETE_REJECTED)
            if not self.dialogs.confirm(DELETE_CONFIRM):
                raise OperationCancelled()
            with self.session.lock:
                removed = self.session.store.remove(snippet.id)
        self._changed()
        try:
            self.remote.remove(snippet.id)
        except NotFoundError:
            logger.info("snippet %s was already gone remotely", snippet.id)
        except SnipkeepError:
            with self.session.lock:
                if removed is not None and self.session.store.find_by_id(snippet.id) is None:
                    self.session.store.add(removed)
            self._changed()
            raise
        self.reveal.forget(snippet.id)
        self._changed()
        return ActionResult(ok=True, message="Snippet deleted!")

    # -- reveal / export ---------------------------------------------------

    def unlock(self, snippet_id: object) -> ActionResult:
        def action() -> ActionResult:
            content = self.reveal.unlock(snippet_id)
            self._changed()
            return ActionResult(ok=True, value=content)

        return self._run(action)

    def lock(self, snippet_id: object) -> ActionResult:
        def action() -> ActionResult:
            self._require(snippet_id)
            self.reveal.lock(snippet_id)
            self._changed()
            return ActionResult(ok=True)

        return self._run(action)

    def copy(self, snippet_id: object) -> ActionResult:
        return self._run(lambda: self._copy(snippet_id))

    def _copy(self, snippet_id: object) -> ActionResult:
        snippet = self._require(snippet_id)
        if snippet.is_file:
            raise ValidationError("Only text snippets can be copied; use download for files.")
        plaintext = self.reveal.authorize_export(snippet.id, "copy")
        text = plaintext if plaintext is not None else (snippet.content or "")
        return ActionResult(ok=True, message="Copied!", value=text)

    def download(self, snippet_id: object) -> ActionResult:
        return self._run(
            lambda: self._download(snippet_id),
            failure="Failed to download file. Please try again.",
        )

    def _download(self, snippet_id: object) -> ActionResult:
        snippet = self._require(snippet_id)
        if not snippet.is_file:
            raise ValidationError("Only image and PDF snippets can be downloaded; use copy for text.")
        plaintext = self.reveal.authorize_export(snippet.id, "download")
        if plaintext is None and not snippet.content and not snippet.storage_path:
            # Lightweight listings omit inline file content.
            snippet = self.remote.get_by_id(snippet.id)
        default_name = "image" if snippet.content_type is ContentType.IMAGE else "document.pdf"
        file_name = snippet.file_name or default_name
        mime_type = snippet.file_type
        source = plaintext if plaintext is not None else snippet.content
        if source and source.startswith(("http://", "https://")):
            data = self._fetch(snippet.id, source)
        elif source:
            data, embedded = decode_data_uri(source)
            mime_type = embedded or mime_type
        elif snippet.storage_path:
            with self.session.viewing.viewing(snippet.id):
                url = self.remote.get_signed_url(snippet.id)
            data = self._fetch(snippet.id, url)
        else:
            raise NotFoundError("File unavailable")
        payload = DownloadPayload(file_name=file_name, data=data, mime_type=mime_type)
        return ActionResult(ok=True, message=f"Downloaded {file_name}", value=payload)

    def _fetch(self, snippet_id: int, url: str) -> bytes:
        with self.session.viewing.viewing(snippet_id):
            return self.remote.download(url)

    # -- signed URLs -------------------------------------------------------

    def resolve_file_url(self, snippet_id: object) -> str:
        """Fetch a fresh signed URL and attach it to the session copy of the snippet."""
        key = normalize_id(snippet_id)
        with self.session.viewing.viewing(key):
            url = self.remote.get_signed_url(key)
        with self.session.lock:
            self.session.store.set_file_url(key, url)
        with self._url_lock:
            self._failed_urls.discard(key)
        return url

    def autoload_file_urls(self, snippet_ids: Iterable[int]) -> list[threading.Thread]:
        started = []
        for snippet_id in snippet_ids:
            key = normalize_id(snippet_id)
            with self._url_lock:
                if key in self._resolving or key in self._failed_urls:
                    continue
                self._resolving.add(key)
            thread = threading.Thread(
                target=self._autoload_one, args=(key,), name=f"snipkeep-url-{key}", daemon=True
            )
            thread.start()
            started.append(thread)
        return started

    def _autoload_one(self, snippet_id: int) -> None:
        try:
            self.resolve_file_url(snippet_id)
        except SnipkeepError as exc:
            logger.warning("could not resolve file url for %s: %s", snippet_id, exc)
            with self._url_lock:
                self._failed_urls.add(snippet_id)
            self.dialogs.alert(LOAD_FILE_FAILED)
        finally:
            with self._url_lock:
                self._resolving.discard(snippet_id)
        self._changed()

    # -- full-state save ---------------------------------------------------

    def push(self) -> ActionResult:
        """Write the whole session store back to the remote in one request."""

        def action() -> ActionResult:
            self._saves.save()
            return ActionResult(ok=True, message="Saved", value=len(self.session.store))

        return self._run(action, failure="Failed to save data to database. Please try again.")
