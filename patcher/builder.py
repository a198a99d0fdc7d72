"""Helpers for constructing and scheduling the update engine."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from patcher.config import PatcherConfig, load_patcher_config
from patcher.update.codec import Codec, ElzmaCodec
from patcher.update.engine import UpdateEngine
from patcher.update.events import EventSink
from patcher.update.models import UpdateError, UpdateSummary
from patcher.update.transport import PatchServerClient
from patcher.update.version_store import LocalVersionStore


_LOGGER = logging.getLogger(__name__)


def build_update_engine(
    config: PatcherConfig | None = None,
    *,
    events: EventSink | None = None,
    codec: Codec | None = None,
    client: PatchServerClient | None = None,
) -> UpdateEngine:
    """Construct an :class:`UpdateEngine` wired from ``config``."""

    config = config or load_patcher_config()
    _LOGGER.debug(
        "Building update engine: server=%s client=%s version_file=%s temp=%s",
        config.patch_server_url,
        config.client_directory,
        config.version_file,
        config.temp_directory,
    )
    client = client or PatchServerClient(
        config.patch_server_url,
        timeout=config.request_timeout,
        chunk_size=config.chunk_size,
        max_retries=config.max_retries,
        retry_delay=config.retry_delay,
    )
    codec = codec or ElzmaCodec(config.codec_binary)
    version_store = LocalVersionStore.for_client(config.client_directory, config.version_file)
    return UpdateEngine(
        client,
        codec,
        version_store,
        client_directory=config.client_directory,
        temp_directory=config.temp_directory,
        events=events,
        settle_delay=config.settle_delay,
        progress_interval=config.progress_interval,
    )


def _run_update_check(
    engine: UpdateEngine,
    full_check: bool,
    on_complete: Callable[[UpdateSummary | None], None] | None,
    on_error: Callable[[UpdateError], None] | None,
) -> None:
    try:
        summary = engine.run_update(full_check)
    except UpdateError as exc:
        _LOGGER.warning("Automatic update failed: %s", exc)
        if on_error is not None:
            on_error(exc)
        return
    except Exception:  # pragma: no cover
        _LOGGER.exception("Unexpected error while updating the client")
        return

    if on_complete is not None:
        on_complete(summary)


def schedule_update_check(
    engine: UpdateEngine,
    *,
    full_check: bool = False,
    on_complete: Callable[[UpdateSummary | None], None] | None = None,
    on_error: Callable[[UpdateError], None] | None = None,
) -> threading.Thread:
    """Run a check-and-apply cycle on a background thread.

    The caller is responsible for not starting a second cycle while one is
    still running.
    """

    thread = threading.Thread(
        target=_run_update_check,
        args=(engine, full_check, on_complete, on_error),
        name="client-patcher-update",
        daemon=True,
    )
    thread.start()
    return thread


__all__ = ["build_update_engine", "schedule_update_check"]
