"""Off-thread execution of repository calls.

Storage calls block on database I/O, so the simulation thread submits
them to a StorageWorker and receives a future. Transient storage errors
are retried with exponential backoff; a missing user id is a data
integrity problem and is never retried.
"""

from __future__ import annotations

from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, TypeVar
from uuid import UUID

from tenacity import (
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from modkeeper.core.config import StorageSettings
from modkeeper.core.exceptions import StorageError, UserIdResolutionError
from modkeeper.core.logging import get_logger, player_context
from modkeeper.models.player import AntiAfkLog, PlayerRecord, UserState
from modkeeper.storage.repository import StateRepository


logger = get_logger(__name__)

T = TypeVar("T")


def _is_transient(exc: BaseException) -> bool:
    return isinstance(exc, StorageError) and not isinstance(exc, UserIdResolutionError)


class StorageWorker:
    """Runs StateRepository operations on a thread pool with retries.

    Attributes:
        repository: Repository the operations run against.
        settings: Storage settings (worker threads, retry attempts).
    """

    def __init__(
        self,
        repository: StateRepository,
        settings: StorageSettings | None = None,
        wait: wait_base | None = None,
    ) -> None:
        self.repository = repository
        self.settings = settings or repository.settings
        self._wait = wait or wait_exponential(multiplier=0.1, min=0.1, max=2)
        self._executor = ThreadPoolExecutor(
            max_workers=self.settings.worker_threads,
            thread_name_prefix="modkeeper-storage",
        )

    def submit(self, operation: Callable[..., T], *args, **kwargs) -> Future[T]:
        """Run ``operation(*args, **kwargs)`` on a worker thread with retries."""
        return self._executor.submit(self._run_with_retry, operation, *args, **kwargs)

    def submit_for_player(
        self, uuid: UUID, operation: Callable[..., T], *args, **kwargs
    ) -> Future[T]:
        """Like :meth:`submit`, with worker-side log events tagged by ``uuid``."""
        return self._executor.submit(self._run_for_player, uuid, operation, *args, **kwargs)

    def _run_for_player(self, uuid: UUID, operation: Callable[..., T], *args, **kwargs) -> T:
        with player_context(uuid):
            return self._run_with_retry(operation, *args, **kwargs)

    def _run_with_retry(self, operation: Callable[..., T], *args, **kwargs) -> T:
        retrying = Retrying(
            retry=retry_if_exception(_is_transient),
            stop=stop_after_attempt(self.settings.retry_attempts),
            wait=self._wait,
            before_sleep=self._log_retry,
            reraise=True,
        )
        return retrying(operation, *args, **kwargs)

    @staticmethod
    def _log_retry(retry_state) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Retrying storage operation",
            operation=getattr(retry_state.fn, "__name__", repr(retry_state.fn)),
            attempt=retry_state.attempt_number,
            error=str(exc),
        )

    # -------------------------------------------------------------------------
    # Repository shortcuts
    # -------------------------------------------------------------------------

    def load(self, uuid: UUID) -> Future[PlayerRecord]:
        return self.submit_for_player(uuid, self.repository.load_raw, uuid)

    def load_state(self, uuid: UUID) -> Future[UserState]:
        return self.submit_for_player(uuid, self.repository.load_state, uuid)

    def load_states(
        self, ignore_online: bool = True, skip_modifiers: bool = False
    ) -> Future[list[UserState]]:
        return self.submit(
            self.repository.load_states,
            ignore_online=ignore_online,
            skip_modifiers=skip_modifiers,
        )

    def save(self, record: PlayerRecord) -> Future[None]:
        return self.submit_for_player(record.uuid, self.repository.save, record)

    def apply_state(self, state: UserState) -> Future[None]:
        return self.submit_for_player(state.uuid, self.repository.apply_state, state)

    def delete(self, uuid: UUID) -> Future[None]:
        return self.submit_for_player(uuid, self.repository.delete, uuid)

    def load_anti_afk_logs(self, uuid: UUID) -> Future[list[AntiAfkLog]]:
        return self.submit_for_player(uuid, self.repository.load_anti_afk_logs, uuid)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
        logger.info("Storage worker stopped")

    def __enter__(self) -> StorageWorker:
        return self

    def __exit__(self, *exc_info) -> None:
        self.shutdown()


__all__ = ["StorageWorker"]
