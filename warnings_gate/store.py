"""Per-job build history.

Usage:
    store = ResultStore(".warnings-gate")        # or ResultStore() in memory
    with store.lock("my-job"):
        reference = store.reference_for("my-job")
        ...
        store.commit(record)

Each job keeps an append-only history of committed builds and a pointer to
the latest one. On disk a job is a directory holding one ``build-<n>.json``
per build and a ``latest`` file written after the build file.
"""

import fcntl
import json
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from warnings_gate.models import BuildRecord


class StoreError(Exception):
    """Raised on an invalid commit or an unreadable history."""


@dataclass
class _JobHistory:
    builds: dict[int, BuildRecord] = field(default_factory=dict)
    latest: int | None = None


class ResultStore:

    def __init__(self, root: str | Path | None = None) -> None:
        self._root = Path(root) if root is not None else None
        self._jobs: dict[str, _JobHistory] = {}
        self._locks: dict[str, threading.Lock] = {}
        self._guard = threading.Lock()

    # ------------------------------------------------------------------
    # Public interface
    # ------------------------------------------------------------------

    @contextmanager
    def lock(self, job: str) -> Iterator[None]:
        """Serialize reference lookup and commit for *job*.

        With a root directory the lock also holds an exclusive ``flock`` on
        ``<job>/.lock``, so separate processes sharing the store take turns,
        and the job history is reloaded from disk once the lock is held.
        """
        with self._guard:
            thread_lock = self._locks.setdefault(job, threading.Lock())

        with thread_lock:
            if self._root is None:
                yield
                return

            directory = self._job_dir(job)
            directory.mkdir(parents=True, exist_ok=True)
            lock_file = open(directory / ".lock", "w")
            try:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX)
                with self._guard:
                    self._jobs.pop(job, None)
                yield
            finally:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
                lock_file.close()

    def latest(self, job: str) -> BuildRecord | None:
        history = self._history(job)
        if history.latest is None:
            return None
        return history.builds[history.latest]

    def get(self, job: str, number: int) -> BuildRecord | None:
        return self._history(job).builds.get(number)

    def builds(self, job: str) -> list[BuildRecord]:
        history = self._history(job)
        return [history.builds[n] for n in sorted(history.builds)]

    def next_build_number(self, job: str) -> int:
        latest = self._history(job).latest
        return 1 if latest is None else latest + 1

    def reference_for(self, job: str, pinned: int | None = None) -> BuildRecord | None:
        """Pinned build if given, else the latest committed build."""
        if pinned is not None:
            return self.get(job, pinned)
        return self.latest(job)

    def commit(self, record: BuildRecord) -> None:
        history = self._history(record.job)
        latest = history.latest
        if self._root is not None:
            # another process may have committed since the history was loaded
            on_disk = self._read_pointer(self._job_dir(record.job))
            if on_disk is not None and (latest is None or on_disk > latest):
                latest = on_disk
        if latest is not None and record.number <= latest:
            raise StoreError(
                f"Build #{record.number} of '{record.job}' is not newer than "
                f"the latest committed build #{latest}"
            )
        if self._root is not None:
            self._write(record)
        history.builds[record.number] = record
        history.latest = record.number

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _history(self, job: str) -> _JobHistory:
        with self._guard:
            if job not in self._jobs:
                self._jobs[job] = self._load(job)
            return self._jobs[job]

    def _job_dir(self, job: str) -> Path:
        return self._root / job.replace("/", "_")

    def _load(self, job: str) -> _JobHistory:
        history = _JobHistory()
        if self._root is None:
            return history
        directory = self._job_dir(job)
        latest = self._read_pointer(directory)
        if latest is None:
            return history

        for path in sorted(directory.glob("build-*.json")):
            try:
                record = BuildRecord.from_dict(json.loads(path.read_text(encoding="utf-8")))
            except (ValueError, KeyError) as exc:
                raise StoreError(f"Failed to read '{path}': {exc}") from exc
            # builds written after the pointer were never committed
            if record.number <= latest:
                history.builds[record.number] = record

        if latest not in history.builds:
            raise StoreError(f"Latest build #{latest} missing in '{directory}'")
        history.latest = latest
        return history

    def _read_pointer(self, directory: Path) -> int | None:
        pointer = directory / "latest"
        if not pointer.exists():
            return None
        try:
            return int(pointer.read_text(encoding="utf-8").strip())
        except ValueError as exc:
            raise StoreError(f"Corrupt latest pointer in '{directory}'") from exc

    def _write(self, record: BuildRecord) -> None:
        directory = self._job_dir(record.job)
        directory.mkdir(parents=True, exist_ok=True)
        build_file = directory / f"build-{record.number}.json"
        build_file.write_text(json.dumps(record.to_dict(), indent=2), encoding="utf-8")

        tmp = directory / "latest.tmp"
        tmp.write_text(str(record.number), encoding="utf-8")
        tmp.replace(directory / "latest")
