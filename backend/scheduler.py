"""
Planificateur de la purge quotidienne de la corbeille

Tâche asyncio démarrée avec l'application : chaque jour à l'heure configurée,
la purge s'exécute dans un thread avec sa propre session.
"""
import asyncio
import logging
import os
from contextlib import suppress
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy.orm import Session

from constants import TRASH_RETENTION_DAYS, TRASH_SWEEP_HOUR, TRASH_SWEEP_MINUTE
from database import SessionLocal
from services.trash_service import TrashService
from upload_service import UploadStorage, get_storage

logger = logging.getLogger(__name__)


class TrashSweepScheduler:

    def __init__(
        self,
        hour: int = TRASH_SWEEP_HOUR,
        minute: int = TRASH_SWEEP_MINUTE,
        retention_days: int = TRASH_RETENTION_DAYS,
        session_factory: Callable[[], Session] = SessionLocal,
        storage: Optional[UploadStorage] = None
    ):
        self.hour = hour
        self.minute = minute
        self.retention_days = retention_days
        self.session_factory = session_factory
        self.storage = storage
        self._task: Optional[asyncio.Task] = None

    @classmethod
    def from_env(cls) -> "TrashSweepScheduler":
        return cls(
            hour=int(os.getenv("TRASH_SWEEP_HOUR", TRASH_SWEEP_HOUR)),
            minute=int(os.getenv("TRASH_SWEEP_MINUTE", TRASH_SWEEP_MINUTE)),
            retention_days=int(os.getenv("TRASH_RETENTION_DAYS", TRASH_RETENTION_DAYS)),
        )

    def next_run(self, now: datetime) -> datetime:
        run_at = now.replace(hour=self.hour, minute=self.minute, second=0, microsecond=0)
        if run_at <= now:
            run_at += timedelta(days=1)
        return run_at

    def run_once(self, now: Optional[datetime] = None) -> int:
        db = self.session_factory()
        try:
            service = TrashService(db, self.storage or get_storage())
            return service.purge_expired(now=now, retention_days=self.retention_days)
        finally:
            db.close()

    async def _loop(self):
        while True:
            now = datetime.now()
            run_at = self.next_run(now)
            logger.info("Prochaine purge de la corbeille: %s", run_at.isoformat(timespec="minutes"))
            await asyncio.sleep((run_at - now).total_seconds())
            try:
                await asyncio.to_thread(self.run_once)
            except Exception:
                # la tâche doit survivre pour la purge du lendemain
                logger.exception("Échec de la purge planifiée de la corbeille")

    def start(self):
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
            logger.info("Purge de la corbeille planifiée tous les jours à %02d:%02d", self.hour, self.minute)

    async def stop(self):
        if self._task is not None:
            self._task.cancel()
            with suppress(asyncio.CancelledError):
                await self._task
            self._task = None
