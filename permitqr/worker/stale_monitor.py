import asyncio
from datetime import timedelta

from permitqr.documents.exceptions import BackendError
from permitqr.documents.service import DocumentService, StaleDocument
from permitqr.logging.logger import Log


class StaleDocumentMonitor:
    """Poll loop: list -> flag documents stuck in processing -> sleep."""

    def __init__(
        self,
        service: DocumentService,
        *,
        threshold: timedelta,
        interval_seconds: float,
    ) -> None:
        self._service = service
        self._threshold = threshold
        self._interval = interval_seconds

    async def run(self, max_checks: int | None = None) -> None:
        """Check forever, or ``max_checks`` times (for testing)."""
        Log.info("Stale document monitor started")
        checks = 0
        while max_checks is None or checks < max_checks:
            await self.check_once()
            checks += 1
            if max_checks is not None and checks >= max_checks:
                break
            await asyncio.sleep(self._interval)

    async def check_once(self) -> list[StaleDocument]:
        try:
            stale = await self._service.find_stale_documents(self._threshold)
        except BackendError as exc:
            Log.warning(f"Stale check failed, will retry: {exc}")
            return []
        for item in stale:
            minutes = int(item.stuck_for.total_seconds() // 60)
            Log.warning(
                f"Document {item.document.id} stuck in processing for {minutes} min; "
                "re-run it or reset it to uploaded",
                name=item.document.name,
            )
        return stale
