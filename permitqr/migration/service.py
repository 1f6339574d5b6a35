from dataclasses import dataclass, field

from permitqr.backends.base import Backend
from permitqr.documents.exceptions import BackendError, NotFoundError
from permitqr.documents.models import BucketKind, Document
from permitqr.logging.logger import Log


@dataclass
class MigrationReport:
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)

    @property
    def total(self) -> int:
        return len(self.succeeded) + len(self.failed)


@dataclass
class ComparisonReport:
    source_only: list[str] = field(default_factory=list)
    target_only: list[str] = field(default_factory=list)
    common: list[str] = field(default_factory=list)
    conflicts: list[str] = field(default_factory=list)

    @property
    def in_sync(self) -> bool:
        return not (self.source_only or self.target_only or self.conflicts)


class DataMigrationService:
    """Copies documents and their files from one backend to another.

    Records keep their ids, so shareable URLs and printed QR codes stay valid.
    Files are copied before the record; a document is never visible on the
    target with paths that do not resolve.
    """

    async def migrate(
        self,
        source: Backend,
        target: Backend,
        owner_user_id: str | None = None,
        include_files: bool = True,
    ) -> MigrationReport:
        report = MigrationReport()
        documents = await source.documents.list_records(owner_user_id)
        Log.info(f"Migrating {len(documents)} documents from {source.name} to {target.name}")
        for document in documents:
            try:
                if include_files:
                    await self._copy_files(source, target, document)
                await target.documents.create_record(document)
            except BackendError as exc:
                Log.error(f"Migration of {document.id} failed: {exc}")
                report.failed.append(document.id)
                report.errors[document.id] = str(exc)
                continue
            report.succeeded.append(document.id)
        Log.info(
            f"Migration finished: {len(report.succeeded)} succeeded, {len(report.failed)} failed"
        )
        return report

    async def compare(self, source: Backend, target: Backend) -> ComparisonReport:
        """Ids on one side only, and shared ids whose name or status differ."""
        source_docs = {d.id: d for d in await source.documents.list_records()}
        target_docs = {d.id: d for d in await target.documents.list_records()}
        report = ComparisonReport(
            source_only=sorted(source_docs.keys() - target_docs.keys()),
            target_only=sorted(target_docs.keys() - source_docs.keys()),
            common=sorted(source_docs.keys() & target_docs.keys()),
        )
        for document_id in report.common:
            mine, theirs = source_docs[document_id], target_docs[document_id]
            if mine.name != theirs.name or mine.status is not theirs.status:
                report.conflicts.append(document_id)
        return report

    @staticmethod
    async def _copy_files(source: Backend, target: Backend, document: Document) -> None:
        locations = (
            (BucketKind.ORIGINAL, document.original_file_path),
            (BucketKind.PROCESSED, document.processed_file_path),
        )
        for bucket, path in locations:
            if not path:
                continue
            try:
                content = await source.files.download_file(bucket, path)
            except NotFoundError:
                Log.warning(f"Skipping missing {bucket.value} file {path} of {document.id}")
                continue
            await target.files.upload_file(bucket, path, content)
