"""Command-line entry point for permit QR processing."""

import argparse
import asyncio
import json
import sys
from collections.abc import Awaitable, Callable
from datetime import timedelta
from pathlib import Path

from permitqr.backends.base import Backend
from permitqr.backends.factory import BackendFactory
from permitqr.config.settings import Settings
from permitqr.documents.exceptions import BackendError, InvalidUploadError, NotFoundError
from permitqr.documents.models import ChangeEvent
from permitqr.documents.service import DocumentService
from permitqr.logging.logger import Log
from permitqr.migration.service import DataMigrationService
from permitqr.processor.exceptions import PipelineError
from permitqr.processor.models import UploadRequest
from permitqr.processor.processor import build_processor
from permitqr.worker.stale_monitor import StaleDocumentMonitor
from permitqr.worker.upload_runner import UploadRunner

Command = Callable[[argparse.Namespace, Settings, Backend], Awaitable[int]]


def _print_json(payload: object) -> None:
    print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))


async def process_command(args: argparse.Namespace, settings: Settings, backend: Backend) -> int:
    uploads = [
        UploadRequest(
            filename=path.name,
            content=path.read_bytes(),
            owner_user_id=args.owner,
            google_maps_link=args.maps_link,
        )
        for path in args.files
    ]
    runner = UploadRunner(build_processor(settings, backend), settings.max_concurrent_uploads)
    outcomes = await runner.run_many(uploads)
    _print_json(
        [
            {
                "file": o.filename,
                "id": o.document_id,
                "url": o.document.shareable_url if o.document else None,
                "error": o.error or None,
                "retryable": o.retryable,
            }
            for o in outcomes
        ]
    )
    return 0 if all(o.ok for o in outcomes) else 1


async def retry_command(args: argparse.Namespace, settings: Settings, backend: Backend) -> int:
    processor = build_processor(settings, backend)
    task = processor.start_resume(args.document_id, args.file.read_bytes())
    async for event in task.progress():
        print(f"{event.percent:5.0f}%  {event.stage.value}")
    document = await task.result()
    _print_json(document.to_dict())
    return 0


async def show_command(args: argparse.Namespace, settings: Settings, backend: Backend) -> int:
    service = DocumentService(backend)
    document = await service.get_document(args.document_id)
    _print_json(document.to_dict())
    if args.output:
        content = await service.download_processed_file(document)
        if content is None:
            print(f"{document.id} has no processed file yet", file=sys.stderr)
            return 1
        args.output.write_bytes(content)
    return 0


async def list_command(args: argparse.Namespace, settings: Settings, backend: Backend) -> int:
    documents = await DocumentService(backend).list_documents(args.owner)
    _print_json([d.to_dict() for d in documents])
    return 0


async def delete_command(args: argparse.Namespace, settings: Settings, backend: Backend) -> int:
    await DocumentService(backend).delete_document(args.document_id)
    return 0


async def watch_command(args: argparse.Namespace, settings: Settings, backend: Backend) -> int:
    def on_change(event: ChangeEvent) -> None:
        Log.info(f"Documents changed: {event.kind.value}", document=event.document_id)

    monitor = StaleDocumentMonitor(
        DocumentService(backend),
        threshold=timedelta(minutes=settings.stale_processing_minutes),
        interval_seconds=settings.stale_check_interval_seconds,
    )
    subscription = await backend.documents.subscribe_to_changes(on_change)
    try:
        await monitor.run(args.max_checks)
    finally:
        await subscription.close()
    return 0


async def migrate_command(args: argparse.Namespace, settings: Settings, backend: Backend) -> int:
    target = BackendFactory.create(settings, args.to)
    await target.open()
    try:
        report = await DataMigrationService().migrate(
            backend, target, owner_user_id=args.owner, include_files=not args.no_files
        )
    finally:
        await target.close()
    _print_json({"succeeded": report.succeeded, "failed": report.failed, "errors": report.errors})
    return 0 if not report.failed else 1


async def compare_command(args: argparse.Namespace, settings: Settings, backend: Backend) -> int:
    target = BackendFactory.create(settings, args.to)
    await target.open()
    try:
        report = await DataMigrationService().compare(backend, target)
    finally:
        await target.close()
    _print_json(
        {
            "source_only": report.source_only,
            "target_only": report.target_only,
            "common": len(report.common),
            "conflicts": report.conflicts,
        }
    )
    return 0 if report.in_sync else 1


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="permitqr", description=__doc__)
    parser.add_argument("--backend", help="Override the configured backend for this run")
    commands = parser.add_subparsers(dest="command", required=True)

    process = commands.add_parser("process", help="Upload and QR-stamp PDF files")
    process.add_argument("files", nargs="+", type=Path)
    process.add_argument("--owner", help="Owner user id")
    process.add_argument("--maps-link", help="Google Maps link stored with each document")
    process.set_defaults(handler=process_command)

    retry = commands.add_parser("retry", help="Re-run processing for an existing document")
    retry.add_argument("document_id")
    retry.add_argument("file", type=Path, help="The original PDF")
    retry.set_defaults(handler=retry_command)

    show = commands.add_parser("show", help="Show one document")
    show.add_argument("document_id")
    show.add_argument("--output", type=Path, help="Save the processed PDF here")
    show.set_defaults(handler=show_command)

    list_ = commands.add_parser("list", help="List documents, newest first")
    list_.add_argument("--owner", help="Only documents of this owner")
    list_.set_defaults(handler=list_command)

    delete = commands.add_parser("delete", help="Delete a document and its files")
    delete.add_argument("document_id")
    delete.set_defaults(handler=delete_command)

    watch = commands.add_parser("watch", help="Log changes and documents stuck in processing")
    watch.add_argument("--max-checks", type=int, default=None)
    watch.set_defaults(handler=watch_command)

    migrate = commands.add_parser("migrate", help="Copy documents to another backend")
    migrate.add_argument("--to", required=True, help="Target backend name")
    migrate.add_argument("--owner", help="Only documents of this owner")
    migrate.add_argument("--no-files", action="store_true", help="Copy records only")
    migrate.set_defaults(handler=migrate_command)

    compare = commands.add_parser("compare", help="Compare documents with another backend")
    compare.add_argument("--to", required=True, help="Target backend name")
    compare.set_defaults(handler=compare_command)
    return parser


async def run_command(args: argparse.Namespace, settings: Settings) -> int:
    """Open the backend -> run one command -> close the backend."""
    backend = BackendFactory.create(settings, args.backend)
    await backend.open()
    try:
        return await args.handler(args, settings, backend)
    finally:
        await backend.close()


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings()
    Log.configure(settings.log_level)

    try:
        return asyncio.run(run_command(args, settings))
    except NotFoundError as exc:
        print(f"Not found: {exc}", file=sys.stderr)
        return 1
    except InvalidUploadError as exc:
        print(f"Invalid upload: {exc}", file=sys.stderr)
        return 2
    except PipelineError as exc:
        print(f"{exc}. Try again with 'permitqr retry'.", file=sys.stderr)
        return 1
    except BackendError as exc:
        print(f"Backend error: {exc}", file=sys.stderr)
        return 1
    except KeyboardInterrupt:
        Log.info("Interrupted, shutting down")
        return 130


if __name__ == "__main__":
    sys.exit(main())
