"""
Bulk export orchestrator for Marketo email templates.

Lists every template, then writes them in fixed-size batches with one
worker thread per item of the batch. A batch always settles completely
before the next one starts.
"""

import logging
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from pathlib import Path
from typing import Any, Callable, List, Optional, Union

from errors import ArchiveError, AuthenticationError
from exporters.archiver import create_archive
from logger import ProgressTracker
from models import ExportResult, ProgressEvent, TemplateSummary

DEFAULT_BATCH_SIZE = 5
DEFAULT_BATCH_DELAY = 0.3

ProgressCallback = Callable[[ProgressEvent], None]


class ExportOrchestrator:
    """Drives paginator → writer → archiver for one bulk export."""

    def __init__(
        self,
        paginator,
        writer,
        batch_size: int = DEFAULT_BATCH_SIZE,
        batch_delay: float = DEFAULT_BATCH_DELAY,
        create_zip: bool = False,
        compression_level: int = 5,
        archiver: Callable[..., str] = create_archive,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the orchestrator.

        Args:
            paginator: TemplatePaginator used to list templates
            writer: TemplateWriter used per template
            batch_size: Templates processed concurrently per batch
            batch_delay: Seconds to pause between batches
            create_zip: Archive the export directory by default
            compression_level: Deflate level passed to the archiver
            archiver: Callable ``(source_dir, dest_zip_path, compression_level) -> path``
            logger: Logger instance
        """
        if batch_size < 1:
            raise ValueError("batch_size must be positive")

        self.paginator = paginator
        self.writer = writer
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.create_zip = create_zip
        self.compression_level = compression_level
        self.archiver = archiver
        self.logger = logger or logging.getLogger('marketo_template_exporter.orchestrator')

    def export_all(
        self,
        output_dir: Union[str, Path],
        batch_size: Optional[int] = None,
        progress_callback: Optional[ProgressCallback] = None,
        create_zip: Optional[bool] = None
    ) -> ExportResult:
        """
        Export every template to ``output_dir``.

        Args:
            output_dir: Export root directory (created if absent)
            batch_size: Override for the configured batch size
            progress_callback: Receives ProgressEvent notifications
            create_zip: Override for the configured archiving behavior

        Returns:
            ExportResult with counts, per-item errors and archive outcome

        Raises:
            AuthenticationError: Credentials rejected; raised after the
                current batch has settled
            Exception: Listing failures abort the run
        """
        batch_size = batch_size or self.batch_size
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        create_zip = self.create_zip if create_zip is None else create_zip

        start_time = time.time()
        output_path = Path(output_dir)
        output_path.mkdir(parents=True, exist_ok=True)

        result = ExportResult(output_dir=str(output_path))

        self._emit(progress_callback, ProgressEvent(
            stage='listing', message='Fetching template list from Marketo...'
        ))

        templates = self.paginator.list_all(
            progress_callback=lambda count: self._emit(progress_callback, ProgressEvent(
                stage='listing', message=f"Fetched {count} templates so far...", total=count
            ))
        )

        result.templates = templates
        result.total = len(templates)
        if getattr(self.paginator, 'limit_exceeded', None) is not None:
            result.truncated = True
        result.warnings.extend(getattr(self.paginator, 'warnings', []) or [])
        for warning in result.warnings:
            self._emit(progress_callback, ProgressEvent(
                stage='listing', message=warning, total=result.total, level='warning'
            ))

        self.logger.info(f"Found {result.total} templates to export into {output_path}")
        self._emit(progress_callback, ProgressEvent(
            stage='listing', message=f"Found {result.total} templates. Starting export...",
            total=result.total
        ))

        batches = [templates[i:i + batch_size] for i in range(0, len(templates), batch_size)]

        with ProgressTracker(total_items=result.total, item_type='templates') as tracker:
            for batch_number, batch in enumerate(batches, start=1):
                self._run_batch(batch, output_path, result, tracker, progress_callback)

                self._emit(progress_callback, ProgressEvent(
                    stage='batch',
                    message=(f"Batch {batch_number}/{len(batches)} complete: "
                             f"{result.processed}/{result.total} ({result.percent_complete}%)"),
                    processed=result.processed, total=result.total,
                    successful=result.successful, failed=result.failed
                ))

                if batch_number < len(batches) and self.batch_delay > 0:
                    time.sleep(self.batch_delay)

        if create_zip:
            self._archive(output_path, result, progress_callback)

        result.duration_seconds = time.time() - start_time

        self.logger.info(
            f"Export complete: {result.successful} succeeded, {result.failed} failed "
            f"out of {result.total} in {result.duration_seconds:.1f}s"
        )
        self._emit(progress_callback, ProgressEvent(
            stage='complete',
            message=(f"Export complete: {result.successful} templates exported successfully, "
                     f"{result.failed} failed."),
            processed=result.processed, total=result.total,
            successful=result.successful, failed=result.failed
        ))

        return result

    def _run_batch(
        self,
        batch: List[TemplateSummary],
        output_path: Path,
        result: ExportResult,
        tracker: ProgressTracker,
        progress_callback: Optional[ProgressCallback]
    ) -> None:
        """Process one batch, waiting for every item whatever its outcome."""
        auth_error: Optional[AuthenticationError] = None

        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            future_to_template = {
                executor.submit(self.writer.write_template, template, output_path): template
                for template in batch
            }

            for future in as_completed(future_to_template):
                template = future_to_template[future]
                try:
                    future.result()
                except AuthenticationError as e:
                    auth_error = auth_error or e
                    self._record_failure(template, e, result, tracker, progress_callback)
                except Exception as e:
                    self._record_failure(template, e, result, tracker, progress_callback)
                else:
                    result.record_success()
                    tracker.increment(success=True)
                    self._emit(progress_callback, ProgressEvent(
                        stage='item',
                        message=f"Exported template {template.id} ({template.name})",
                        processed=result.processed, total=result.total,
                        successful=result.successful, failed=result.failed,
                        item_id=template.id
                    ))

        if auth_error is not None:
            self.logger.error(f"Authentication failed during export, aborting: {auth_error}")
            raise auth_error

    def _record_failure(
        self,
        template: TemplateSummary,
        error: Exception,
        result: ExportResult,
        tracker: ProgressTracker,
        progress_callback: Optional[ProgressCallback]
    ) -> None:
        message = str(error) or error.__class__.__name__
        self.logger.error(f"Error exporting template {template.id} ({template.name}): {message}")
        result.record_failure(template.id, message, template.name)
        tracker.increment(success=False)
        self._emit(progress_callback, ProgressEvent(
            stage='item',
            message=f"Error exporting template {template.id}: {message}",
            processed=result.processed, total=result.total,
            successful=result.successful, failed=result.failed,
            item_id=template.id, level='error'
        ))

    def _archive(self, output_path: Path, result: ExportResult,
                 progress_callback: Optional[ProgressCallback]) -> None:
        self._emit(progress_callback, ProgressEvent(
            stage='archive', message='Creating ZIP archive...',
            processed=result.processed, total=result.total,
            successful=result.successful, failed=result.failed
        ))
        try:
            result.archive_path = self.archiver(output_path, None, self.compression_level)
        except ArchiveError as e:
            result.archive_error = str(e)
            self.logger.error(f"Archive creation failed: {e}")
            self._emit(progress_callback, ProgressEvent(
                stage='archive', message=f"Archive creation failed: {e}", level='error',
                processed=result.processed, total=result.total
            ))
            return

        self._emit(progress_callback, ProgressEvent(
            stage='archive', message=f"ZIP archive created: {result.archive_path}",
            processed=result.processed, total=result.total,
            successful=result.successful, failed=result.failed
        ))

    def _emit(self, progress_callback: Optional[ProgressCallback], event: ProgressEvent) -> None:
        """Deliver an event; a failing callback never affects the export."""
        if progress_callback is None:
            return
        try:
            progress_callback(event)
        except Exception as e:
            self.logger.warning(f"Progress callback raised {e.__class__.__name__}: {e}", exc_info=True)

    @classmethod
    def from_config(cls, config: dict, paginator, writer) -> 'ExportOrchestrator':
        export_config = config.get('export', {})
        return cls(
            paginator,
            writer,
            batch_size=export_config.get('batch_size', DEFAULT_BATCH_SIZE),
            batch_delay=export_config.get('batch_delay', DEFAULT_BATCH_DELAY),
            create_zip=export_config.get('create_zip', False),
            compression_level=export_config.get('compression_level', 5)
        )


__all__ = ['ExportOrchestrator', 'DEFAULT_BATCH_SIZE', 'DEFAULT_BATCH_DELAY']
