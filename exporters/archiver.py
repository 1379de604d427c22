"""ZIP archival of a completed export directory."""

import logging
import os
import zipfile
from pathlib import Path
from typing import Optional, Union

from errors import ArchiveError

logger = logging.getLogger('marketo_template_exporter.exporters.archiver')


def default_archive_path(source_dir: Union[str, Path]) -> Path:
    """Sibling ``<source_dir>.zip`` of the export directory."""
    source = Path(source_dir).resolve()
    return source.with_name(source.name + '.zip')


def create_archive(
    source_dir: Union[str, Path],
    dest_zip_path: Optional[Union[str, Path]] = None,
    compression_level: int = 5
) -> str:
    """
    Compress an export directory into a ZIP file.

    Directory contents are stored at the archive root with no enclosing
    folder. A destination inside ``source_dir`` is skipped while walking.

    Args:
        source_dir: Directory to compress
        dest_zip_path: Output path (defaults to the sibling ``<source_dir>.zip``)
        compression_level: Deflate level 0-9

    Returns:
        Path of the written archive

    Raises:
        ArchiveError: If the source is missing or writing fails
    """
    source = Path(source_dir)
    if not source.is_dir():
        raise ArchiveError(f"Export directory not found: {source}")

    dest = Path(dest_zip_path) if dest_zip_path else default_archive_path(source)
    dest_resolved = dest.resolve()

    logger.info(f"Creating ZIP archive {dest} from {source}")

    file_count = 0
    try:
        dest.parent.mkdir(parents=True, exist_ok=True)
        with zipfile.ZipFile(dest, 'w', compression=zipfile.ZIP_DEFLATED,
                             compresslevel=compression_level) as archive:
            for root, dirs, files in os.walk(source):
                dirs.sort()
                root_path = Path(root)
                relative_root = root_path.relative_to(source)

                if str(relative_root) != '.' and not files and not dirs:
                    archive.writestr(relative_root.as_posix() + '/', '')

                for filename in sorted(files):
                    file_path = root_path / filename
                    if file_path.resolve() == dest_resolved:
                        continue
                    archive.write(file_path, (relative_root / filename).as_posix())
                    file_count += 1
    except (OSError, zipfile.BadZipFile, ValueError) as e:
        raise ArchiveError(f"Failed to create archive {dest}: {str(e)}") from e

    size = dest.stat().st_size
    logger.info(f"Archive created: {dest} ({file_count} files, {size} bytes)")
    return str(dest)


__all__ = ['create_archive', 'default_archive_path']
