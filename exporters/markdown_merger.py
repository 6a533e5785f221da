"""Merge an already exported directory of Markdown chapters into one file."""

import logging
import re
from pathlib import Path
from typing import List, Optional, Union

from errors import Epub2MdError, WriteFailure
from .merge_assembler import MERGED_SUFFIX, SECTION_SEPARATOR, merged_file_name

ORDERED_FILE_PATTERN = re.compile(r'^(\d+)-.*\.md$')


def collect_markdown_files(directory: Path, output_file: Optional[str] = None) -> List[Path]:
    """
    Chapter files of ``directory`` in reading order.

    Files named ``<number>-<title>.md`` are sorted by their numeric prefix.
    When there are none, every ``.md`` file is taken in name order.
    Previously merged files are never included.
    """
    candidates = [
        path for path in directory.iterdir()
        if path.is_file()
        and path.suffix == '.md'
        and not path.name.endswith(MERGED_SUFFIX)
        and path.name != output_file
    ]

    ordered = [path for path in candidates if ORDERED_FILE_PATTERN.match(path.name)]
    if ordered:
        return sorted(ordered, key=lambda p: (int(ORDERED_FILE_PATTERN.match(p.name).group(1)), p.name))
    return sorted(candidates, key=lambda p: p.name)


def merge_markdowns(directory: Union[str, Path], output_file: Optional[str] = None,
                    logger: Optional[logging.Logger] = None) -> Path:
    """
    Concatenate the chapters of an export directory.

    Args:
        directory: Directory written by a previous per-file conversion
        output_file: Name of the merged file (default ``<dirname>-merged.md``)
        logger: Logger instance

    Returns:
        Path of the merged file

    Raises:
        Epub2MdError: If the directory holds no Markdown file
        WriteFailure: If the merged file cannot be written
    """
    logger = logger or logging.getLogger('epub2md.exporters.markdown_merger')
    directory = Path(directory)
    if not directory.is_dir():
        raise Epub2MdError(f"Not a directory: {directory}")

    files = collect_markdown_files(directory, output_file)
    if not files:
        raise Epub2MdError("No Markdown file was found")

    logger.info(f"Merging {len(files)} Markdown file(s) from {directory}")
    chapters = [path.read_text(encoding='utf-8') for path in files]
    target = directory / merged_file_name(directory.name, output_file)

    try:
        target.write_text(SECTION_SEPARATOR.join(chapters), encoding='utf-8')
    except OSError as e:
        raise WriteFailure(str(target), str(e)) from e

    logger.info(f"Merged file written: {target}")
    return target


__all__ = ['merge_markdowns', 'collect_markdown_files']
