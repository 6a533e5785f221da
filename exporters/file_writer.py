"""File writing with overwrite and skip-unchanged semantics."""

import logging
from pathlib import Path
from typing import Optional, Union

from errors import WriteFailure

WRITTEN = 'written'
UNCHANGED = 'unchanged'
SKIPPED = 'skipped'


class FileWriter:
    """
    Writes output files below one output directory.

    Args:
        output_dir: Root of all written paths
        overwrite: Replace files that already exist
        skip_unchanged: Leave byte-identical files untouched
        logger: Logger instance
    """

    def __init__(self, output_dir: Union[str, Path], overwrite: bool = True,
                 skip_unchanged: bool = True, logger: Optional[logging.Logger] = None):
        self.output_dir = Path(output_dir)
        self.overwrite = overwrite
        self.skip_unchanged = skip_unchanged
        self.logger = logger or logging.getLogger('epub2md.exporters.file_writer')

    def path_for(self, relative_path: str) -> Path:
        return self.output_dir / relative_path

    def write(self, relative_path: str, content: Union[str, bytes]) -> str:
        """
        Write ``content`` to ``output_dir/relative_path``.

        Parent directories are created as needed.

        Returns:
            'written', 'unchanged' or 'skipped'

        Raises:
            WriteFailure: If the file or its directory cannot be written
        """
        path = self.path_for(relative_path)
        data = content.encode('utf-8') if isinstance(content, str) else content

        try:
            if path.exists():
                if self.skip_unchanged and path.is_file() and path.read_bytes() == data:
                    self.logger.debug(f"Content unchanged, skipping write: {path}")
                    return UNCHANGED
                if not self.overwrite:
                    self.logger.debug(f"File exists and overwrite is disabled: {path}")
                    return SKIPPED

            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except PermissionError as e:
            raise WriteFailure(str(path), f"Permission denied: {e}") from e
        except OSError as e:
            raise WriteFailure(str(path), f"IO error: {e}") from e

        self.logger.debug(f"Successfully wrote {len(data)} bytes to {path}")
        return WRITTEN


__all__ = ['FileWriter', 'WRITTEN', 'UNCHANGED', 'SKIPPED']
