"""Assembly of converted sections into one merged Markdown document."""

import logging
from typing import Iterable, List, Optional, Tuple

SECTION_SEPARATOR = '\n\n---\n\n'
MERGED_SUFFIX = '-merged.md'


def section_anchor(section_id: str) -> str:
    """Anchor targeted by ``#<sectionId>`` links in the merged document."""
    return f'<a id="{section_id}"></a>\n'


def merged_file_name(base_name: str, custom_name: Optional[str] = None) -> str:
    return custom_name or f'{base_name}{MERGED_SUFFIX}'


class MergeAssembler:
    """Joins sections in reading order, each preceded by its anchor."""

    def __init__(self, separator: str = SECTION_SEPARATOR, logger: Optional[logging.Logger] = None):
        self.separator = separator
        self.logger = logger or logging.getLogger('epub2md.exporters.merge_assembler')
        self._chapters: List[str] = []
        self._section_ids: List[str] = []

    def add(self, section_id: str, markdown: str) -> None:
        if section_id in self._section_ids:
            # a second anchor with the same id would make '#id' ambiguous
            self.logger.warning(f"Section '{section_id}' added twice to the merged document, ignoring")
            return
        self._section_ids.append(section_id)
        self._chapters.append(section_anchor(section_id) + markdown)

    def extend(self, sections: Iterable[Tuple[str, str]]) -> 'MergeAssembler':
        for section_id, markdown in sections:
            self.add(section_id, markdown)
        return self

    def assemble(self, front_matter: str = '') -> str:
        """Merged document text, optionally preceded by a front matter block."""
        body = self.separator.join(self._chapters)
        self.logger.debug(f"Assembled {len(self._chapters)} sections into one document")
        if front_matter:
            return f"{front_matter}\n\n{body}"
        return body

    @property
    def section_ids(self) -> List[str]:
        return list(self._section_ids)

    def __len__(self) -> int:
        return len(self._chapters)


__all__ = ['MergeAssembler', 'SECTION_SEPARATOR', 'merged_file_name', 'section_anchor']
