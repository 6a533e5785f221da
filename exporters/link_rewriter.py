"""Link rewriter for remapping converted Markdown links to the output layout."""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional
from urllib.parse import quote

from errors import UnresolvableLink
from models import EntryKind, LinkRecord, OutputPlanEntry
from epub.links import is_external, is_remote, parse_href, remote_basename
from .conversion_cache import ConversionCache
from .output_planner import OutputPlan, markdown_file_name

logger = logging.getLogger('epub2md.exporters.link_rewriter')

MAX_CHARS_IN_ALT = 1000  # Prevent catastrophic backtracking


@dataclass
class RewriteResult:
    """Rewritten Markdown of one section plus what was found in it."""

    markdown: str
    links: List[LinkRecord] = field(default_factory=list)
    remote_images: List[str] = field(default_factory=list)
    unresolved: List[str] = field(default_factory=list)

    @property
    def rewritten_count(self) -> int:
        return sum(1 for link in self.links if link.rewritten != link.url)


class LinkRewriter:
    """
    Rewrites Markdown links and images of converted sections.

    This rewriter:
    1. Points every image at the flat images directory
    2. Turns ``#fragment`` links into links into the current output file
    3. Resolves cross-document links to the target's planned file name
       (per-file mode) or its section anchor (merged mode)
    4. Leaves external links and unresolvable targets untouched
    """

    def __init__(
        self,
        document,
        plan: OutputPlan,
        should_merge: bool = False,
        image_directory: str = 'images',
        cache: Optional[ConversionCache] = None,
        logger: Optional[logging.Logger] = None
    ):
        """
        Initialize the link rewriter.

        Args:
            document: Parsed :class:`epub.EpubDocument`
            plan: Output plan of the current run
            should_merge: Merged-single-file topology
            image_directory: Directory images are written to
            cache: Per-run lookup cache
            logger: Logger instance
        """
        self.document = document
        self.plan = plan
        self.should_merge = should_merge
        self.image_directory = image_directory
        self.cache = cache or ConversionCache()
        self.logger = logger or logging.getLogger('epub2md.exporters.link_rewriter')

        # Compile regex patterns for markdown images and links; a link text
        # may hold one image so that linked images are rewritten twice
        self.image_pattern = re.compile(
            r'!\[([^\]]{0,' + str(MAX_CHARS_IN_ALT) + r'})\]\(([^)\s]+)(\s+"[^"]*")?\)'
        )
        self.link_pattern = re.compile(
            r'(?<!!)\[((?:[^\[\]]|!\[[^\]]*\]\([^)]*\))*)\]\(([^)\s]+)(\s+"[^"]*")?\)'
        )

    def rewrite(self, markdown: str, entry: OutputPlanEntry) -> RewriteResult:
        """
        Rewrite all images and links of one section.

        Args:
            markdown: Converted Markdown of the section
            entry: Plan entry of the section being rewritten

        Returns:
            RewriteResult with the updated Markdown and link records
        """
        result = RewriteResult(markdown='')
        if not markdown:
            return result

        def replace_image(match):
            alt, url, title = match.group(1), match.group(2), match.group(3) or ''
            new_url = self._rewrite_image(url, result)
            result.links.append(LinkRecord(
                url=url, hash='', target_section_id='', is_image=True, rewritten=new_url
            ))
            return f'![{alt}]({new_url}{title})'

        def replace_link(match):
            text, url, title = match.group(1), match.group(2), match.group(3) or ''
            try:
                new_url, record = self._rewrite_link(url, entry)
            except UnresolvableLink:
                self.logger.debug(f"Unresolvable link '{url}' in section '{entry.id}', keeping it")
                result.unresolved.append(url)
                new_url = url
                record = LinkRecord(url=url, hash=parse_href(url).hash,
                                    target_section_id='', is_image=False, rewritten=url)
            result.links.append(record)
            return f'[{text}]({new_url}{title})'

        rewritten = self.image_pattern.sub(replace_image, markdown)
        result.markdown = self.link_pattern.sub(replace_link, rewritten)

        if result.unresolved:
            self.logger.warning(
                f"Section '{entry.id}' has {len(result.unresolved)} unresolvable internal link(s), "
                f"kept as written"
            )
        self.logger.debug(
            f"Rewrote {result.rewritten_count}/{len(result.links)} links in section '{entry.id}'"
        )
        return result

    def _rewrite_image(self, url: str, result: RewriteResult) -> str:
        if url.startswith('data:'):
            return url
        if is_remote(url):
            result.remote_images.append(url)
            name = remote_basename(url)
        else:
            name = parse_href(url.split('?', 1)[0]).basename
        if not name:
            return url
        return f'./{self.image_directory}/{quote(name)}'

    def _rewrite_link(self, url: str, entry: OutputPlanEntry):
        """
        Rewritten URL and link record for a non-image link.

        Raises:
            UnresolvableLink: If an internal target matches no manifest item
        """
        parts = parse_href(url)

        if is_external(url):
            return url, LinkRecord(url=url, hash=parts.hash, target_section_id='',
                                   is_image=False, rewritten=url)

        if url.startswith('#'):
            if self.should_merge:
                new_url = f'#{entry.id}'
            else:
                new_url = f'./{quote(entry.file_name)}{url}'
            return new_url, LinkRecord(url=url, hash=parts.hash, target_section_id=entry.id,
                                       is_image=False, rewritten=new_url)

        target_id = self.cache.item_id(parts.url, self.document.get_item_id)
        if not target_id:
            raise UnresolvableLink(url)

        target = self.plan.get(target_id)
        if target is not None and target.kind in (EntryKind.IMAGE, EntryKind.OTHER):
            new_url = f'./{target.output_path}'
        elif self.should_merge:
            # only exported sections get an anchor in the merged document
            if target is None or target.kind != EntryKind.MARKDOWN:
                raise UnresolvableLink(url)
            new_url = f'#{target_id}'
        else:
            new_url = self._target_file(url, target_id, target)
            if parts.hash and new_url != url:
                new_url += f'#{parts.hash}'

        return new_url, LinkRecord(url=url, hash=parts.hash, target_section_id=target_id,
                                   is_image=False, rewritten=new_url)

    def _target_file(self, url: str, target_id: str, target: Optional[OutputPlanEntry]) -> str:
        """Relative path of a Markdown target in per-file mode."""
        if target is not None and target.kind == EntryKind.MARKDOWN:
            return f'./{quote(target.file_name)}'
        node = self.cache.toc_node(target_id, self.document.toc.get_by_section_id)
        if node is not None and node.name:
            return f'./{quote(markdown_file_name(node.name))}'
        return url


__all__ = ['LinkRewriter', 'RewriteResult']
