"""Main markdown exporter orchestrator for EPUB to Markdown conversion."""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import autocorrect_py
import requests
import yaml

from errors import Epub2MdError
from logger import ProgressTracker, log_section
from models import EntryKind, OutputPlanEntry, RunOptions
from converters.base_converter import ConverterLike
from epub import EpubDocument, ParserOptions, parse_epub
from .conversion_cache import ConversionCache
from .file_writer import FileWriter, SKIPPED, UNCHANGED
from .image_downloader import DEFAULT_USER_AGENT, ImageDownloader
from .link_rewriter import LinkRewriter
from .merge_assembler import MergeAssembler, merged_file_name
from .output_planner import OutputPlan, OutputPlanner


def default_output_dir(epub_path: Union[str, Path]) -> Path:
    """Archive path without its ``.epub`` extension."""
    path = Path(epub_path)
    if path.suffix.lower() == '.epub':
        return path.with_suffix('')
    return path.parent / f"{path.name}-markdown"


class MarkdownExporter:
    """
    Orchestrates export of one EPUB archive to Markdown files.

    This exporter:
    1. Parses the archive and plans every output path
    2. Converts sections and rewrites their links against the plan
    3. Writes one file per section, or one merged file
    4. Copies images (and other assets in unzip mode)
    5. Localizes remote images when requested
    """

    def __init__(self, config: Dict[str, Any], logger: Optional[logging.Logger] = None,
                 output_dir: Optional[str] = None, converter: Optional[ConverterLike] = None,
                 session: Optional[requests.Session] = None):
        """
        Initialize the markdown exporter.

        Args:
            config: Configuration dictionary with convert/download settings
            logger: Logger instance
            output_dir: Optional output directory override (takes precedence over config)
            converter: HTML to Markdown strategy (markdownify-based by default)
            session: requests session used for image localization
        """
        self.config = config
        self.logger = logger or logging.getLogger('epub2md.exporters.markdown_exporter')
        self.converter = converter
        self.session = session

        convert_config = config.get('convert', {})
        configured_dir = output_dir or convert_config.get('output_directory')
        self.output_directory = Path(configured_dir) if configured_dir else None
        self.overwrite = convert_config.get('overwrite', True)
        self.skip_unchanged = convert_config.get('skip_unchanged', True)
        self.front_matter = convert_config.get('front_matter', False)
        self.skip_ids = convert_config.get('skip_ids', ['titlepage'])
        self.image_directory = convert_config.get('image_directory', 'images')
        self.static_directory = convert_config.get('static_directory', 'static')

        download_config = config.get('download', {})
        self.max_workers = download_config.get('max_workers', 4)
        self.timeout = download_config.get('timeout', 30)
        self.user_agent = download_config.get('user_agent') or DEFAULT_USER_AGENT

        self.stats = self._new_stats()

    @staticmethod
    def _new_stats() -> Dict[str, Any]:
        return {
            'markdown_written': 0,
            'images_written': 0,
            'static_written': 0,
            'unchanged': 0,
            'skipped_existing': 0,
            'skipped_empty': 0,
            'images_downloaded': 0,
            'images_failed': 0,
            'errors': [],
            'output_paths': []
        }

    def export(self, epub_path: Union[str, Path], options: Optional[RunOptions] = None) -> Dict[str, Any]:
        """
        Convert one archive.

        Args:
            epub_path: Path of the EPUB file
            options: Run options (merge, localize, unzip, autocorrect)

        Returns:
            Statistics dictionary with export results

        Raises:
            ArchiveEntryNotFound: If container, OPF or TOC is missing
            MalformedPackage: If the package structure is invalid
        """
        options = options or RunOptions()
        self.stats = self._new_stats()
        out_dir = self.output_directory or default_output_dir(epub_path)

        self.logger.info(f"Converting {epub_path} to {out_dir}")
        with parse_epub(epub_path, ParserOptions(converter=self.converter), logger=self.logger) as document:
            self._export_document(document, out_dir, options)

        self._log_export_summary(out_dir)
        return self.stats.copy()

    def _export_document(self, document: EpubDocument, out_dir: Path, options: RunOptions) -> None:
        cache = ConversionCache()
        plan = OutputPlanner(
            document,
            unzip=options.unzip,
            skip_ids=self.skip_ids,
            image_directory=self.image_directory,
            static_directory=self.static_directory,
            cache=cache,
            logger=self.logger
        ).plan()

        writer = FileWriter(out_dir, overwrite=self.overwrite,
                            skip_unchanged=self.skip_unchanged, logger=self.logger)
        rewriter = LinkRewriter(document, plan, should_merge=options.should_merge,
                                image_directory=self.image_directory, cache=cache, logger=self.logger)
        assembler = MergeAssembler(logger=self.logger) if options.should_merge else None
        remote_images: List[str] = []

        # all paths are planned before any content is rewritten
        markdown_entries = plan.markdown_entries
        with ProgressTracker(total_items=len(markdown_entries), item_type='sections') as tracker:
            for entry in markdown_entries:
                success = self._export_section(document, entry, rewriter, writer, assembler,
                                               remote_images, cache, options.autocorrect)
                tracker.increment(success=success)

        self._export_assets(document, plan, writer)

        if assembler is not None:
            name = merged_file_name(out_dir.name, options.merged_filename)
            front_matter = self._generate_frontmatter(document) if self.front_matter else ''
            self._write(writer, name, assembler.assemble(front_matter), 'markdown_written', entry_id=None)

        if remote_images:
            self._localize_images(remote_images, out_dir, options.localize)

        self.logger.debug(f"Conversion cache: {cache.get_stats()}")

    def _export_section(self, document: EpubDocument, entry: OutputPlanEntry, rewriter: LinkRewriter,
                        writer: FileWriter, assembler: Optional[MergeAssembler],
                        remote_images: List[str], cache: ConversionCache,
                        autocorrect: bool = False) -> bool:
        """Convert, rewrite and write (or queue for merging) one section."""
        try:
            section = document.get_section(entry.id)
            markdown = cache.markdown(entry.id, section.to_markdown)
            if not markdown.strip():
                self.logger.info(f"Section '{entry.id}' has no content, not written")
                self.stats['skipped_empty'] += 1
                if assembler is not None:
                    # links rewritten to '#<id>' still need their target
                    assembler.add(entry.id, '')
                return True

            result = rewriter.rewrite(markdown, entry)
            remote_images.extend(result.remote_images)

            content = result.markdown
            if autocorrect:
                # CJK/Latin spacing and punctuation
                content = autocorrect_py.format(content)

            if assembler is not None:
                assembler.add(entry.id, content)
                return True

            if self.front_matter:
                content = f"{self._generate_frontmatter(document, entry)}\n\n{content}"
            self._write(writer, entry.output_path, content, 'markdown_written', entry.id)
            return True

        except Epub2MdError as e:
            self._record_error(entry, e)
        except Exception as e:
            self.logger.error(f"Unexpected error exporting section '{entry.id}': {e}", exc_info=True)
            self.stats['errors'].append({'id': entry.id, 'path': entry.output_path, 'error': str(e)})
        return False

    def _export_assets(self, document: EpubDocument, plan: OutputPlan, writer: FileWriter) -> None:
        for entry in plan.asset_entries:
            stat_key = 'images_written' if entry.kind == EntryKind.IMAGE else 'static_written'
            try:
                data = document.read('/' + entry.source_path).as_bytes()
                if not data:
                    self.logger.info(f"Asset '{entry.id}' is empty, not written")
                    self.stats['skipped_empty'] += 1
                    continue
                self._write(writer, entry.output_path, data, stat_key, entry.id)
            except Epub2MdError as e:
                self._record_error(entry, e)

    def _write(self, writer: FileWriter, relative_path: str, content: Union[str, bytes],
               stat_key: str, entry_id: Optional[str]) -> None:
        """Write one file and count the outcome; WriteFailure propagates."""
        outcome = writer.write(relative_path, content)
        if outcome == UNCHANGED:
            self.stats['unchanged'] += 1
        elif outcome == SKIPPED:
            self.stats['skipped_existing'] += 1
        else:
            self.stats[stat_key] += 1
        self.stats['output_paths'].append(str(writer.path_for(relative_path)))

    def _record_error(self, entry: OutputPlanEntry, error: Exception) -> None:
        self.logger.error(f"Failed to export '{entry.id}' ({entry.source_path}): {error}")
        self.stats['errors'].append({
            'id': entry.id,
            'path': entry.output_path,
            'error': str(error)
        })

    def _localize_images(self, urls: List[str], out_dir: Path, localize: bool) -> None:
        if not localize:
            self.logger.warning(
                f"{len(set(urls))} remote image(s) detected, use --localize to download them"
            )
            return

        downloader = ImageDownloader(
            out_dir / self.image_directory,
            max_workers=self.max_workers,
            timeout=self.timeout,
            user_agent=self.user_agent,
            session=self.session,
            logger=self.logger
        )
        download_stats = downloader.download_all(urls)
        self.stats['images_downloaded'] += download_stats['downloaded']
        self.stats['images_failed'] += download_stats['failed']
        if self.session is None:
            downloader.close()

    def _generate_frontmatter(self, document: EpubDocument,
                              entry: Optional[OutputPlanEntry] = None) -> str:
        """
        YAML front matter with book metadata and, per chapter, its position.

        Returns:
            YAML frontmatter string
        """
        metadata = document.metadata
        frontmatter: Dict[str, Any] = {}
        if metadata.title:
            frontmatter['title'] = metadata.title
        if metadata.author:
            frontmatter['author'] = list(metadata.author)
        if metadata.language:
            frontmatter['language'] = metadata.language
        if metadata.publisher:
            frontmatter['publisher'] = metadata.publisher
        if entry is not None:
            if entry.title:
                frontmatter['chapter'] = entry.title
            frontmatter['section_id'] = entry.id
            frontmatter['order'] = int(entry.order_label)

        yaml_str = yaml.dump(
            frontmatter,
            default_flow_style=False,  # Forces block style for lists/arrays
            allow_unicode=True,
            sort_keys=False,
            width=1000  # Prevent line wrapping
        )
        return f"---\n{yaml_str}---"

    def _log_export_summary(self, out_dir: Path) -> None:
        """Log final export statistics."""
        log_section("Markdown export summary")
        self.logger.info(f"Markdown files written: {self.stats['markdown_written']}")
        self.logger.info(f"Images written: {self.stats['images_written']}")
        if self.stats['static_written']:
            self.logger.info(f"Static files written: {self.stats['static_written']}")
        if self.stats['unchanged']:
            self.logger.info(f"Files unchanged: {self.stats['unchanged']}")
        if self.stats['skipped_existing']:
            self.logger.info(f"Existing files kept: {self.stats['skipped_existing']}")
        if self.stats['images_downloaded'] or self.stats['images_failed']:
            self.logger.info(
                f"Remote images: {self.stats['images_downloaded']} downloaded, "
                f"{self.stats['images_failed']} failed"
            )
        self.logger.info(f"Errors: {len(self.stats['errors'])}")
        self.logger.info(f"Output directory: {out_dir}")


__all__ = ['MarkdownExporter', 'default_output_dir']
