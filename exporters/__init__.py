"""Markdown export package for the EPUB to Markdown converter.

Package Structure:
- markdown_exporter: Main orchestrator exporting one parsed archive to disk
- output_planner: Decides kind, order label and path of every manifest entry
- link_rewriter: Rewrites links and images against the output plan
- merge_assembler: Joins sections into a single anchored document
- markdown_merger: Merges an already exported directory
- image_downloader: Concurrent download of remote images
- file_writer: Writes files with overwrite / skip-unchanged semantics
- conversion_cache: Per-run memoization of lookups and conversions

Configuration Referenced:
- convert.*: output directory, merge, front matter, skip ids
- download.*: worker count, timeout and user agent for image localization
"""

from .conversion_cache import ConversionCache
from .file_writer import FileWriter
from .image_downloader import ImageDownloader
from .link_rewriter import LinkRewriter, RewriteResult
from .markdown_exporter import MarkdownExporter, default_output_dir
from .markdown_merger import merge_markdowns
from .merge_assembler import MergeAssembler
from .output_planner import OutputPlan, OutputPlanner, sanitize_file_name

__all__ = [
    'ConversionCache',
    'FileWriter',
    'ImageDownloader',
    'LinkRewriter',
    'RewriteResult',
    'MarkdownExporter',
    'default_output_dir',
    'merge_markdowns',
    'MergeAssembler',
    'OutputPlan',
    'OutputPlanner',
    'sanitize_file_name'
]
