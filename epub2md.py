#!/usr/bin/env python3
"""
EPUB to Markdown Converter - Main CLI Entry Point

Converts EPUB publications into Markdown: one file per chapter or a single
merged document, with images extracted and internal links rewritten.
"""

import argparse
import glob
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from config_loader import ConfigLoader, get_nested
from errors import Epub2MdError
from logger import setup_logging, log_section, log_config
from models import Command, RunOptions
from epub import parse_epub
from exporters import MarkdownExporter, merge_markdowns

# Version
__version__ = "1.0.0"

GLOB_CHARS = ('*', '?', '[')
PREVIEW_LENGTH = 200


def create_argument_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for CLI."""
    parser = argparse.ArgumentParser(
        prog='epub2md',
        description="Convert EPUB publications to Markdown",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # One Markdown file per chapter
  epub2md convert book.epub

  # Single merged file, custom name
  epub2md convert --merged-name book.md book.epub

  # Download remote images as well
  epub2md convert --localize "library/*.epub"

  # Keep every file of the archive (css, fonts) under static/
  epub2md unzip book.epub

  # Fix spacing between CJK and Latin text in every chapter
  epub2md autocorrect book.epub

  # Merge a previously converted directory
  epub2md merge book/

  # Inspect a publication
  epub2md info book.epub
  epub2md structure book.epub
        """
    )

    parser.add_argument(
        '--version',
        action='version',
        version=f'%(prog)s {__version__}'
    )

    parser.add_argument(
        '--config',
        type=str,
        default=None,
        help='Path to configuration YAML file'
    )

    parser.add_argument(
        '--log-file',
        type=str,
        help='Also write logs to this file'
    )

    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Explicit log level (overrides -v)'
    )

    parser.add_argument(
        '-v', '--verbose',
        action='count',
        default=0,
        help='Increase verbosity (-v for INFO, -vv for DEBUG)'
    )

    subparsers = parser.add_subparsers(dest='command', metavar='command')
    subparsers.required = True

    for command, help_text in (
        (Command.INFO, 'Print book metadata as JSON'),
        (Command.STRUCTURE, 'Print the table of contents as JSON'),
        (Command.SECTIONS, 'Print sections with a Markdown preview as JSON'),
    ):
        sub = subparsers.add_parser(command.value, help=help_text)
        sub.add_argument('paths', nargs='+', help='EPUB files or glob patterns')

    for command, help_text in (
        (Command.CONVERT, 'Convert to Markdown (one file per chapter by default)'),
        (Command.UNZIP, 'Convert and keep non-image assets under static/'),
        (Command.AUTOCORRECT, 'Convert and fix CJK/Latin spacing and punctuation'),
    ):
        sub = subparsers.add_parser(command.value, help=help_text)
        sub.add_argument('paths', nargs='+', help='EPUB files or glob patterns')
        sub.add_argument(
            '-o', '--output',
            type=str,
            help='Output directory (default: archive path without .epub)'
        )
        sub.add_argument(
            '-m', '--merge',
            action='store_true',
            help='Write a single merged file'
        )
        sub.add_argument(
            '--merged-name',
            metavar='NAME',
            help='Name of the merged file (implies --merge, default: <dirname>-merged.md)'
        )
        sub.add_argument(
            '-l', '--localize',
            action='store_true',
            help='Download remote images into the images directory'
        )
        sub.add_argument(
            '--front-matter',
            action='store_true',
            help='Start every written file with YAML front matter'
        )

    sub = subparsers.add_parser(Command.MERGE.value, help='Merge an already converted directory')
    sub.add_argument('directory', help='Directory written by a previous conversion')
    sub.add_argument('name', nargs='?', help='Merged file name (default: <dirname>-merged.md)')

    return parser


def expand_paths(patterns: List[str], logger: logging.Logger) -> List[str]:
    """Expand glob patterns; plain paths are kept as given."""
    paths: List[str] = []
    for pattern in patterns:
        if any(char in pattern for char in GLOB_CHARS):
            matches = sorted(glob.glob(pattern))
            if not matches:
                logger.warning(f"No file matches pattern: {pattern}")
            paths.extend(matches)
        else:
            paths.append(pattern)
    return paths


def run_inspect(command: Command, path: str, logger: logging.Logger) -> Any:
    """Data printed by the info, structure and sections commands."""
    with parse_epub(path, logger=logger) as document:
        if command == Command.INFO:
            return document.info()
        if command == Command.STRUCTURE:
            return document.toc.to_list()

        sections = []
        for section in document.sections:
            try:
                preview = section.to_markdown()[:PREVIEW_LENGTH]
            except Epub2MdError as e:
                logger.warning(f"Section '{section.id}' could not be converted: {e}")
                preview = None
            sections.append({'id': section.id, 'markdown_preview': preview})
        return sections


def run_conversion(config: Dict[str, Any], command: Command, paths: List[str],
                   logger: logging.Logger) -> int:
    """Convert every archive; returns the exit code."""
    options = RunOptions(
        command=command,
        should_merge=bool(get_nested(config, 'convert.merge', False)),
        localize=bool(get_nested(config, 'convert.localize', False)),
        merged_filename=get_nested(config, 'convert.merged_filename')
    )
    exporter = MarkdownExporter(config, logger=logger)

    exit_code = 0
    for path in paths:
        log_section(f"Converting {Path(path).name}")
        try:
            stats = exporter.export(path, options)
        except Epub2MdError as e:
            logger.error(f"Conversion of {path} failed: {e}")
            exit_code = 1
            continue

        if stats['errors']:
            logger.warning(f"{path} converted with {len(stats['errors'])} error(s)")
            exit_code = 1
        else:
            logger.info(f"{path} converted successfully")
    return exit_code


def run(config: Dict[str, Any], args: argparse.Namespace, logger: logging.Logger) -> int:
    """Dispatch the selected command."""
    command = Command(args.command)

    if command == Command.MERGE:
        target = merge_markdowns(args.directory, args.name, logger=logger)
        print(target)
        return 0

    paths = expand_paths(args.paths, logger)
    if not paths:
        logger.error("No input file to process")
        return 2

    missing = [path for path in paths if not Path(path).is_file()]
    if missing:
        for path in missing:
            logger.error(f"File not found: {path}")
        return 2

    if command in (Command.CONVERT, Command.UNZIP, Command.AUTOCORRECT):
        return run_conversion(config, command, paths, logger)

    results = [run_inspect(command, path, logger) for path in paths]
    output = results[0] if len(results) == 1 else results
    print(json.dumps(output, ensure_ascii=False, indent=2))
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the CLI."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)

    try:
        config_loader = ConfigLoader()
        config = config_loader.load(args.config)

        # CLI takes precedence over the config file
        config = config_loader.merge_with_args(config, args)
        if not get_nested(config, 'download.user_agent'):
            config['download']['user_agent'] = f"epub2md/{__version__}"
        config_loader.validate(config)

        setup_logging(
            verbosity=args.verbose,
            log_file=get_nested(config, 'logging.file'),
            level=get_nested(config, 'logging.level')
        )
        logger = logging.getLogger('epub2md.cli')

        log_section("EPUB to Markdown Converter")
        logger.info(f"Version: {__version__}")
        log_config(config)

        return run(config, args, logger)

    except FileNotFoundError as e:
        print(f"ERROR: File not found: {e}", file=sys.stderr)
        return 2
    except ValueError as e:
        print(f"ERROR: Configuration error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        print("\nConversion interrupted by user", file=sys.stderr)
        return 130
    except Epub2MdError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logging.getLogger('epub2md.cli').error(f"Unexpected error: {e}", exc_info=True)
        print(f"ERROR: Unexpected error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
