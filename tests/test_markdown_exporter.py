"""End-to-end tests of the Markdown exporter on the sample book."""

import logging

import pytest
import yaml

from exporters.markdown_exporter import MarkdownExporter, default_output_dir
from models import Command, RunOptions
from conftest import PNG_BYTES, REMOTE_IMAGE_URL, FakeSession, sample_files, xhtml


def read(path):
    return path.read_text(encoding='utf-8')


class TestPerFileExport:
    """Default topology: one Markdown file per section."""

    @pytest.fixture
    def out_dir(self, tmp_path):
        return tmp_path / 'out'

    @pytest.fixture
    def stats(self, sample_epub, out_dir):
        return MarkdownExporter({}, output_dir=str(out_dir)).export(sample_epub)

    def test_files_written(self, stats, out_dir):
        assert sorted(p.name for p in out_dir.iterdir()) == [
            '1-Chapter_One.md', '2-Chapter_Two.md', '3-appendix.md', 'images'
        ]
        assert (out_dir / 'images' / 'cover.png').read_bytes() == PNG_BYTES
        assert stats['markdown_written'] == 3
        assert stats['images_written'] == 1
        assert stats['errors'] == []
        assert len(stats['output_paths']) == 4

    def test_no_static_directory_without_unzip(self, stats, out_dir):
        assert not (out_dir / 'static').exists()

    def test_links_are_rewritten(self, stats, out_dir):
        chapter_one = read(out_dir / '1-Chapter_One.md')
        assert '[the next chapter](./2-Chapter_Two.md#part2)' in chapter_one
        assert '[this section](./1-Chapter_One.md#s11)' in chapter_one
        assert '[the site](https://example.com/)' in chapter_one
        assert '![Cover](./images/cover.png)' in chapter_one
        assert '![Remote](./images/remote.jpg)' in chapter_one

        chapter_two = read(out_dir / '2-Chapter_Two.md')
        assert '[the start](./1-Chapter_One.md)' in chapter_two
        assert '[broken link](missing.xhtml)' in chapter_two
        assert '<a id="part2"></a>Second part.' in chapter_two

    def test_remote_images_are_reported(self, sample_epub, out_dir, caplog):
        with caplog.at_level(logging.WARNING):
            stats = MarkdownExporter({}, output_dir=str(out_dir)).export(sample_epub)
        assert '--localize' in caplog.text
        assert stats['images_downloaded'] == 0
        assert not (out_dir / 'images' / 'remote.jpg').exists()

    def test_second_run_leaves_files_unchanged(self, sample_epub, stats, out_dir):
        again = MarkdownExporter({}, output_dir=str(out_dir)).export(sample_epub)
        assert again['markdown_written'] == 0
        assert again['images_written'] == 0
        assert again['unchanged'] == 4

    def test_overwrite_disabled(self, sample_epub, stats, out_dir):
        (out_dir / '3-appendix.md').write_text('edited', encoding='utf-8')
        config = {'convert': {'overwrite': False}}
        again = MarkdownExporter(config, output_dir=str(out_dir)).export(sample_epub)
        assert read(out_dir / '3-appendix.md') == 'edited'
        assert again['skipped_existing'] == 1


class TestMergedExport:
    """Single merged document."""

    def test_merged_file(self, sample_epub):
        stats = MarkdownExporter({}).export(sample_epub, RunOptions(should_merge=True))
        out_dir = default_output_dir(sample_epub)
        merged = out_dir / 'sample-merged.md'

        assert sorted(p.name for p in out_dir.iterdir()) == ['images', 'sample-merged.md']
        assert stats['markdown_written'] == 1

        content = read(merged)
        assert content.startswith('<a id="ch1"></a>\n')
        assert '\n\n---\n\n<a id="ch2"></a>\n' in content
        assert '\n\n---\n\n<a id="appendix"></a>\n' in content
        assert '[the next chapter](#ch2)' in content
        assert '[this section](#ch1)' in content
        assert '![Cover](./images/cover.png)' in content
        assert content.index('Chapter One') < content.index('Chapter Two') < content.index('Appendix')

    def test_empty_section_keeps_its_anchor(self, write_epub, tmp_path):
        files = sample_files()
        files['OEBPS/text/chapter2.xhtml'] = xhtml('Chapter Two', '<p> </p>')
        out_dir = tmp_path / 'merged'

        stats = MarkdownExporter({}, output_dir=str(out_dir)).export(
            write_epub(files), RunOptions(should_merge=True)
        )

        content = read(out_dir / 'merged-merged.md')
        assert stats['skipped_empty'] == 1
        assert '[the next chapter](#ch2)' in content
        assert content.count('<a id="ch2"></a>') == 1

    def test_custom_merged_name(self, sample_epub, tmp_path):
        out_dir = tmp_path / 'merged'
        options = RunOptions(should_merge=True, merged_filename='book.md')
        MarkdownExporter({}, output_dir=str(out_dir)).export(sample_epub, options)
        assert (out_dir / 'book.md').exists()


class TestExportModes:
    def test_unzip_keeps_other_assets(self, sample_epub, tmp_path):
        out_dir = tmp_path / 'raw'
        stats = MarkdownExporter({}, output_dir=str(out_dir)).export(
            sample_epub, RunOptions(command=Command.UNZIP)
        )
        assert read(out_dir / 'static' / 'main.css') == 'body { margin: 0; }\n'
        assert stats['static_written'] == 1

    def test_localize_downloads_remote_images(self, sample_epub, tmp_path, fake_session):
        out_dir = tmp_path / 'local'
        exporter = MarkdownExporter({}, output_dir=str(out_dir), session=fake_session)
        stats = exporter.export(sample_epub, RunOptions(localize=True))

        assert (out_dir / 'images' / 'remote.jpg').read_bytes() == b'remote-jpeg-data'
        assert stats['images_downloaded'] == 1
        assert stats['images_failed'] == 0
        assert fake_session.requested == [REMOTE_IMAGE_URL]

    def test_failed_download_does_not_fail_export(self, sample_epub, tmp_path):
        session = FakeSession(failing=[REMOTE_IMAGE_URL])
        out_dir = tmp_path / 'local'
        stats = MarkdownExporter({}, output_dir=str(out_dir), session=session).export(
            sample_epub, RunOptions(localize=True)
        )
        assert stats['images_failed'] == 1
        assert stats['errors'] == []
        assert (out_dir / '1-Chapter_One.md').exists()

    def test_autocorrect_formats_each_section(self, write_epub, tmp_path):
        files = sample_files()
        files['OEBPS/text/appendix.xhtml'] = xhtml('Appendix', '<p>使用Python编程</p>')
        out_dir = tmp_path / 'fixed'
        MarkdownExporter({}, output_dir=str(out_dir)).export(
            write_epub(files), RunOptions(command=Command.AUTOCORRECT, should_merge=True)
        )
        content = read(out_dir / 'fixed-merged.md')
        assert '使用 Python 编程' in content
        assert '[the next chapter](#ch2)' in content

    def test_convert_leaves_text_alone(self, write_epub, tmp_path):
        files = sample_files()
        files['OEBPS/text/appendix.xhtml'] = xhtml('Appendix', '<p>使用Python编程</p>')
        out_dir = tmp_path / 'plain'
        MarkdownExporter({}, output_dir=str(out_dir)).export(write_epub(files))
        assert '使用Python编程' in read(out_dir / '3-appendix.md')

    def test_front_matter(self, sample_epub, tmp_path):
        out_dir = tmp_path / 'fm'
        config = {'convert': {'front_matter': True}}
        MarkdownExporter(config, output_dir=str(out_dir)).export(sample_epub)

        content = read(out_dir / '2-Chapter_Two.md')
        assert content.startswith('---\n')
        front_matter = yaml.safe_load(content.split('---\n')[1])
        assert front_matter == {
            'title': 'Sample Book',
            'author': ['Jane Doe', 'John Roe'],
            'language': 'en',
            'publisher': 'Example Press',
            'chapter': 'Chapter Two',
            'section_id': 'ch2',
            'order': 2,
        }

    def test_custom_converter(self, sample_epub, tmp_path):
        out_dir = tmp_path / 'custom'
        exporter = MarkdownExporter({}, output_dir=str(out_dir), converter=lambda html: 'same text')
        exporter.export(sample_epub)
        assert read(out_dir / '3-appendix.md') == 'same text'


class TestExportErrors:
    """Per-entry failures are recorded, siblings continue."""

    def test_missing_section_file(self, write_epub, tmp_path):
        files = sample_files()
        del files['OEBPS/text/chapter2.xhtml']
        epub = write_epub(files)
        out_dir = tmp_path / 'out'

        stats = MarkdownExporter({}, output_dir=str(out_dir)).export(epub)

        assert [error['id'] for error in stats['errors']] == ['ch2']
        assert stats['errors'][0]['path'] == '2-Chapter_Two.md'
        assert (out_dir / '1-Chapter_One.md').exists()
        assert (out_dir / '3-appendix.md').exists()
        assert not (out_dir / '2-Chapter_Two.md').exists()

    def test_empty_section_is_not_written(self, write_epub, tmp_path):
        files = sample_files()
        files['OEBPS/text/appendix.xhtml'] = xhtml('Appendix', '<p>   </p>')
        out_dir = tmp_path / 'out'

        stats = MarkdownExporter({}, output_dir=str(out_dir)).export(write_epub(files))

        assert stats['skipped_empty'] == 1
        assert not (out_dir / '3-appendix.md').exists()


class TestDefaultOutputDir:
    def test_strips_epub_extension(self, tmp_path):
        assert default_output_dir(tmp_path / 'book.epub') == tmp_path / 'book'
        assert default_output_dir(tmp_path / 'Book.EPUB') == tmp_path / 'Book'

    def test_other_extension(self, tmp_path):
        assert default_output_dir(tmp_path / 'book.zip') == tmp_path / 'book.zip-markdown'
