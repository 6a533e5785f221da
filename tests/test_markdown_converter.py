"""Tests for the default HTML to Markdown strategy."""

import pytest

from converters import default_converter
from converters.base_converter import BaseHtmlConverter, CallableConverter, as_converter
from converters.html_cleaner import HtmlCleaner
from converters.markdown_converter import MarkdownConverter


class TestMarkdownConverter:
    """markdownify-based conversion of chapter XHTML."""

    def setup_method(self):
        self.converter = MarkdownConverter()

    def test_heading_and_paragraph(self):
        assert self.converter.convert('<h1>Title</h1><p>Text</p>') == '# Title\n\nText'

    def test_empty_input(self):
        assert self.converter.convert('') == ''
        assert self.converter.convert('   \n') == ''

    def test_xhtml_document(self):
        html = (
            '<?xml version="1.0" encoding="utf-8"?>\n<!DOCTYPE html>\n'
            '<html xmlns="http://www.w3.org/1999/xhtml"><head><title>Head title</title></head>'
            '<body><p>Body text</p></body></html>'
        )
        result = self.converter.convert(html)
        assert result == 'Body text'

    def test_link(self):
        result = self.converter.convert('<p>See <a href="ch2.xhtml#part">next</a>.</p>')
        assert result == 'See [next](ch2.xhtml#part).'

    def test_link_title_is_kept(self):
        result = self.converter.convert('<p><a href="a.xhtml" title="Go">x</a></p>')
        assert result == '[x](a.xhtml "Go")'

    def test_link_with_spaces_is_encoded(self):
        result = self.converter.convert('<p><a href="my file.xhtml">x</a></p>')
        assert result == '[x](my%20file.xhtml)'

    def test_image(self):
        result = self.converter.convert('<p><img src="../images/a.png" alt="Alt"/></p>')
        assert result == '![Alt](../images/a.png)'

    def test_image_alt_falls_back_to_title(self):
        result = self.converter.convert('<p><img src="a.png" title="Caption"/></p>')
        assert result == '![Caption](a.png)'

    def test_linked_image(self):
        result = self.converter.convert('<p><a href="big.xhtml"><img src="a.png" alt="A"/></a></p>')
        assert result == '[![A](a.png)](big.xhtml)'

    def test_element_id_becomes_anchor(self):
        result = self.converter.convert('<h2 id="sec1">Intro</h2><p id="p1">Body</p>')
        assert '<a id="sec1"></a>' in result
        assert '<a id="p1"></a>Body' in result

    def test_named_anchor(self):
        result = self.converter.convert('<p><a name="note1"></a>Note</p>')
        assert result == '<a id="note1"></a>Note'

    def test_full_width_punctuation(self):
        result = self.converter.convert('<p>call（） and a：：b</p>')
        assert result == 'call() and a::b'

    def test_lists_use_dash_bullets(self):
        result = self.converter.convert('<ul><li>one</li><li>two</li></ul>')
        assert result == '- one\n- two'

    def test_scripts_and_styles_removed(self):
        result = self.converter.convert('<style>p{}</style><script>x()</script><p>Kept</p>')
        assert result == 'Kept'

    def test_is_a_base_converter(self):
        assert isinstance(self.converter, BaseHtmlConverter)
        assert isinstance(default_converter(), MarkdownConverter)


class TestHtmlCleaner:
    def setup_method(self):
        self.cleaner = HtmlCleaner()

    def test_clean_text_drops_declarations(self):
        text = self.cleaner.clean_text('<?xml version="1.0"?>\n<!DOCTYPE html>\n<p>x</p>')
        assert '<?xml' not in text
        assert 'DOCTYPE' not in text

    def test_clean_text_collapses_newlines(self):
        assert self.cleaner.clean_text('<p>a</p>\n\n\n<p>b</p>') == '<p>a</p>\n<p>b</p>'

    def test_self_closing_non_void_is_expanded(self):
        assert self.cleaner.clean_text('<div class="x"/>') == '<div class="x"></div>'
        assert self.cleaner.clean_text('<br/>') == '<br/>'

    def test_ids_are_hoisted(self):
        soup = self.cleaner.clean('<h1 id="t">Title</h1><table id="tab"><tr><td>1</td></tr></table>')
        heading = soup.find('h1')
        assert heading.get('id') is None
        assert heading.contents[0].name == 'a'
        assert heading.contents[0]['id'] == 't'
        assert soup.find('table').find_previous_sibling('a')['id'] == 'tab'


class TestConverterAdapters:
    def test_callable_is_wrapped(self):
        converter = as_converter(lambda html: html.strip())
        assert isinstance(converter, CallableConverter)
        assert converter.convert('  x ') == 'x'
        assert converter('  y ') == 'y'

    def test_instances_pass_through(self):
        converter = MarkdownConverter()
        assert as_converter(converter) is converter
        assert as_converter(None) is None

    def test_unsupported_type(self):
        with pytest.raises(TypeError):
            as_converter(42)
