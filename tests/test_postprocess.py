"""Tests for finding image references in pages."""
import logging

import pytest
from bs4 import BeautifulSoup

from conftest import write_image
from responsive_images.markup import PageContext
from responsive_images.postprocess import (
    extract_dom_attributes,
    parse_inline_reference,
    process_html,
    replace_inline_images,
    site_relative_source,
)


class StubRenderer:
    """Records render requests and returns a recognisable placeholder."""

    def __init__(self, markup='<picture data-stub="{path}"></picture>'):
        self.calls = []
        self.markup = markup

    def render(self, page, source_path, raw_attributes, preset_name=None):
        self.calls.append((page.destination, source_path, dict(raw_attributes), preset_name))
        return self.markup.format(path=source_path)


@pytest.fixture
def stub():
    return StubRenderer()


# ---------------------------------------------------------------------------
# Source paths
# ---------------------------------------------------------------------------

class TestSiteRelativeSource:
    @pytest.mark.parametrize('src,page,expected', [
        ('../media/photo.jpg', PageContext('blog/post.html', '../'), 'media/photo.jpg'),
        ('media/photo.jpg', PageContext('blog/post.html', '../'), 'blog/media/photo.jpg'),
        ('/media/photo.jpg', PageContext('blog/post.html', '../'), 'media/photo.jpg'),
        ('https://example.org/media/a%20b.jpg', PageContext('post.html', 'https://example.org/'),
         'media/a b.jpg'),
        ('./media/photo.jpg', PageContext('index.html', ''), 'media/photo.jpg'),
    ])
    def test_paths(self, src, page, expected):
        assert site_relative_source(src, page) == expected


# ---------------------------------------------------------------------------
# DOM markers
# ---------------------------------------------------------------------------

class TestExtractDomAttributes:
    def test_split(self):
        options, others, preset = extract_dom_attributes({
            'src': 'a.jpg',
            'class': ['one', 'two'],
            'data-responsive': 'hero',
            'data-responsive-max-width': '900',
            'data-other': 'x',
        })
        assert options == {'max-width': '900'}
        assert others == {'src': 'a.jpg', 'class': 'one two', 'data-other': 'x'}
        assert preset == 'hero'

    def test_preset_attribute(self):
        _, _, preset = extract_dom_attributes({'data-responsive': '', 'data-responsive-preset': 'thumb'})
        assert preset == 'thumb'

    def test_bare_marker_has_no_preset(self):
        _, _, preset = extract_dom_attributes({'data-responsive': ''})
        assert preset is None


class TestProcessHtml:
    def test_page_without_marker_is_untouched(self, stub, page):
        html = '<html><body><img src="a.jpg"></body></html>'
        assert process_html(html, page, stub) is html
        assert stub.calls == []

    def test_marked_image_is_replaced(self, stub, page):
        html = (
            '<html><body><p>before</p>'
            '<img src="../media/photo.jpg" alt="Hop" class="wide" data-responsive="hero" '
            'data-responsive-max-width="900">'
            '<img src="../media/other.jpg">'
            '</body></html>'
        )
        result = process_html(html, page, stub)
        soup = BeautifulSoup(result, 'html.parser')

        assert soup.find('picture', attrs={'data-stub': 'media/photo.jpg'}) is not None
        assert soup.find('img', attrs={'data-responsive': True}) is None
        assert soup.find('img', src='../media/other.jpg') is not None
        assert stub.calls == [(
            'blog/post.html',
            'media/photo.jpg',
            {'alt': 'Hop', 'class': 'wide', 'max-width': '900'},
            'hero',
        )]

    def test_every_marked_image_is_rendered(self, stub, page):
        html = ''.join(f'<img src="../media/{n}.jpg" data-responsive>' for n in range(3))
        result = process_html(html, page, stub)
        assert [call[1] for call in stub.calls] == ['media/0.jpg', 'media/1.jpg', 'media/2.jpg']
        assert result.count('<picture') == 3

    def test_empty_src_is_skipped(self, stub, page, caplog):
        html = '<img src="" data-responsive>'
        with caplog.at_level(logging.WARNING):
            result = process_html(html, page, stub)
        assert stub.calls == []
        assert 'cannot be empty' in caplog.text
        assert 'blog/post.html' in caplog.text
        assert 'data-responsive' in result

    def test_untouched_markup_is_kept_verbatim(self, stub, page):
        html = (
            '<!DOCTYPE html>\n<p>Caf&eacute;&nbsp;<br>\n<IMG SRC="a.jpg"></p>'
            '<img alt="x > y" src="../media/photo.jpg" data-responsive>'
            '<p>after &amp; done</p>'
        )
        result = process_html(html, page, stub)
        assert result == (
            '<!DOCTYPE html>\n<p>Caf&eacute;&nbsp;<br>\n<IMG SRC="a.jpg"></p>'
            '<picture data-stub="media/photo.jpg"></picture>'
            '<p>after &amp; done</p>'
        )
        assert stub.calls[0][2] == {'alt': 'x > y'}

    def test_text_result_replaces_image(self, page):
        renderer = StubRenderer('Responsive Image Plugin: File [{path}] does not exist.')
        result = process_html('<p><img src="../gone.jpg" data-responsive></p>', page, renderer)
        assert result == '<p>Responsive Image Plugin: File [gone.jpg] does not exist.</p>'


# ---------------------------------------------------------------------------
# Inline markers
# ---------------------------------------------------------------------------

class TestParseInlineReference:
    def test_path_only(self):
        assert parse_inline_reference('hop.jpg', None) == ('hop.jpg', '', {})

    def test_caption_and_options(self):
        path, caption, options = parse_inline_reference(
            'hop.jpg', 'Hop &amp; skip|preset=hero|max-width=1200, frame=figure'
        )
        assert path == 'hop.jpg'
        assert caption == 'Hop & skip'
        assert options == {'preset': 'hero', 'max-width': '1200', 'frame': 'figure'}

    def test_options_without_caption(self):
        _, caption, options = parse_inline_reference('hop.jpg', 'hidpi=true')
        assert caption == ''
        assert options == {'hidpi': 'true'}

    def test_stray_segment_is_ignored(self, caplog):
        with caplog.at_level(logging.WARNING):
            _, caption, options = parse_inline_reference('hop.jpg', 'Caption|oops')
        assert caption == 'Caption'
        assert options == {}
        assert 'oops' in caplog.text


class TestReplaceInlineImages:
    @staticmethod
    def _img(text):
        return BeautifulSoup(text, 'html.parser').find('img')

    def test_paragraph_wrapper_is_dropped(self, page):
        text = '<p>Intro</p>\n<p>[[hop.jpg|Hop]]</p>\n<p>Outro</p>'
        result = replace_inline_images(text, page, base='images')
        assert result.startswith('<p>Intro</p>\n<img ')
        assert result.endswith('>\n<p>Outro</p>')
        img = self._img(result)
        assert img['src'] == '/images/hop.jpg'
        assert img['alt'] == 'Hop'
        assert img['data-responsive'] == ''

    def test_marker_inside_text(self, page):
        result = replace_inline_images('<p>See [[cats/tom.png]] here</p>', page, base='')
        assert result.startswith('<p>See <img ')
        assert result.endswith('> here</p>')
        assert self._img(result)['src'] == '/cats/tom.png'

    def test_absolute_path_ignores_base(self, page):
        result = replace_inline_images('[[/media/hop.jpg]]', page, base='images')
        assert self._img(result)['src'] == '/media/hop.jpg'

    def test_preset_and_options_become_attributes(self, page):
        result = replace_inline_images('[[hop.JPG|Hop|preset=hero|hidpi=true, max-width=900]]', page)
        img = self._img(result)
        assert img['src'] == '/images/hop.JPG'
        assert img['data-responsive'] == 'hero'
        assert img['data-responsive-hidpi'] == 'true'
        assert img['data-responsive-max-width'] == '900'

    def test_absolute_site_url_prefix(self, page):
        result = replace_inline_images('[[my photo.jpg|A & B]]', page, url_prefix='https://example.org/')
        img = self._img(result)
        assert img['src'] == 'https://example.org/images/my%20photo.jpg'
        assert img['alt'] == 'A & B'

    def test_non_image_markers_are_left_alone(self, page):
        text = '<p>[[wiki link]] and [[notes.txt]]</p>'
        assert replace_inline_images(text, page) == text

    @pytest.mark.parametrize('destination,site_path,expected', [
        ('blog/post.html', '../', '../images/responsive/images-hop.jpg@1600px.jpeg'),
        ('index.html', './', './images/responsive/images-hop.jpg@1600px.jpeg'),
        ('category/travel/index.html', '../../', '../../images/responsive/images-hop.jpg@1600px.jpeg'),
    ])
    def test_rendered_urls_follow_each_page(self, renderer, content_dir, destination, site_path, expected):
        write_image(content_dir / 'images' / 'hop.jpg')
        article_page = PageContext('blog/post.html', '../')
        content = replace_inline_images('<p>[[hop.jpg|Hop]]</p>', article_page)

        page = PageContext(destination, site_path)
        html = process_html(f'<html><body>{content}</body></html>', page, renderer)
        img = BeautifulSoup(html, 'html.parser').find('picture').find('img')
        assert img['src'] == expected
        assert img['alt'] == 'Hop'
