"""Find responsive image references in pages and substitute the markup.

Two kinds of references are understood.

Image tags in the generated HTML that carry a ``data-responsive`` attribute::

    <img src="../media/images/hop.jpg" alt="Hop" data-responsive="hero"
         data-responsive-max-width="1200" class="wide">

The marker value (or ``data-responsive-preset``) names a preset, every
``data-responsive-<option>`` attribute sets an option, and all other attributes
are carried over to the rendered ``<img>``.

Inline markers in article and page content::

    [[hop.jpg]]
    [[hop.jpg|Hop hop hop]]
    [[hop.jpg|Hop hop hop|preset=hero|max-width=1200, frame=figure]]

The first segment after the path is the caption (used as ``alt`` text), the
remaining segments are ``key=value`` options separated by ``|`` or ``,``.
Inline markers are turned into marked image tags with a root-anchored ``src``
while content is parsed. The same article body shows up on pages at different
depths (the article itself, the index, category and archive pages), so the
picture markup is only rendered once each of those pages is written.
"""
from __future__ import annotations

from html import escape, unescape
import logging
import posixpath
import re
from typing import Any, Dict, Optional, Tuple
from urllib.parse import quote, unquote

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)

MARKER_ATTRIBUTE = 'data-responsive'
OPTION_PREFIX = 'data-responsive-'
IMAGE_EXTENSIONS = ('jpeg', 'jpg', 'png', 'gif', 'webp', 'avif', 'heic', 'heif', 'tiff', 'tif')

INLINE_PATTERN = re.compile(
    r"(?:(?P<prefix><p[^>]*>)\s*)?"
    r"\[\[\s*(?P<path>[^\[\]|]+?\.(?:" + '|'.join(IMAGE_EXTENSIONS) + r"))\s*"
    r"(?:\|(?P<rest>[^\[\]]*))?]]"
    r"(?(prefix)\s*</p>)",
    re.IGNORECASE,
)
OPTION_PATTERN = re.compile(r"^\s*[A-Za-z][\w-]*\s*=")
# a whole <img> start tag, quoted attribute values may contain '>'
IMG_TAG_PATTERN = re.compile(r"""<img\b(?:[^>"']|"[^"]*"|'[^']*')*>""", re.IGNORECASE)


def extract_dom_attributes(attrs: Dict[str, Any]) -> Tuple[Dict[str, str], Dict[str, str], Optional[str]]:
    """Split the attributes of a marked ``<img>`` into options and the rest."""
    options: Dict[str, str] = {}
    others: Dict[str, str] = {}
    preset = None
    for name, value in attrs.items():
        if isinstance(value, (list, tuple)):
            value = ' '.join(value)
        if name == MARKER_ATTRIBUTE:
            preset = value.strip() or None
        elif name.startswith(OPTION_PREFIX):
            option = name[len(OPTION_PREFIX):]
            if option == 'preset':
                preset = value.strip() or preset
            elif option:
                options[option] = value
        else:
            others[name] = value
    return options, others, preset


def site_relative_source(src: str, page) -> str:
    """Map an image URL as found on ``page`` to a path relative to the site root."""
    src = unquote(src.strip())
    site_path = page.site_path
    if site_path and src.startswith(site_path):
        src = src[len(site_path):]
    elif '://' not in src and not src.startswith('/'):
        src = posixpath.normpath(posixpath.join(posixpath.dirname(page.destination), src))
    return src.lstrip('/')


def _as_html(markup: str) -> str:
    if BeautifulSoup(markup, 'html.parser').find() is None:
        # plain diagnostic text, not markup
        return escape(markup, quote=False)
    return markup


def process_html(html: str, page, renderer) -> str:
    """Replace every ``img[data-responsive]`` of a page with its picture markup.

    Only the marked tags are rewritten, the rest of the page is kept byte for
    byte. Pages without marked images are returned unchanged.
    """
    if MARKER_ATTRIBUTE not in html:
        return html

    def _repl(match: re.Match) -> str:
        img = BeautifulSoup(match.group(0), 'html.parser').find('img')
        if img is None or not img.has_attr(MARKER_ATTRIBUTE):
            return match.group(0)

        options, attributes, preset = extract_dom_attributes(img.attrs)
        src = attributes.pop('src', '') or ''
        if not src.strip():
            logger.warning(
                f"responsive_images: src attribute of <img> cannot be empty on page targeted for "
                f"\"{page.destination}\""
            )
            return match.group(0)

        source_path = site_relative_source(src, page)
        return _as_html(renderer.render(page, source_path, {**attributes, **options}, preset))

    return IMG_TAG_PATTERN.sub(_repl, html)


def parse_inline_reference(path: str, rest: Optional[str]) -> Tuple[str, str, Dict[str, str]]:
    """Return the path, caption and options of an inline marker."""
    caption = ''
    options: Dict[str, str] = {}
    segments = rest.split('|') if rest else []
    for index, segment in enumerate(segments):
        if OPTION_PATTERN.match(segment):
            for pair in segment.split(','):
                if '=' not in pair:
                    continue
                key, value = pair.split('=', 1)
                options[key.strip().lower()] = unescape(value.strip())
        elif index == 0:
            caption = unescape(segment.strip())
        else:
            logger.warning(f"responsive_images: ignoring malformed option [{segment.strip()}] on {path}")
    return unescape(path.strip()), caption, options


def inline_marker(source_path: str, caption: str, options: Dict[str, str],
                  preset: Optional[str] = None, url_prefix: str = '/') -> str:
    """The marked ``<img>`` tag an inline marker stands for."""
    attrs = {
        'src': f"{url_prefix}{quote(source_path)}",
        'alt': caption,
        MARKER_ATTRIBUTE: preset or '',
    }
    attrs.update({f"{OPTION_PREFIX}{key}": value for key, value in options.items()})
    return str(BeautifulSoup('', 'html.parser').new_tag('img', attrs=attrs))


def replace_inline_images(text: str, page, base: str = 'images', url_prefix: str = '/') -> str:
    """Replace ``[[image.jpg|caption|options]]`` markers with marked image tags.

    Paths are relative to ``base`` under the content root unless they start
    with a slash. ``url_prefix`` anchors the tag's ``src`` at the site root.
    """
    def _repl(match: re.Match) -> str:
        path, caption, options = parse_inline_reference(match.group('path'), match.group('rest'))
        preset = options.pop('preset', None)
        if path.startswith('/'):
            source_path = path.lstrip('/')
        else:
            source_path = posixpath.join(base, path) if base else path
        return inline_marker(source_path, caption, options, preset, url_prefix)

    text, count = INLINE_PATTERN.subn(_repl, text)
    if count:
        logger.debug(f"responsive_images: found {count} inline image(s) on {page.destination}")
    return text
