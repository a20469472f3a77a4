"""Pelican side of the responsive images plugin.

Pelican signals are mapped onto the plugin phases:

==========================  ===========================================
signal                      phase
==========================  ===========================================
``initialized``             ``INITIALIZED`` then ``SITE_READY``
``generator_init``          ``THEME_LOADED``
``content_object_init``     ``CONTENT_PARSED``
``content_written``         ``OUTPUT_READY``
``finalized``               ``FINALIZED``
==========================  ===========================================
"""
from __future__ import annotations

import logging
import os

from pelican import signals
from pelican.cache import FileDataCacher
from pelican.contents import Article, Page
from pelican.settings import DEFAULT_CONFIG
from pelican.utils import get_relative_path

from .markup import PageContext
from .plugin import Phase, ResponsiveImagesPlugin
from .settings import PluginSettings, register_defaults

logger = logging.getLogger(__name__)

HTML_EXTENSIONS = ('.html', '.htm')
CACHE_NAME = 'responsive_images_markup'


class PelicanSite:
    """Paths and URLs of the site being built."""

    def __init__(self, settings: PluginSettings, siteurl: str = '', relative_urls: bool = False):
        self.settings = settings
        self.siteurl = siteurl
        self.relative_urls = relative_urls

    @classmethod
    def from_settings(cls, settings) -> 'PelicanSite':
        return cls(
            PluginSettings.from_settings(settings),
            siteurl=settings.get('SITEURL', ''),
            relative_urls=bool(settings.get('RELATIVE_URLS', False)),
        )

    @property
    def derivative_dir(self) -> str:
        return self.settings.scratch_path

    @property
    def derivative_url_path(self) -> str:
        return self.settings.output_dir

    @property
    def root_url(self) -> str:
        """Prefix of site-root anchored URLs, the same on every page."""
        if self.relative_urls or not self.siteurl:
            return '/'
        return f"{self.siteurl.rstrip('/')}/"

    def source_path(self, relative: str) -> str:
        return os.path.join(self.settings.source_root, relative)

    def destination_path(self, relative: str) -> str:
        return os.path.join(self.settings.output_root, relative)

    def site_path_for(self, destination: str) -> str:
        """The prefix leading from ``destination`` back to the site root."""
        base = get_relative_path(destination) if self.relative_urls else self.siteurl
        return f"{base.rstrip('/')}/"

    def page_context(self, destination: str, siteurl=None) -> PageContext:
        destination = destination.replace(os.sep, '/')
        if siteurl is None:
            site_path = self.site_path_for(destination)
        else:
            site_path = f"{siteurl.rstrip('/')}/"
        return PageContext(destination=destination, site_path=site_path)


def _markup_store(settings):
    if not settings.get('RESPONSIVE_IMAGES_PERSIST_CACHE') or not settings.get('CACHE_CONTENT'):
        return None
    return FileDataCacher(
        settings, CACHE_NAME, settings['CACHE_CONTENT'], settings.get('LOAD_CONTENT_CACHE', False)
    )


def connect(plugin=None) -> ResponsiveImagesPlugin:
    """Subscribe ``plugin`` to the Pelican signals and return it."""
    plugin = plugin if plugin is not None else ResponsiveImagesPlugin()
    hooks = plugin.hooks()

    def on_initialized(pelican):
        register_defaults(DEFAULT_CONFIG, pelican.settings)
        hooks[Phase.INITIALIZED](pelican.settings, _markup_store(pelican.settings))
        hooks[Phase.SITE_READY](PelicanSite.from_settings(pelican.settings))

    def on_generator_init(generator):
        theme = getattr(generator, 'theme', None)
        if theme:
            hooks[Phase.THEME_LOADED](os.path.join(theme, 'templates'))

    def on_content_object_init(instance):
        if not isinstance(instance, (Article, Page)) or plugin.site is None:
            return
        content = getattr(instance, '_content', None)
        if not content:
            return
        page = plugin.site.page_context(instance.save_as)
        instance._content = hooks[Phase.CONTENT_PARSED](page, content)  # noqa: SLF001

    def on_content_written(path, context):
        if plugin.site is None or not path.lower().endswith(HTML_EXTENSIONS):
            return
        destination = os.path.relpath(path, plugin.site.settings.output_root)
        page = plugin.site.page_context(destination, siteurl=(context or {}).get('SITEURL'))
        with open(path, 'r', encoding='utf-8') as f:
            html = f.read()
        processed = hooks[Phase.OUTPUT_READY](page, html)
        if processed != html:
            with open(path, 'w', encoding='utf-8') as f:
                f.write(processed)

    def on_finalized(pelican):
        hooks[Phase.FINALIZED]()

    # receivers are closures, keep strong references to them
    signals.initialized.connect(on_initialized, weak=False)
    signals.generator_init.connect(on_generator_init, weak=False)
    signals.content_object_init.connect(on_content_object_init, weak=False)
    signals.content_written.connect(on_content_written, weak=False)
    signals.finalized.connect(on_finalized, weak=False)
    return plugin
