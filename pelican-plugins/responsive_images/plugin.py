"""Lifecycle of the responsive images plugin.

The plugin does not talk to the site generator directly. It exposes one
callback per build phase through :meth:`ResponsiveImagesPlugin.hooks`, and the
build driver (see ``pelican_site.connect``) fires them in this order:

``INITIALIZED`` → ``THEME_LOADED`` → ``SITE_READY`` → ``CONTENT_PARSED`` (per
page) → ``OUTPUT_READY`` (per written page) → ``FINALIZED``.

Pages are passed to every per-page callback as a :class:`PageContext`, so the
plugin holds no notion of a "current" page.
"""
from __future__ import annotations

import enum
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from .attributes import Collator
from .cache import MarkupCache
from .derivatives import DerivativeWriter
from .markup import PageContext, ResponsiveImageRenderer, Templates
from .postprocess import process_html, replace_inline_images
from .settings import PluginSettings

logger = logging.getLogger(__name__)


class Phase(enum.Enum):
    INITIALIZED = 'initialized'
    THEME_LOADED = 'theme_loaded'
    SITE_READY = 'site_ready'
    CONTENT_PARSED = 'content_parsed'
    OUTPUT_READY = 'output_ready'
    FINALIZED = 'finalized'


class ResponsiveImagesPlugin:
    def __init__(self):
        self.settings: Optional[PluginSettings] = None
        self.collator: Optional[Collator] = None
        self.cache: Optional[MarkupCache] = None
        self.templates = Templates()
        self.site = None
        self.writer: Optional[DerivativeWriter] = None
        self.renderer: Optional[ResponsiveImageRenderer] = None

    def hooks(self) -> Dict[Phase, Callable]:
        return {
            Phase.INITIALIZED: self.initialize,
            Phase.THEME_LOADED: self.register_templates,
            Phase.SITE_READY: self.set_site,
            Phase.CONTENT_PARSED: self.process_content,
            Phase.OUTPUT_READY: self.process_output,
            Phase.FINALIZED: self.finalize,
        }

    def initialize(self, settings: Mapping[str, Any], store=None) -> None:
        self.settings = PluginSettings.from_settings(settings)
        self.collator = Collator(self.settings.defaults, self.settings.presets)
        self.cache = MarkupCache(store)
        self.templates = Templates(self.settings.template_paths)

    def register_templates(self, template_path: str) -> None:
        self.templates.add_path(template_path)

    def set_site(self, site) -> None:
        self.site = site
        self.writer = DerivativeWriter(site.derivative_dir)
        self.writer.ensure_directory()
        self.renderer = ResponsiveImageRenderer(
            site, self.collator, self.writer,
            cache=self.cache, templates=self.templates, jobs=self.settings.jobs,
        )

    def process_content(self, page: PageContext, text: str) -> str:
        """Turn inline ``[[image.jpg]]`` markers into marked image tags."""
        return replace_inline_images(
            text, page, base=self.settings.tag_base, url_prefix=self.site.root_url,
        )

    def process_output(self, page: PageContext, html: str) -> str:
        """Replace ``img[data-responsive]`` elements in a finished page."""
        return process_html(html, page, self.renderer)

    def finalize(self) -> None:
        if self.writer is None:
            return
        destination = self.site.destination_path(self.settings.output_dir)
        copied = self.writer.publish(destination)
        if copied:
            logger.info(f"responsive_images: copied {copied} derivative(s) to {destination}")
        self.cache.save()
