"""Turn one image reference into ``<picture>`` markup.

The markup is produced by the ``responsive_image.html`` Jinja2 template, which
can be overridden by dropping a file with the same name into the theme's
``templates/`` directory or into one of ``RESPONSIVE_IMAGES_TEMPLATE_PATHS``.
"""
from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
import logging
import os
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple
from urllib.parse import quote

from jinja2 import Environment, FileSystemLoader

from .attributes import Collator, EffectiveAttributes
from .breakpoints import DerivativePlan, plan
from .cache import MarkupCache, make_cache_key
from .derivatives import MIME_TYPES, DerivativeWriter, SourceImage

logger = logging.getLogger(__name__)

TEMPLATE_NAME = 'responsive_image.html'
BUILTIN_TEMPLATES = os.path.join(os.path.dirname(__file__), 'templates')
MISSING_FILE_MESSAGE = 'Responsive Image Plugin: File [{path}] does not exist.'
FALLBACK_FORMAT = 'jpeg'
# order of the <source> elements inside each breakpoint
SOURCE_FORMATS = ('webp', 'jpeg')


@dataclass(frozen=True)
class PageContext:
    """The page an image is rendered for."""

    destination: str
    site_path: str = ''

    @property
    def url_prefix(self) -> str:
        # an empty site path means the page sits at the site root
        return self.site_path or './'


class Templates:
    def __init__(self, search_paths: Iterable[str] = ()):
        self.search_paths: List[str] = [path for path in search_paths if path]
        self._env: Optional[Environment] = None

    def add_path(self, path: str) -> None:
        """Search ``path`` after the configured paths, before the bundled templates."""
        if path and path not in self.search_paths:
            self.search_paths.append(path)
            self._env = None

    @property
    def env(self) -> Environment:
        if self._env is None:
            self._env = Environment(
                loader=FileSystemLoader(self.search_paths + [BUILTIN_TEMPLATES]),
                autoescape=True,
                trim_blocks=True,
                lstrip_blocks=True,
            )
        return self._env

    def render(self, name: str, **context) -> str:
        return self.env.get_template(name).render(**context).strip()

    def fingerprint(self, name: str) -> str:
        """Identify the file ``name`` resolves to and its version."""
        filename = self.env.get_template(name).filename or ''
        mtime = os.path.getmtime(filename) if os.path.isfile(filename) else 0
        return f"{filename}:{mtime}"


class ResponsiveImageRenderer:
    def __init__(self, site, collator: Collator, writer: DerivativeWriter,
                 cache: Optional[MarkupCache] = None, templates: Optional[Templates] = None,
                 jobs: int = 1):
        self.site = site
        self.collator = collator
        self.writer = writer
        self.cache = cache if cache is not None else MarkupCache()
        self.templates = templates if templates is not None else Templates()
        self.jobs = max(jobs, 1)

    def render(self, page: PageContext, source_path: str, raw_attributes: Mapping[str, Any],
               preset_name: Optional[str] = None) -> str:
        attributes = self.collator.collate(raw_attributes, preset_name)
        return self.render_collated(page, source_path, attributes)

    def render_collated(self, page: PageContext, source_path: str,
                        attributes: EffectiveAttributes) -> str:
        source_path = source_path.lstrip('/')
        filename = self.site.source_path(source_path)
        mtime = os.path.getmtime(filename) if os.path.isfile(filename) else 0
        # markup depends on the output directory and the template as much as on the source
        staleness = (mtime, self.site.derivative_url_path, self.templates.fingerprint(TEMPLATE_NAME))
        key = make_cache_key(source_path, attributes, page.destination, attributes.hidpi)
        return self.cache.get_or_compute(
            key, staleness, lambda: self._generate(page, source_path, filename, attributes)
        )

    def _generate(self, page: PageContext, source_path: str, filename: str,
                  attributes: EffectiveAttributes) -> str:
        if not os.path.isfile(filename):
            logger.error(f"responsive_images: file {filename} does not exist (page {page.destination})")
            return MISSING_FILE_MESSAGE.format(path=filename)

        source = SourceImage.read(filename, source_path)
        logger.info(f"responsive_images: generating responsive images for {filename}")
        derivative_plan = plan(source.width, source.height, attributes)
        derivatives = self._write_derivatives(source, derivative_plan, attributes)
        context = self._template_context(page, source, derivative_plan, derivatives, attributes)
        return self.templates.render(TEMPLATE_NAME, **context)

    def _write_derivatives(self, source: SourceImage, derivative_plan: DerivativePlan,
                           attributes: EffectiveAttributes) -> Dict[Tuple[int, str], str]:
        requests = [
            (width, fmt)
            for width in derivative_plan.derivative_widths()
            for fmt in SOURCE_FORMATS
        ]

        def _ensure(request):
            width, fmt = request
            return self.writer.ensure(
                source, width, fmt, derivative_plan.aspect,
                background_color=attributes.get('background-color'),
                quality=attributes.get('compression-quality'),
            )

        if self.jobs > 1 and len(requests) > 1:
            with ThreadPoolExecutor(max_workers=self.jobs) as executor:
                paths = list(executor.map(_ensure, requests))
        else:
            paths = [_ensure(request) for request in requests]
        return dict(zip(requests, paths))

    def derivative_url(self, page: PageContext, path: str) -> str:
        url_path = self.site.derivative_url_path.strip('/')
        name = quote(os.path.basename(path), safe='@')
        return f"{page.url_prefix}{url_path}/{name}" if url_path else f"{page.url_prefix}{name}"

    def _template_context(self, page: PageContext, source: SourceImage,
                          derivative_plan: DerivativePlan, derivatives: Mapping[Tuple[int, str], str],
                          attributes: EffectiveAttributes) -> Dict[str, Any]:
        sources = []
        for breakpoint in derivative_plan.breakpoints:
            formats = []
            for fmt in SOURCE_FORMATS:
                candidates = [
                    (self.derivative_url(page, derivatives[(width, fmt)]), density)
                    for width, density in breakpoint.candidates
                ]
                formats.append({'type': MIME_TYPES[fmt], 'candidates': candidates})
            sources.append({
                'max_width': breakpoint.width,
                'media': None if breakpoint.is_last else f"(max-width: {breakpoint.width}px)",
                'formats': formats,
            })

        fallback = derivative_plan.fallback
        html_attributes = {
            name: value for name, value in attributes.html_attributes.items()
            if name not in ('src', 'srcset', 'alt', 'loading')
        }
        html_attributes.setdefault('width', str(fallback.width))
        html_attributes.setdefault('height', str(max(int(round(fallback.width / derivative_plan.aspect)), 1)))

        return {
            'sources': sources,
            'image_path': self.derivative_url(page, derivatives[(fallback.width, FALLBACK_FORMAT)]),
            'alt': attributes.get('alt', ''),
            'loading': attributes.get('loading', 'lazy'),
            'frame': attributes.get('frame'),
            'attributes': html_attributes,
            'site_path': page.url_prefix,
            'width': source.width,
            'height': source.height,
            'attrs': attributes,
        }
