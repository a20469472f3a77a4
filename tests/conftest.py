import os
from pathlib import Path

import pytest
from pelican.log import LimitFilter
from PIL import Image

from responsive_images.attributes import Collator
from responsive_images.derivatives import DerivativeWriter
from responsive_images.markup import PageContext, ResponsiveImageRenderer
from responsive_images.pelican_site import PelicanSite
from responsive_images.settings import PluginSettings


def write_image(path: Path, size=(1600, 900), mode='RGB', color=(200, 120, 40), fmt='JPEG') -> Path:
    """Create a solid colour image file and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new(mode, size, color).save(path, fmt)
    return path


@pytest.fixture(autouse=True)
def reset_log_limits():
    """Pelican drops repeated warnings; every test starts with a clean slate."""
    LimitFilter._raised_messages.clear()
    LimitFilter._ignore.clear()
    yield


@pytest.fixture
def content_dir(tmp_path: Path) -> Path:
    path = tmp_path / 'content'
    path.mkdir()
    return path


@pytest.fixture
def plugin_settings(tmp_path: Path, content_dir: Path) -> PluginSettings:
    """Settings pointing at a fresh temp site:

        content/                  source images
        output/                   generated site
        cache/responsive_images/  derivatives
    """
    return PluginSettings(
        source_root=str(content_dir),
        output_root=str(tmp_path / 'output'),
        scratch_path=str(tmp_path / 'cache' / 'responsive_images'),
    )


@pytest.fixture
def site(plugin_settings: PluginSettings) -> PelicanSite:
    return PelicanSite(plugin_settings, relative_urls=True)


@pytest.fixture
def photo(content_dir: Path) -> Path:
    """A 1600x900 JPEG at content/media/photo.jpg."""
    return write_image(content_dir / 'media' / 'photo.jpg')


@pytest.fixture
def page() -> PageContext:
    return PageContext(destination='blog/post.html', site_path='../')


@pytest.fixture
def make_renderer(site: PelicanSite):
    def _make(defaults=None, presets=None, **kwargs) -> ResponsiveImageRenderer:
        return ResponsiveImageRenderer(
            site,
            Collator(defaults, presets),
            DerivativeWriter(site.derivative_dir),
            **kwargs,
        )
    return _make


@pytest.fixture
def renderer(make_renderer) -> ResponsiveImageRenderer:
    return make_renderer()


def derivative_files(site: PelicanSite):
    if not os.path.isdir(site.derivative_dir):
        return []
    return sorted(os.listdir(site.derivative_dir))
