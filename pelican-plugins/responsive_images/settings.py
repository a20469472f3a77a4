"""Pelican settings understood by the responsive images plugin.

Every option an ``<img>`` tag can set through ``data-responsive-*`` can also be
given a site-wide value in ``pelicanconf.py``::

    RESPONSIVE_IMAGES_MIN_WIDTH = 320
    RESPONSIVE_IMAGES_HIDPI = True
    RESPONSIVE_IMAGES_PRESETS = {
        'hero': {'min-width': 480, 'max-width': 1920, 'frame': 'figure'},
    }

The remaining settings control where derivatives live and how the plugin runs.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Any, Dict, Mapping, Tuple

# option name -> pelican setting holding its site-wide value
OPTION_SETTINGS = {
    'min-width': 'RESPONSIVE_IMAGES_MIN_WIDTH',
    'max-width': 'RESPONSIVE_IMAGES_MAX_WIDTH',
    'num-steps': 'RESPONSIVE_IMAGES_NUM_STEPS',
    'hidpi': 'RESPONSIVE_IMAGES_HIDPI',
    'frame': 'RESPONSIVE_IMAGES_FRAME',
    'loading': 'RESPONSIVE_IMAGES_LOADING',
    'background-color': 'RESPONSIVE_IMAGES_BACKGROUND_COLOR',
    'compression-quality': 'RESPONSIVE_IMAGES_COMPRESSION_QUALITY',
}

DEFAULT_SETTINGS: Dict[str, Any] = {
    **{name: None for name in OPTION_SETTINGS.values()},
    'RESPONSIVE_IMAGES_PRESETS': {},
    'RESPONSIVE_IMAGES_OUTPUT_DIR': 'images/responsive',
    'RESPONSIVE_IMAGES_SCRATCH_PATH': None,
    'RESPONSIVE_IMAGES_TAG_BASE': 'images',
    'RESPONSIVE_IMAGES_TEMPLATE_PATHS': [],
    'RESPONSIVE_IMAGES_JOBS': 1,
    'RESPONSIVE_IMAGES_PERSIST_CACHE': True,
}


def register_defaults(*settings_objects) -> None:
    """Fill in any missing plugin setting on each of the given mappings."""
    for settings in settings_objects:
        if settings is None:
            continue
        for name, value in DEFAULT_SETTINGS.items():
            if isinstance(value, (dict, list)):
                value = type(value)(value)
            settings.setdefault(name, value)


@dataclass(frozen=True)
class PluginSettings:
    source_root: str
    output_root: str
    scratch_path: str
    output_dir: str = 'images/responsive'
    tag_base: str = 'images'
    defaults: Mapping[str, Any] = field(default_factory=dict)
    presets: Mapping[str, Mapping[str, Any]] = field(default_factory=dict)
    template_paths: Tuple[str, ...] = ()
    jobs: int = 1
    persist_cache: bool = True

    @classmethod
    def from_settings(cls, settings: Mapping[str, Any]) -> 'PluginSettings':
        def _get(name):
            return settings.get(name, DEFAULT_SETTINGS.get(name))

        defaults = {
            option: _get(setting_name)
            for option, setting_name in OPTION_SETTINGS.items()
            if _get(setting_name) is not None
        }
        scratch = _get('RESPONSIVE_IMAGES_SCRATCH_PATH')
        if not scratch:
            scratch = os.path.join(settings.get('CACHE_PATH', 'cache'), 'responsive_images')

        jobs = _get('RESPONSIVE_IMAGES_JOBS') or 1
        return cls(
            source_root=settings.get('PATH', 'content'),
            output_root=settings.get('OUTPUT_PATH', 'output'),
            scratch_path=scratch,
            output_dir=(_get('RESPONSIVE_IMAGES_OUTPUT_DIR') or 'images/responsive').strip('/'),
            tag_base=(_get('RESPONSIVE_IMAGES_TAG_BASE') or '').strip('/'),
            defaults=defaults,
            presets=dict(_get('RESPONSIVE_IMAGES_PRESETS') or {}),
            template_paths=tuple(_get('RESPONSIVE_IMAGES_TEMPLATE_PATHS') or ()),
            jobs=max(int(jobs), 1),
            persist_cache=bool(_get('RESPONSIVE_IMAGES_PERSIST_CACHE')),
        )
