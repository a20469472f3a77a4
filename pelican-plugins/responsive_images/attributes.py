"""Combine image attributes, presets and plugin options into one set.

Attribute combination follows a fixed hierarchy: whatever is given on the image
itself supersedes the selected preset, which supersedes the site-wide plugin
settings, which supersede the built-in fallbacks below. Attributes that are not
plugin options are passed through untouched to the rendered ``<img>``.
"""
from __future__ import annotations

from dataclasses import dataclass, field
import json
import logging
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

from PIL import ImageColor

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

FALLBACK_OPTIONS: Mapping[str, Any] = MappingProxyType({
    'min-width': 200,
    'max-width': None,
    'num-steps': 7,
    'hidpi': False,
    'frame': None,
    'loading': 'lazy',
    'background-color': None,
    'compression-quality': None,
    'alt': '',
})
FRAMES = ('figure', 'div')
LOADING_MODES = ('lazy', 'eager', 'auto')
PRESET_CLASS_PREFIX = 'responsive-image--'


def _to_int(value) -> int:
    if isinstance(value, bool):
        raise ConfigurationError(f"expected a number, got {value!r}")
    text = str(value).strip().lower()
    if text.endswith('px'):
        text = text[:-2]
    try:
        return int(round(float(text)))
    except ValueError:
        raise ConfigurationError(f"expected a number, got {value!r}") from None


def _to_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ('true', '1', 'yes', 'on'):
        return True
    if text in ('false', '0', 'no', 'off', ''):
        return False
    raise ConfigurationError(f"expected a boolean, got {value!r}")


def _to_quality(value) -> int:
    quality = _to_int(value)
    if not 1 <= quality <= 100:
        raise ConfigurationError(f"compression quality must be between 1 and 100, got {quality}")
    return quality


def _to_color(value):
    if isinstance(value, (list, tuple)):
        try:
            channels = tuple(int(channel) for channel in value)
        except (TypeError, ValueError):
            raise ConfigurationError(f"unknown colour {value!r}") from None
        if len(channels) not in (3, 4) or not all(0 <= c <= 255 for c in channels):
            raise ConfigurationError(f"unknown colour {value!r}")
        return channels
    text = str(value).strip()
    try:
        ImageColor.getrgb(text)
    except ValueError:
        raise ConfigurationError(f"unknown colour {value!r}") from None
    return text


def _to_frame(value) -> Optional[str]:
    frame = str(value).strip().lower()
    if frame in ('', 'none'):
        return None
    if frame not in FRAMES:
        raise ConfigurationError(f"frame must be one of {', '.join(FRAMES)}, got {value!r}")
    return frame


def _to_loading(value) -> str:
    loading = str(value).strip().lower()
    if loading not in LOADING_MODES:
        raise ConfigurationError(f"loading must be one of {', '.join(LOADING_MODES)}, got {value!r}")
    return loading


COERCERS = {
    'min-width': _to_int,
    'max-width': _to_int,
    'num-steps': _to_int,
    'hidpi': _to_bool,
    'frame': _to_frame,
    'loading': _to_loading,
    'background-color': _to_color,
    'compression-quality': _to_quality,
    'alt': str,
}
OPTION_NAMES = tuple(COERCERS)


@dataclass(frozen=True)
class EffectiveAttributes:
    """The collated options and pass-through attributes for one image."""

    options: Mapping[str, Any]
    html_attributes: Mapping[str, str] = field(default_factory=dict)
    preset: Optional[str] = None

    def __getitem__(self, name: str):
        return self.options[name]

    def get(self, name: str, default=None):
        value = self.options.get(name)
        return default if value is None else value

    @property
    def hidpi(self) -> bool:
        return bool(self.options.get('hidpi'))

    def to_json(self) -> str:
        """Deterministic serialization, used as part of cache keys."""
        return json.dumps(
            {
                'options': dict(self.options),
                'attributes': dict(self.html_attributes),
                'preset': self.preset,
            },
            sort_keys=True,
            default=str,
        )


class Collator:
    def __init__(self, defaults: Optional[Mapping[str, Any]] = None,
                 presets: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self.defaults = dict(defaults or {})
        self.presets = dict(presets or {})

    def _preset_layer(self, preset_name: Optional[str]) -> Mapping[str, Any]:
        if not preset_name:
            return {}
        preset = self.presets.get(preset_name)
        if preset is None:
            logger.warning(f"responsive_images: preset [{preset_name}] is not configured")
            return {}
        if not isinstance(preset, Mapping):
            logger.warning(f"responsive_images: preset [{preset_name}] must be a mapping of options")
            return {}
        return preset

    def collate(self, instance_attributes: Mapping[str, Any],
                preset_name: Optional[str] = None) -> EffectiveAttributes:
        """Return the effective attributes for one image instance.

        ``instance_attributes`` mixes plugin options (``max-width``, ``alt``, ...)
        with plain HTML attributes; the former are merged with the preset and
        the plugin defaults, the latter are passed through verbatim.
        """
        preset = self._preset_layer(preset_name)
        layers = (
            ('image', instance_attributes),
            (f"preset {preset_name}", preset),
            ('settings', self.defaults),
        )

        options: Dict[str, Any] = {}
        for name in OPTION_NAMES:
            options[name] = FALLBACK_OPTIONS[name]
            for layer_name, layer in layers:
                value = layer.get(name)
                if value is None:
                    continue
                try:
                    options[name] = COERCERS[name](value)
                except ConfigurationError as e:
                    logger.warning(f"responsive_images: ignoring {name} from {layer_name}: {e}")
                    continue
                break

        html_attributes = {
            key: str(value) for key, value in instance_attributes.items()
            if key not in COERCERS and value is not None
        }
        applied = bool(preset_name) and isinstance(self.presets.get(preset_name), Mapping)
        if applied:
            token = f"{PRESET_CLASS_PREFIX}{preset_name}"
            html_attributes['class'] = f"{html_attributes.get('class', '')} {token}".strip()

        return EffectiveAttributes(
            options=MappingProxyType(options),
            html_attributes=MappingProxyType(html_attributes),
            preset=preset_name if applied else None,
        )
