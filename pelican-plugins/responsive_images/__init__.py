"""
Responsive Images Plugin for Pelican

This plugin replaces marked images with <picture> elements that reference a
ladder of resized JPEG and WebP derivatives, letting the browser pick the
smallest one that fits the viewport.

It converts:
  <img src="../media/images/hop.jpg" alt="Hop" data-responsive>
  [[hop.jpg|Hop]]

To:
  <picture>
    <source srcset="../images/responsive/media-images-hop.jpg@200px.webp" type="image/webp" media="(max-width: 200px)">
    <source srcset="../images/responsive/media-images-hop.jpg@200px.jpeg" type="image/jpeg" media="(max-width: 200px)">
    ...
    <source srcset="../images/responsive/media-images-hop.jpg@1600px.webp" type="image/webp">
    <source srcset="../images/responsive/media-images-hop.jpg@1600px.jpeg" type="image/jpeg">
    <img src="../images/responsive/media-images-hop.jpg@1600px.jpeg" alt="Hop" loading="lazy" width="1600" height="900">
  </picture>

Derivatives are kept in RESPONSIVE_IMAGES_SCRATCH_PATH between builds and
copied into the output at the end of each build. See settings.py for the
available options.
"""

from .pelican_site import connect


def register():
    """Register the plugin with Pelican."""
    connect()
