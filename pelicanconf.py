# --- Site Information ---
SITENAME = 'Responsive Images demo'
SITEURL = ''

# --- Paths ---
PATH = 'content'
ARTICLE_PATHS = ['articles']
PAGE_PATHS = ['pages']
STATIC_PATHS = ['media', 'extra']
CACHE_PATH = 'cache'

# --- Content Settings ---
TIMEZONE = 'UTC'
DEFAULT_LANG = 'en'
ARTICLE_SAVE_AS = 'blog/{slug}.html'
ARTICLE_URL = 'blog/{slug}.html'
PAGE_SAVE_AS = '{slug}.html'
PAGE_URL = '{slug}.html'
DELETE_OUTPUT_DIRECTORY = True

# --- Feed Settings (disabled for development) ---
FEED_ALL_ATOM = None
CATEGORY_FEED_ATOM = None
TRANSLATION_FEED_ATOM = None
AUTHOR_FEED_ATOM = None
AUTHOR_FEED_RSS = None

# --- Plugins ---
PLUGIN_PATHS = ['pelican-plugins']
PLUGINS = ['responsive_images']

# --- Responsive images ---
# Site-wide option values; any <img data-responsive-*> attribute overrides them.
RESPONSIVE_IMAGES_MIN_WIDTH = 320
RESPONSIVE_IMAGES_NUM_STEPS = 6
RESPONSIVE_IMAGES_HIDPI = True
RESPONSIVE_IMAGES_BACKGROUND_COLOR = '#ffffff'
RESPONSIVE_IMAGES_PRESETS = {
    'hero': {'min-width': 480, 'max-width': 1920, 'frame': 'figure', 'loading': 'eager'},
    'thumb': {'min-width': 160, 'max-width': 480, 'num-steps': 2},
}
# [[image.jpg]] markers are looked up under content/media/images
RESPONSIVE_IMAGES_TAG_BASE = 'media/images'
RESPONSIVE_IMAGES_OUTPUT_DIR = 'media/responsive'
RESPONSIVE_IMAGES_JOBS = 4

# --- Markdown Extensions ---
MARKDOWN = {
    'extensions': [
        'markdown.extensions.codehilite',
        'markdown.extensions.extra',
        'markdown.extensions.meta',
    ],
    'extension_configs': {
        'markdown.extensions.codehilite': {'css_class': 'highlight'},
    },
    'output_format': 'html5',
}

# --- URL Settings ---
RELATIVE_URLS = True
