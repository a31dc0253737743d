"""Constants and thresholds for content extraction."""

# Text length thresholds
MIN_ROOT_TEXT_LENGTH = 200      # a content root must render more than this
MIN_FRAGMENT_LENGTH = 20        # shorter paragraphs/headings are dropped
MAX_CONTENT_LENGTH = 8000       # cap for ingested articles
MAX_REFERENCE_LENGTH = 5000     # cap for harvested reference pages
MIN_REFERENCE_LENGTH = 100      # below this a scraped reference is unusable

UNABLE_TO_EXTRACT = "Unable to extract content"

# Text-bearing nodes collected from the chosen root
TEXT_TAGS = ['p', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6', 'li', 'blockquote']
HEADING_TAGS = {'h1', 'h2', 'h3', 'h4', 'h5', 'h6'}

# Source blog detail pages
ARTICLE_CONTENT_SELECTORS = [
    'article',
    '.article-content',
    '.post-content',
    '.entry-content',
    'main',
    '[class*="content"]',
    '[class*="article"]',
]

# Arbitrary third-party pages
REFERENCE_CONTENT_SELECTORS = [
    'article',
    '[itemprop="articleBody"]',
    '[role="main"]',
    'main',
    '.article-content',
    '.post-content',
    '.entry-content',
    '#content',
]

# Removed from reference pages before extraction
UNWANTED_SELECTORS = [
    'script', 'style', 'noscript', 'nav', 'header', 'footer', 'aside',
    '.ad', '.advertisement', '.sidebar', '.cookie-banner', '.share',
]

TITLE_SELECTORS = [
    ('h1', None),
    ('meta[property="og:title"]', 'content'),
    ('title', None),
]

AUTHOR_SELECTORS = [
    ('[rel="author"]', None),
    ('[itemprop="author"] [itemprop="name"]', None),
    ('[itemprop="author"]', None),
    ('.author', None),
    ('[class*="author"]', None),
    ('meta[name="author"]', 'content'),
]

DATE_SELECTORS = [
    ('time[datetime]', 'datetime'),
    ('meta[property="article:published_time"]', 'content'),
    ('[itemprop="datePublished"]', 'content'),
    ('[itemprop="datePublished"]', None),
    ('[datetime]', 'datetime'),
    ('time', None),
    ('.date', None),
    ('[class*="date"]', None),
]

# Phrases marking consent banners, share widgets and similar chrome
BOILERPLATE_PATTERNS = [
    r'\bwe use cookies\b',
    r'\bcookie(s)? (policy|settings|preferences|consent)\b',
    r'\baccept (all )?cookies\b',
    r'\bprivacy policy\b',
    r'\bterms (of service|and conditions|of use)\b',
    r'\bshare (this|on)\b',
    r'\bsubscribe to (our|the) newsletter\b',
    r'\bsign up for (our|the) newsletter\b',
    r'\ball rights reserved\b',
    r'\bfollow us on\b',
    r'^advertisement$',
]
