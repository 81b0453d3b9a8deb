"""
Constants module - All configuration constants for the Speed Agent.

Centralizes:
- Crawl and recording caps
- Viewports used for baseline and verification screenshots
- Asset classification patterns
- Interactive element selector families
- Default timeouts and verdict thresholds
"""

import re
from typing import Dict, List, Tuple

# ============================================================================
# BROWSER
# ============================================================================

CHROME_UA = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

BROWSER_ARGS: List[str] = [
    "--no-sandbox",
    "--disable-setuid-sandbox",
    "--disable-dev-shm-usage",
    "--disable-gpu",
]

# (name, width, height, device_scale_factor)
VIEWPORTS: List[Tuple[str, int, int, int]] = [
    ("desktop", 1920, 1080, 1),
    ("tablet", 768, 1024, 1),
    ("mobile", 375, 812, 2),
]

# ============================================================================
# TIMEOUTS (in milliseconds unless noted)
# ============================================================================

DEFAULT_NAVIGATION_TIMEOUT = 45000
PERFORMANCE_NAVIGATION_TIMEOUT = 60000
RELOAD_TIMEOUT = 15000
CLICK_TIMEOUT = 3000
PAGE_SETTLE_MS = 3000
SCREENSHOT_SETTLE_MS = 2000
SCROLL_SETTLE_MS = 1000
INTERACTION_SETTLE_MS = 500
VERIFY_INTERACTION_SETTLE_MS = 600
HTTP_CHECK_TIMEOUT_SECONDS = 10.0
PAGESPEED_TIMEOUT_SECONDS = 90.0

# ============================================================================
# CRAWL / RECORDING CAPS
# ============================================================================

MAX_PAGES = 15
MAX_DISCOVERED_LINKS = 20
MAX_SCREENSHOT_PAGES = 10
MAX_ELEMENTS_PER_PAGE = 50
MAX_BEHAVIOR_ELEMENTS = 30
MAX_BEHAVIOR_ELEMENTS_PER_PAGE = 10
MAX_VERIFIED_PAGES = 10
MAX_AI_VISUAL_REVIEWS = 5
CAPTURE_WORKERS = 3
INNER_TEXT_LIMIT = 200

# ============================================================================
# AGENT LOOP DEFAULTS (seconds)
# ============================================================================

MAX_ITERATIONS = 10
BUILD_TIMEOUT_SECONDS = 1800
BUILD_POLL_INTERVAL_SECONDS = 5
OPTIMIZE_TIMEOUT_SECONDS = 600
BUILD_STATUS_RETENTION_SECONDS = 3600
EDGE_READY_TIMEOUT_SECONDS = 120
EDGE_READY_POLL_INTERVAL_SECONDS = 10
RUN_EVICTION_SECONDS = 3600
PERFORMANCE_FLOOR = 80

# ============================================================================
# VERIFICATION THRESHOLDS
# ============================================================================

PIXEL_THRESHOLD = 0.15
DIFF_IDENTICAL_PERCENT = 0.5
DIFF_ACCEPTABLE_PERCENT = 2.0
DIFF_NEEDS_REVIEW_PERCENT = 10.0
HEIGHT_DELTA_LIMIT_PX = 200
BOX_TOLERANCE_PX = 2.0

# ============================================================================
# ASSET CLASSIFICATION
# ============================================================================

WP_BLOAT_PATTERN = re.compile(
    r"wp-emoji|jquery-migrate|wp-embed|wp-polyfill|comment-reply|hoverintent", re.IGNORECASE
)
JQUERY_PATTERN = re.compile(r"/jquery[.\-]", re.IGNORECASE)
JQUERY_MIGRATE_PATTERN = re.compile(r"jquery-migrate", re.IGNORECASE)
JQUERY_PLUGIN_PATTERN = re.compile(r"slick|owl|swiper|fancybox|magnific|bootstrap", re.IGNORECASE)
ANALYTICS_PATTERN = re.compile(r"gtag|analytics|gtm|google-analytics", re.IGNORECASE)
MIN_JS_SUFFIX_PATTERN = re.compile(r"(\.min)?\.js.*$", re.IGNORECASE)

EXCLUDED_LINK_PATTERN = re.compile(r"wp-admin|wp-login|replytocom", re.IGNORECASE)
SKIPPED_HREF_PREFIXES: Tuple[str, ...] = ("mailto:", "tel:", "javascript:")

# ============================================================================
# PAGE FEATURES & INTERACTIVE ELEMENTS
# ============================================================================

FEATURE_SELECTORS: Dict[str, str] = {
    "has_form": 'form:not([action*="search"])',
    "has_slider": ".slick-slider, .owl-carousel, .swiper-container, .swiper, .flexslider",
    "has_accordion": '.accordion, .faq-item, [data-toggle="collapse"], .elementor-accordion, details',
    "has_tabs": '.tabs, [role="tablist"], .elementor-tabs, .nav-tabs',
    "has_modal": '[data-toggle="modal"], [data-fancybox], .popup-trigger',
    "has_dropdown_menu": ".menu-item-has-children, .dropdown, .has-submenu",
    "has_video": 'video, iframe[src*="youtube"], iframe[src*="vimeo"]',
}

# (type, selector family, trigger, expected behavior, description)
ELEMENT_FAMILIES: List[Tuple[str, str, str, str, str]] = [
    ("dropdown", ".menu-item-has-children, .dropdown, .has-submenu",
     "hover", "Submenu becomes visible", "Nav dropdown"),
    ("hamburger-menu",
     ".hamburger, .mobile-menu-toggle, .menu-toggle, .navbar-toggler, "
     ".ast-mobile-menu-trigger, .elementor-menu-toggle",
     "click", "Mobile menu panel visible", "Mobile hamburger menu"),
    ("slider", ".slick-slider, .owl-carousel, .swiper-container, .swiper, .flexslider",
     "click", "Slider advances", "Image/content slider"),
    ("accordion", '.accordion, .faq-item, [data-toggle="collapse"], .elementor-accordion, details',
     "click", "Content expands", "Accordion section"),
    ("tab", '[role="tablist"], .elementor-tabs, .nav-tabs',
     "click", "Tab content switches", "Tab navigation"),
    ("modal", '[data-toggle="modal"], [data-fancybox], [data-lightbox], .popup-trigger',
     "click", "Modal overlay appears", "Modal trigger"),
    ("form", 'form:not([action*="search"]):not([role="search"])',
     "click", "Fields interactive", "Form"),
]

JQUERY_DEPENDENT_CLASSES: Tuple[str, ...] = ("slick-slider", "owl-carousel")

TRANSIENT_CLASS_PATTERN = re.compile(r"^(active|open|show|hover|focus|current|slick-|swiper-|owl-)")
SAFE_IDENT_PATTERN = re.compile(r"^-?[A-Za-z_][A-Za-z0-9_-]*$")
MAX_SELECTOR_CLASSES = 3
MAX_SELECTOR_MATCHES = 3
