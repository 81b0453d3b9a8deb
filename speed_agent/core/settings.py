"""
Optimization settings - Typed, sectioned settings passed to the optimizer.

Contains:
- OptimizationSettings and its section models
- deep_merge: recursive override merge over plain dicts
- merge_settings: apply a sparse delta to a typed settings object
- make_safer_settings: fixed-subset softening applied after a failed iteration
"""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


# ============================================================================
# IMAGES
# ============================================================================

class WebpSettings(BaseModel):
    quality: int = Field(default=80, ge=1, le=100)
    effort: int = Field(default=4, ge=0, le=6)
    lossless: bool = False


class AvifSettings(BaseModel):
    quality: int = Field(default=50, ge=1, le=100)
    effort: int = Field(default=4, ge=0, le=9)
    lossless: bool = False


class JpegSettings(BaseModel):
    quality: int = Field(default=80, ge=1, le=100)
    mozjpeg: bool = True
    progressive: bool = True


class ImageSettings(BaseModel):
    enabled: bool = True
    format: Literal["webp", "avif", "auto"] = "auto"
    webp: WebpSettings = Field(default_factory=WebpSettings)
    avif: AvifSettings = Field(default_factory=AvifSettings)
    jpeg: JpegSettings = Field(default_factory=JpegSettings)
    convert_to_webp: bool = True
    convert_to_avif: bool = False
    keep_original_as_fallback: bool = True
    breakpoints: List[int] = Field(default_factory=lambda: [320, 640, 768, 1024, 1280, 1920])
    max_width: int = 2560
    generate_srcset: bool = True
    lazy_load_enabled: bool = True
    lazy_load_margin: int = Field(default=200, ge=0, le=2000)
    strip_metadata: bool = True
    add_dimensions: bool = True
    optimize_svg: bool = True
    lcp_detection: Literal["auto", "manual", "disabled"] = "auto"
    lcp_image_selector: Optional[str] = None


# ============================================================================
# CSS / JS / HTML
# ============================================================================

class CssSettings(BaseModel):
    enabled: bool = True
    purge: bool = True
    purge_aggressiveness: Literal["safe", "moderate", "aggressive"] = "safe"
    purge_safelist: List[str] = Field(default_factory=lambda: [
        "active", "open", "visible", "show", "hide", "collapsed", "hidden", "current-menu-item",
    ])
    purge_blocklist_patterns: List[str] = Field(default_factory=list)
    critical: bool = True
    critical_for_mobile: bool = True
    combine_stylesheets: bool = True
    make_non_critical_async: bool = True
    minify_preset: Literal["default", "advanced", "lite"] = "default"
    font_display: Literal["swap", "optional", "fallback", "block"] = "swap"


class RemoveScriptsSettings(BaseModel):
    wp_emoji: bool = True
    wp_embed: bool = True
    jquery_migrate: bool = True
    comment_reply: bool = True
    wp_polyfill: bool = True
    hover_intent: bool = True
    admin_bar: bool = True
    dashicons: bool = True
    wp_block_library: bool = True


class JsSettings(BaseModel):
    enabled: bool = True
    default_loading_strategy: Literal["defer", "async", "module"] = "defer"
    remove_scripts: RemoveScriptsSettings = Field(default_factory=RemoveScriptsSettings)
    remove_jquery: bool = False
    jquery_compatibility_check: bool = True
    custom_remove_patterns: List[str] = Field(default_factory=list)
    combine_scripts: bool = False
    minify_enabled: bool = True
    move_to_body_end: bool = True
    drop_console: bool = True
    terser_passes: int = Field(default=3, ge=1, le=5)


class HtmlSafeSettings(BaseModel):
    collapse_whitespace: bool = True
    remove_comments: bool = True
    collapse_boolean_attributes: bool = True
    remove_redundant_attributes: bool = True
    minify_css: bool = True
    minify_js: bool = True


class HtmlAggressiveSettings(BaseModel):
    remove_attribute_quotes: bool = False
    remove_optional_tags: bool = False
    remove_empty_elements: bool = False
    sort_attributes: bool = False
    sort_class_name: bool = False
    remove_tag_whitespace: bool = False


class HtmlSettings(BaseModel):
    enabled: bool = True
    safe: HtmlSafeSettings = Field(default_factory=HtmlSafeSettings)
    aggressive: HtmlAggressiveSettings = Field(default_factory=HtmlAggressiveSettings)
    remove_wp_head_bloat: bool = True
    remove_analytics: bool = True


# ============================================================================
# FONTS / VIDEO / CACHE / HINTS
# ============================================================================

class FontSettings(BaseModel):
    enabled: bool = True
    self_host_google_fonts: bool = True
    preload_critical_fonts: bool = True
    preload_count: int = Field(default=2, ge=0, le=5)
    font_display: Literal["swap", "optional", "fallback", "block"] = "swap"
    subsetting: bool = False
    subsets: List[str] = Field(default_factory=lambda: ["latin"])


class VideoSettings(BaseModel):
    facades_enabled: bool = True
    poster_quality: Literal["default", "mqdefault", "hqdefault", "sddefault", "maxresdefault"] = "sddefault"
    use_nocookie: bool = True
    lazy_load_iframes: bool = True
    google_maps_use_facade: bool = True


class CacheSettings(BaseModel):
    enabled: bool = True
    html: str = "public, max-age=0, must-revalidate"
    css_js: str = "public, max-age=31536000, immutable"
    images: str = "public, max-age=31536000, immutable"
    fonts: str = "public, max-age=31536000, immutable"
    security_headers: bool = True


class ResourceHintSettings(BaseModel):
    enabled: bool = True
    auto_preload_lcp_image: bool = True
    auto_preconnect: bool = True
    remove_unused_preconnects: bool = True
    custom_preconnect_domains: List[str] = Field(default_factory=list)


class OptimizationSettings(BaseModel):
    """Complete optimizer configuration. Every field has a default."""
    images: ImageSettings = Field(default_factory=ImageSettings)
    css: CssSettings = Field(default_factory=CssSettings)
    js: JsSettings = Field(default_factory=JsSettings)
    html: HtmlSettings = Field(default_factory=HtmlSettings)
    fonts: FontSettings = Field(default_factory=FontSettings)
    video: VideoSettings = Field(default_factory=VideoSettings)
    cache: CacheSettings = Field(default_factory=CacheSettings)
    resource_hints: ResourceHintSettings = Field(default_factory=ResourceHintSettings)


# ============================================================================
# MERGE & SOFTENING
# ============================================================================

def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """
    Merge a sparse override into base without mutating either.

    Dicts recurse, scalars and lists replace, None values are skipped.
    """
    result = dict(base)
    for key, value in override.items():
        if value is None:
            continue
        current = result.get(key)
        if isinstance(value, dict) and isinstance(current, dict):
            result[key] = deep_merge(current, value)
        else:
            result[key] = value
    return result


def merge_settings(settings: OptimizationSettings, delta: Dict[str, Any]) -> OptimizationSettings:
    """
    Apply a sparse settings delta and re-validate.

    Raises pydantic.ValidationError when the merged result is not a valid
    OptimizationSettings; the input settings are left untouched.
    """
    merged = deep_merge(settings.model_dump(), delta or {})
    return OptimizationSettings.model_validate(merged)


SAFER_OVERRIDES: Dict[str, Any] = {
    "css": {"purge": False, "purge_aggressiveness": "safe"},
    "js": {"remove_jquery": False, "enabled": True},
    "html": {
        "aggressive": {
            "remove_attribute_quotes": False,
            "remove_optional_tags": False,
            "remove_empty_elements": False,
        }
    },
}


def make_safer_settings(settings: OptimizationSettings) -> OptimizationSettings:
    """Turn off the risky CSS purge, jQuery removal and aggressive HTML flags."""
    return merge_settings(settings, SAFER_OVERRIDES)
