"""
Dealer page customization. Входные данные уже провалидированы сериализаторами.
"""
import logging
import re

from django.db import transaction

logger = logging.getLogger(__name__)

CUSTOM_CSS_MAX_LENGTH = 50000

DANGEROUS_CSS_PATTERNS = (
    re.compile(r'javascript:', re.IGNORECASE),
    re.compile(r'expression\s*\(', re.IGNORECASE),
    re.compile(r'url\s*\(\s*["\']?data:', re.IGNORECASE),
    re.compile(r'@import', re.IGNORECASE),
)


class ThemePresetImmutableError(Exception):
    """System presets cannot be modified or deleted."""
    pass


def find_dangerous_css(css):
    """First dangerous pattern found in ``css`` or None."""
    for pattern in DANGEROUS_CSS_PATTERNS:
        if pattern.search(css):
            return pattern.pattern
    return None


def _save(dealer, **fields):
    for key, value in fields.items():
        setattr(dealer, key, value)
    dealer.save(update_fields=[*fields, 'updated_at'])
    logger.info('Dealer %s customization updated: %s', dealer.slug, ', '.join(fields))
    return dealer


def update_theme_settings(dealer, theme):
    return _save(dealer, theme_settings=dict(theme))


def update_layout_settings(dealer, layout):
    return _save(dealer, layout_settings=dict(layout))


def update_custom_css(dealer, css):
    return _save(dealer, custom_css=css)


def update_meta_settings(dealer, meta):
    return _save(
        dealer,
        meta_title=meta.get('meta_title', ''),
        meta_description=meta.get('meta_description', ''),
        meta_keywords=meta.get('meta_keywords', ''),
        favicon_url=meta.get('favicon_url', ''),
    )


def apply_preset(dealer, preset):
    # Theme override очищается, layout override сохраняется
    return _save(dealer, theme_preset=preset, theme_settings=None)


def clear_preset(dealer):
    return _save(dealer, theme_preset=None)


@transaction.atomic
def reset_to_default(dealer):
    return _save(
        dealer,
        theme_preset=None,
        theme_settings=None,
        layout_settings=None,
        custom_css='',
    )


def ensure_preset_mutable(preset):
    if preset.is_system:
        raise ThemePresetImmutableError('System presets cannot be modified')
