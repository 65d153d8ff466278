"""
Theme resolution for dealer public pages.

Effective values are layered: built-in defaults < preset < dealer override
document. Theme and layout are resolved independently, so a broken theme
document never affects the layout and vice versa. Override documents use
the camelCase keys of the storefront API (``primaryColor``, ``headerStyle``).
"""
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from .models import FooterStyle, HeaderStyle

logger = logging.getLogger(__name__)

HEX_COLOR_RE = re.compile(r'^#[0-9A-Fa-f]{6}$')

AVAILABLE_FONTS = (
    'Inter', 'Roboto', 'Open Sans', 'Lato', 'Montserrat',
    'Poppins', 'Nunito', 'Raleway', 'Ubuntu', 'Playfair Display',
)

COLOR_KEYS = (
    'primaryColor', 'secondaryColor', 'accentColor',
    'backgroundColor', 'textColor', 'mutedColor',
)
FONT_KEYS = ('headingFont', 'bodyFont')
LAYOUT_FLAG_KEYS = (
    'showHeroSection', 'showFeatures', 'showGallery', 'showShopPreview', 'showContact',
)
GRID_COLUMNS = (2, 3, 4)

DEFAULT_THEME = {
    'primaryColor': '#3B82F6',
    'secondaryColor': '#10B981',
    'accentColor': '#F59E0B',
    'backgroundColor': '#FFFFFF',
    'textColor': '#1F2937',
    'mutedColor': '#6B7280',
    'headingFont': 'Inter',
    'bodyFont': 'Inter',
}

DEFAULT_LAYOUT = {
    'headerStyle': HeaderStyle.DEFAULT.value,
    'footerStyle': FooterStyle.DEFAULT.value,
    'productGridCols': 3,
    'showHeroSection': True,
    'showFeatures': True,
    'showGallery': True,
    'showShopPreview': True,
    'showContact': True,
}


@dataclass
class ResolvedTheme:
    theme: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_THEME))
    layout: Dict[str, Any] = field(default_factory=lambda: dict(DEFAULT_LAYOUT))
    custom_css: str = ''

    def as_dict(self):
        return {'theme': self.theme, 'layout': self.layout, 'customCss': self.custom_css}


def available_fonts():
    return list(AVAILABLE_FONTS)


def parse_override_document(raw) -> Dict[str, Any]:
    """
    Override document as a dict.

    Принимает dict, JSON-строку или None. Непарсящийся JSON и не-объекты
    считаются отсутствующими.
    """
    if raw is None or raw == '':
        return {}
    if isinstance(raw, (str, bytes)):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning('Ignoring unparseable override document')
            return {}
    if not isinstance(raw, dict):
        return {}
    return raw


def is_hex_color(value) -> bool:
    return isinstance(value, str) and bool(HEX_COLOR_RE.match(value))


def clean_theme_overrides(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only well-typed theme keys."""
    cleaned = {}
    for key in COLOR_KEYS:
        if is_hex_color(doc.get(key)):
            cleaned[key] = doc[key]
    for key in FONT_KEYS:
        value = doc.get(key)
        if isinstance(value, str) and value.strip():
            cleaned[key] = value.strip()
    return cleaned


def clean_layout_overrides(doc: Dict[str, Any]) -> Dict[str, Any]:
    """Keep only well-typed layout keys."""
    cleaned = {}
    if doc.get('headerStyle') in HeaderStyle.values:
        cleaned['headerStyle'] = doc['headerStyle']
    if doc.get('footerStyle') in FooterStyle.values:
        cleaned['footerStyle'] = doc['footerStyle']
    cols = doc.get('productGridCols')
    # bool is an int subclass
    if isinstance(cols, int) and not isinstance(cols, bool) and cols in GRID_COLUMNS:
        cleaned['productGridCols'] = cols
    for key in LAYOUT_FLAG_KEYS:
        if isinstance(doc.get(key), bool):
            cleaned[key] = doc[key]
    return cleaned


def preset_theme(preset) -> Dict[str, Any]:
    if preset is None:
        return {}
    return clean_theme_overrides({
        'primaryColor': preset.primary_color,
        'secondaryColor': preset.secondary_color,
        'accentColor': preset.accent_color,
        'backgroundColor': preset.background_color,
        'textColor': preset.text_color,
        'mutedColor': preset.muted_color,
        'headingFont': preset.heading_font,
        'bodyFont': preset.body_font,
    })


def preset_layout(preset) -> Dict[str, Any]:
    if preset is None:
        return {}
    return clean_layout_overrides({
        'headerStyle': preset.header_style,
        'footerStyle': preset.footer_style,
        'productGridCols': preset.product_grid_cols,
        'showHeroSection': preset.show_hero_section,
        'showFeatures': preset.show_features,
        'showGallery': preset.show_gallery,
        'showShopPreview': preset.show_shop_preview,
        'showContact': preset.show_contact,
    })


def resolve_theme(dealer) -> ResolvedTheme:
    preset = dealer.theme_preset if dealer.theme_preset_id else None

    theme = dict(DEFAULT_THEME)
    theme.update(preset_theme(preset))
    theme.update(clean_theme_overrides(parse_override_document(dealer.theme_settings)))

    layout = dict(DEFAULT_LAYOUT)
    layout.update(preset_layout(preset))
    layout.update(clean_layout_overrides(parse_override_document(dealer.layout_settings)))

    return ResolvedTheme(theme=theme, layout=layout, custom_css=dealer.custom_css or '')


def generate_theme_css(resolved: Optional[ResolvedTheme]) -> str:
    """CSS variables for the resolved theme, followed by the dealer's custom CSS."""
    if resolved is None:
        resolved = ResolvedTheme()
    theme, layout = resolved.theme, resolved.layout
    css = f""":root {{
  --theme-primary: {theme['primaryColor']};
  --theme-secondary: {theme['secondaryColor']};
  --theme-accent: {theme['accentColor']};
  --theme-background: {theme['backgroundColor']};
  --theme-text: {theme['textColor']};
  --theme-muted: {theme['mutedColor']};
  --theme-heading-font: {theme['headingFont']}, sans-serif;
  --theme-body-font: {theme['bodyFont']}, sans-serif;
  --theme-grid-cols: {layout['productGridCols']};
}}

body {{
  font-family: var(--theme-body-font);
  color: var(--theme-text);
  background-color: var(--theme-background);
}}

h1, h2, h3, h4, h5, h6 {{
  font-family: var(--theme-heading-font);
}}

.btn-primary {{
  background-color: var(--theme-primary);
}}

.text-primary {{
  color: var(--theme-primary);
}}

.bg-primary {{
  background-color: var(--theme-primary);
}}"""
    if resolved.custom_css:
        css = f'{css}\n\n{resolved.custom_css}'
    return css
