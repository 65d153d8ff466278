from django.utils.translation import gettext_lazy as _
from rest_framework import serializers

from . import domains
from .customization import CUSTOM_CSS_MAX_LENGTH, find_dangerous_css
from .models import Dealer, DealerDomain, DealerMembership, FooterStyle, HeaderStyle, ThemePreset
from .theming import HEX_COLOR_RE, resolve_theme, generate_theme_css


def hex_color_field(**kwargs):
    return serializers.RegexField(
        HEX_COLOR_RE, error_messages={'invalid': _('Invalid colour code')}, **kwargs,
    )


# ═══════════════════════════════════════════════════════════════
# THEME / LAYOUT DOCUMENTS
# ═══════════════════════════════════════════════════════════════

class ThemeSettingsSerializer(serializers.Serializer):
    primaryColor = hex_color_field()
    secondaryColor = hex_color_field()
    accentColor = hex_color_field()
    backgroundColor = hex_color_field()
    textColor = hex_color_field()
    mutedColor = hex_color_field()
    headingFont = serializers.CharField(max_length=100)
    bodyFont = serializers.CharField(max_length=100)


class LayoutSettingsSerializer(serializers.Serializer):
    headerStyle = serializers.ChoiceField(choices=HeaderStyle.choices, default=HeaderStyle.DEFAULT)
    footerStyle = serializers.ChoiceField(choices=FooterStyle.choices, default=FooterStyle.DEFAULT)
    productGridCols = serializers.IntegerField(min_value=2, max_value=4, default=3)
    showHeroSection = serializers.BooleanField(default=True)
    showFeatures = serializers.BooleanField(default=True)
    showGallery = serializers.BooleanField(default=True)
    showShopPreview = serializers.BooleanField(default=True)
    showContact = serializers.BooleanField(default=True)


class CustomCssSerializer(serializers.Serializer):
    customCss = serializers.CharField(
        allow_blank=True, trim_whitespace=False, max_length=CUSTOM_CSS_MAX_LENGTH,
    )

    def validate_customCss(self, value):
        if find_dangerous_css(value):
            raise serializers.ValidationError(_('CSS contains forbidden content'))
        return value


class MetaSettingsSerializer(serializers.Serializer):
    metaTitle = serializers.CharField(max_length=60, allow_blank=True, required=False, source='meta_title')
    metaDescription = serializers.CharField(
        max_length=160, allow_blank=True, required=False, source='meta_description',
    )
    metaKeywords = serializers.CharField(max_length=255, allow_blank=True, required=False, source='meta_keywords')
    faviconUrl = serializers.URLField(allow_blank=True, required=False, source='favicon_url')


class ApplyPresetSerializer(serializers.Serializer):
    themePresetId = serializers.PrimaryKeyRelatedField(queryset=ThemePreset.objects.all())


# ═══════════════════════════════════════════════════════════════
# PRESETS
# ═══════════════════════════════════════════════════════════════

class ThemePresetSerializer(serializers.ModelSerializer):
    primary_color = hex_color_field(required=False)
    secondary_color = hex_color_field(required=False)
    accent_color = hex_color_field(required=False)
    background_color = hex_color_field(required=False)
    text_color = hex_color_field(required=False)
    muted_color = hex_color_field(required=False)

    class Meta:
        model = ThemePreset
        fields = [
            'id', 'name', 'description',
            'primary_color', 'secondary_color', 'accent_color',
            'background_color', 'text_color', 'muted_color',
            'heading_font', 'body_font',
            'header_style', 'footer_style', 'product_grid_cols',
            'show_hero_section', 'show_features', 'show_gallery',
            'show_shop_preview', 'show_contact',
            'is_system', 'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'is_system', 'created_at', 'updated_at']


# ═══════════════════════════════════════════════════════════════
# DEALER
# ═══════════════════════════════════════════════════════════════

class PublicSiteSerializer(serializers.ModelSerializer):
    """Публичная страница дилера с уже применённой темой."""

    theme = serializers.SerializerMethodField()
    themeCss = serializers.SerializerMethodField()

    class Meta:
        model = Dealer
        fields = [
            'id', 'name', 'slug', 'logo', 'hero_image', 'hero_title', 'hero_subtitle',
            'about_text', 'features',
            'contact_address', 'contact_email', 'contact_phone',
            'social_facebook', 'social_instagram', 'social_twitter', 'social_youtube',
            'meta_title', 'meta_description', 'favicon_url',
            'theme', 'themeCss',
        ]

    def _resolved(self, obj):
        cache = self.context.setdefault('_resolved_themes', {})
        if obj.pk not in cache:
            cache[obj.pk] = resolve_theme(obj)
        return cache[obj.pk]

    def get_theme(self, obj):
        resolved = self._resolved(obj)
        return {'theme': resolved.theme, 'layout': resolved.layout}

    def get_themeCss(self, obj):
        return generate_theme_css(self._resolved(obj))


class SubDealerSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=200)
    slug = serializers.RegexField(r'^[a-z0-9-]+$', min_length=2, max_length=100)
    sub_dealer_count = serializers.SerializerMethodField()

    class Meta:
        model = Dealer
        fields = [
            'id', 'name', 'slug', 'email', 'phone', 'address', 'logo',
            'parent_dealer', 'hierarchy_level',
            'inherit_parent_products', 'can_create_own_products',
            'custom_domain', 'subdomain', 'is_active',
            'sub_dealer_count', 'created_at', 'updated_at',
        ]
        read_only_fields = [
            'id', 'parent_dealer', 'hierarchy_level', 'is_active',
            'created_at', 'updated_at',
        ]

    def get_sub_dealer_count(self, obj):
        return obj.sub_dealers.count()


# ═══════════════════════════════════════════════════════════════
# DOMAINS
# ═══════════════════════════════════════════════════════════════

class DealerDomainSerializer(serializers.ModelSerializer):
    verification_info = serializers.SerializerMethodField()

    class Meta:
        model = DealerDomain
        fields = [
            'id', 'domain', 'type', 'verification_method', 'verified', 'verified_at',
            'is_primary', 'is_active', 'verification_info', 'created_at',
        ]
        read_only_fields = fields

    def get_verification_info(self, obj):
        if obj.verified:
            return None
        return domains.verification_info(obj)


class DomainCreateSerializer(serializers.Serializer):
    domain = serializers.CharField(min_length=3, max_length=255)
    type = serializers.ChoiceField(
        choices=DealerDomain.DomainType.choices, default=DealerDomain.DomainType.CUSTOM,
    )
    verification_method = serializers.ChoiceField(
        choices=DealerDomain.VerificationMethod.choices, default=DealerDomain.VerificationMethod.DNS,
    )

    def validate_domain(self, value):
        value = domains.normalize_domain(value)
        if not domains.is_valid_domain(value):
            raise serializers.ValidationError(_('Invalid domain format'))
        return value


class SubdomainSerializer(serializers.Serializer):
    subdomain = serializers.CharField(allow_blank=True, max_length=63)


# ═══════════════════════════════════════════════════════════════
# PLATFORM DEALERS (SUPER ADMIN)
# ═══════════════════════════════════════════════════════════════

DEALER_PASSWORD_MIN_LENGTH = 6


class DealerSerializer(serializers.ModelSerializer):
    name = serializers.CharField(min_length=2, max_length=200)
    slug = serializers.RegexField(r'^[a-z0-9-]+$', min_length=2, max_length=100)
    user_count = serializers.SerializerMethodField()

    class Meta:
        model = Dealer
        fields = [
            'id', 'name', 'slug', 'email', 'phone', 'address',
            'custom_domain', 'subdomain', 'is_active', 'is_public_page_active',
            'parent_dealer', 'hierarchy_level', 'user_count',
            'created_at', 'updated_at',
        ]
        read_only_fields = ['id', 'is_active', 'parent_dealer', 'hierarchy_level', 'created_at', 'updated_at']

    def get_user_count(self, obj):
        return obj.memberships.filter(is_active=True).count()


class DealerAdminSerializer(serializers.Serializer):
    name = serializers.CharField(min_length=2, max_length=150)
    email = serializers.EmailField()
    password = serializers.CharField(min_length=DEALER_PASSWORD_MIN_LENGTH, write_only=True)


class DealerCreateSerializer(DealerSerializer):
    admin = DealerAdminSerializer(required=False, write_only=True)

    class Meta(DealerSerializer.Meta):
        fields = DealerSerializer.Meta.fields + ['admin']


class DealerUserSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(source='user.id', read_only=True)
    name = serializers.CharField(source='user.first_name', read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = DealerMembership
        fields = ['id', 'user_id', 'name', 'email', 'role', 'joined_at']
        read_only_fields = fields


class DealerUserCreateSerializer(DealerAdminSerializer):
    role = serializers.ChoiceField(
        choices=[DealerMembership.Role.DEALER_ADMIN, DealerMembership.Role.TRAINER],
        default=DealerMembership.Role.DEALER_ADMIN,
    )


class PasswordResetSerializer(serializers.Serializer):
    password = serializers.CharField(min_length=DEALER_PASSWORD_MIN_LENGTH, write_only=True)
