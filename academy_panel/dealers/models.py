"""
Dealer models - ядро мультитенантной архитектуры.

Подход: shared-database, shared-schema с dealer FK на каждой модели верхнего уровня.
Dealer = спортивная школа / оператор академии. Публичный сайт дилера
открывается по собственному домену, поддомену платформы или алиасу (DealerDomain).
"""

import uuid

from django.conf import settings
from django.db import models
from django.utils.translation import gettext_lazy as _

from .querysets import DealerScopedQuerySet


HEX_COLOR_HELP = _('Hex colour, #RRGGBB')


class HeaderStyle(models.TextChoices):
    DEFAULT = 'default', _('Default')
    CENTERED = 'centered', _('Centered')
    MINIMAL = 'minimal', _('Minimal')


class FooterStyle(models.TextChoices):
    DEFAULT = 'default', _('Default')
    SIMPLE = 'simple', _('Simple')
    EXPANDED = 'expanded', _('Expanded')


class ThemePreset(models.Model):
    """
    Named bundle of theme and layout defaults.
    System presets are seeded by migration and cannot be changed or deleted.
    """

    GRID_COLUMN_CHOICES = [(2, '2'), (3, '3'), (4, '4')]

    name = models.CharField(_('name'), max_length=100, unique=True)
    description = models.TextField(_('description'), blank=True)

    # === Colours ===
    primary_color = models.CharField(max_length=7, default='#3B82F6', help_text=HEX_COLOR_HELP)
    secondary_color = models.CharField(max_length=7, default='#10B981', help_text=HEX_COLOR_HELP)
    accent_color = models.CharField(max_length=7, default='#F59E0B', help_text=HEX_COLOR_HELP)
    background_color = models.CharField(max_length=7, default='#FFFFFF', help_text=HEX_COLOR_HELP)
    text_color = models.CharField(max_length=7, default='#1F2937', help_text=HEX_COLOR_HELP)
    muted_color = models.CharField(max_length=7, default='#6B7280', help_text=HEX_COLOR_HELP)

    # === Fonts ===
    heading_font = models.CharField(max_length=100, default='Inter')
    body_font = models.CharField(max_length=100, default='Inter')

    # === Layout ===
    header_style = models.CharField(max_length=20, choices=HeaderStyle.choices, default=HeaderStyle.DEFAULT)
    footer_style = models.CharField(max_length=20, choices=FooterStyle.choices, default=FooterStyle.DEFAULT)
    product_grid_cols = models.PositiveSmallIntegerField(choices=GRID_COLUMN_CHOICES, default=3)
    show_hero_section = models.BooleanField(default=True)
    show_features = models.BooleanField(default=True)
    show_gallery = models.BooleanField(default=True)
    show_shop_preview = models.BooleanField(default=True)
    show_contact = models.BooleanField(default=True)

    is_system = models.BooleanField(_('system preset'), default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ['name']
        verbose_name = _('theme preset')
        verbose_name_plural = _('theme presets')

    def __str__(self):
        return self.name


class DealerQuerySet(models.QuerySet):

    def public(self):
        """Dealers whose public page may be served."""
        return self.filter(is_active=True, is_public_page_active=True)


class Dealer(models.Model):
    """
    Оператор академии. Все данные в системе привязаны к dealer через FK.
    """

    # === Идентификация ===
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(_('name'), max_length=200)
    slug = models.SlugField(_('slug'), max_length=100, unique=True)
    custom_domain = models.CharField(max_length=255, unique=True, null=True, blank=True)
    subdomain = models.CharField(max_length=63, unique=True, null=True, blank=True)
    is_active = models.BooleanField(_('active'), default=True)
    is_public_page_active = models.BooleanField(_('public page active'), default=False)

    # === Контакты ===
    email = models.EmailField(blank=True)
    phone = models.CharField(max_length=30, blank=True)
    address = models.TextField(blank=True)
    contact_email = models.EmailField(blank=True)
    contact_phone = models.CharField(max_length=30, blank=True)
    contact_address = models.TextField(blank=True)
    social_facebook = models.URLField(blank=True)
    social_instagram = models.URLField(blank=True)
    social_twitter = models.URLField(blank=True)
    social_youtube = models.URLField(blank=True)

    # === Публичная страница ===
    logo = models.URLField(blank=True)
    hero_image = models.URLField(blank=True)
    hero_title = models.CharField(max_length=200, blank=True)
    hero_subtitle = models.CharField(max_length=300, blank=True)
    about_text = models.TextField(blank=True)
    features = models.JSONField(default=list, blank=True)

    # === SEO ===
    meta_title = models.CharField(max_length=60, blank=True)
    meta_description = models.CharField(max_length=160, blank=True)
    meta_keywords = models.CharField(max_length=255, blank=True)
    favicon_url = models.URLField(blank=True)

    # === Тема ===
    theme_preset = models.ForeignKey(
        ThemePreset, on_delete=models.SET_NULL, null=True, blank=True,
        related_name='dealers',
    )
    theme_settings = models.JSONField(null=True, blank=True, help_text=_('Theme override document'))
    layout_settings = models.JSONField(null=True, blank=True, help_text=_('Layout override document'))
    custom_css = models.TextField(blank=True)

    # === Иерархия ===
    parent_dealer = models.ForeignKey(
        'self', on_delete=models.PROTECT, null=True, blank=True,
        related_name='sub_dealers',
    )
    hierarchy_level = models.PositiveSmallIntegerField(default=0)
    inherit_parent_products = models.BooleanField(default=False)
    can_create_own_products = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DealerQuerySet.as_manager()

    class Meta:
        ordering = ['name']
        verbose_name = _('dealer')
        verbose_name_plural = _('dealers')

    def __str__(self):
        return f'{self.name} ({self.slug})'

    def to_public_config(self):
        """Минимальный конфиг для ответа by-domain."""
        return {'id': str(self.id), 'slug': self.slug, 'name': self.name}


class DealerDomain(models.Model):
    """Domain alias of a dealer, usable for routing only once verified."""

    class DomainType(models.TextChoices):
        CUSTOM = 'custom', _('Custom domain')
        SUBDOMAIN = 'subdomain', _('Subdomain')

    class VerificationMethod(models.TextChoices):
        DNS = 'dns', _('DNS TXT record')
        FILE = 'file', _('File upload')

    dealer = models.ForeignKey(Dealer, on_delete=models.CASCADE, related_name='domains')
    domain = models.CharField(max_length=255, unique=True)
    type = models.CharField(max_length=20, choices=DomainType.choices, default=DomainType.CUSTOM)
    verification_method = models.CharField(
        max_length=10, choices=VerificationMethod.choices, default=VerificationMethod.DNS,
    )
    verification_token = models.CharField(max_length=64)
    verified = models.BooleanField(default=False)
    verified_at = models.DateTimeField(null=True, blank=True)
    is_primary = models.BooleanField(default=False)
    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = DealerScopedQuerySet.as_manager()

    class Meta:
        ordering = ['-is_primary', '-created_at']
        verbose_name = _('dealer domain')
        verbose_name_plural = _('dealer domains')
        indexes = [
            models.Index(fields=['dealer', 'is_active'], name='domain_dealer_active_idx'),
        ]

    def __str__(self):
        return self.domain


class DealerMembership(models.Model):
    """
    Связь пользователя с дилером и его ролью.
    Identity layer даёт пользователя, membership даёт dealer id и роль.
    """

    class Role(models.TextChoices):
        SUPER_ADMIN = 'SUPER_ADMIN', _('Super admin')
        DEALER_ADMIN = 'DEALER_ADMIN', _('Dealer admin')
        TRAINER = 'TRAINER', _('Trainer')

    dealer = models.ForeignKey(Dealer, on_delete=models.CASCADE, related_name='memberships')
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL, on_delete=models.CASCADE,
        related_name='dealer_memberships',
    )
    role = models.CharField(max_length=20, choices=Role.choices, default=Role.TRAINER)
    is_active = models.BooleanField(default=True)
    joined_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _('dealer membership')
        verbose_name_plural = _('dealer memberships')
        unique_together = ['dealer', 'user']
        indexes = [
            models.Index(fields=['user', 'is_active'], name='membership_user_active_idx'),
        ]

    def __str__(self):
        return f'{self.user} → {self.dealer} ({self.role})'
