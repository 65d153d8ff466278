from django.contrib import admin

from .models import Dealer, DealerDomain, DealerMembership, ThemePreset


class DealerMembershipInline(admin.TabularInline):
    model = DealerMembership
    extra = 0
    readonly_fields = ('joined_at', 'updated_at')
    raw_id_fields = ('user',)


class DealerDomainInline(admin.TabularInline):
    model = DealerDomain
    extra = 0
    readonly_fields = ('verification_token', 'verified_at', 'created_at')


@admin.register(Dealer)
class DealerAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug', 'subdomain', 'custom_domain', 'is_active', 'is_public_page_active', 'parent_dealer')
    list_filter = ('is_active', 'is_public_page_active', 'hierarchy_level')
    search_fields = ('name', 'slug', 'custom_domain', 'subdomain')
    readonly_fields = ('id', 'created_at', 'updated_at')
    raw_id_fields = ('parent_dealer',)
    prepopulated_fields = {'slug': ('name',)}
    inlines = [DealerMembershipInline, DealerDomainInline]

    fieldsets = (
        ('Main', {
            'fields': ('id', 'name', 'slug', 'is_active', 'is_public_page_active')
        }),
        ('Routing', {
            'fields': ('custom_domain', 'subdomain')
        }),
        ('Contacts', {
            'fields': ('email', 'phone', 'address', 'contact_email', 'contact_phone', 'contact_address')
        }),
        ('Public page', {
            'classes': ('collapse',),
            'fields': (
                'logo', 'hero_image', 'hero_title', 'hero_subtitle', 'about_text', 'features',
                'social_facebook', 'social_instagram', 'social_twitter', 'social_youtube',
                'meta_title', 'meta_description', 'meta_keywords', 'favicon_url',
            )
        }),
        ('Theme (JSON)', {
            'classes': ('collapse',),
            'fields': ('theme_preset', 'theme_settings', 'layout_settings', 'custom_css')
        }),
        ('Hierarchy', {
            'fields': ('parent_dealer', 'hierarchy_level', 'inherit_parent_products', 'can_create_own_products')
        }),
        ('Dates', {
            'fields': ('created_at', 'updated_at')
        }),
    )


@admin.register(ThemePreset)
class ThemePresetAdmin(admin.ModelAdmin):
    list_display = ('name', 'is_system', 'primary_color', 'heading_font', 'header_style')
    list_filter = ('is_system',)
    search_fields = ('name',)

    def has_delete_permission(self, request, obj=None):
        if obj is not None and obj.is_system:
            return False
        return super().has_delete_permission(request, obj)


@admin.register(DealerDomain)
class DealerDomainAdmin(admin.ModelAdmin):
    list_display = ('domain', 'dealer', 'type', 'verified', 'is_primary', 'is_active')
    list_filter = ('verified', 'is_active', 'type')
    search_fields = ('domain', 'dealer__name')
    raw_id_fields = ('dealer',)
