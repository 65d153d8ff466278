import uuid

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='ThemePreset',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100, unique=True, verbose_name='name')),
                ('description', models.TextField(blank=True, verbose_name='description')),
                ('primary_color', models.CharField(default='#3B82F6', help_text='Hex colour, #RRGGBB', max_length=7)),
                ('secondary_color', models.CharField(default='#10B981', help_text='Hex colour, #RRGGBB', max_length=7)),
                ('accent_color', models.CharField(default='#F59E0B', help_text='Hex colour, #RRGGBB', max_length=7)),
                ('background_color', models.CharField(default='#FFFFFF', help_text='Hex colour, #RRGGBB', max_length=7)),
                ('text_color', models.CharField(default='#1F2937', help_text='Hex colour, #RRGGBB', max_length=7)),
                ('muted_color', models.CharField(default='#6B7280', help_text='Hex colour, #RRGGBB', max_length=7)),
                ('heading_font', models.CharField(default='Inter', max_length=100)),
                ('body_font', models.CharField(default='Inter', max_length=100)),
                ('header_style', models.CharField(choices=[('default', 'Default'), ('centered', 'Centered'), ('minimal', 'Minimal')], default='default', max_length=20)),
                ('footer_style', models.CharField(choices=[('default', 'Default'), ('simple', 'Simple'), ('expanded', 'Expanded')], default='default', max_length=20)),
                ('product_grid_cols', models.PositiveSmallIntegerField(choices=[(2, '2'), (3, '3'), (4, '4')], default=3)),
                ('show_hero_section', models.BooleanField(default=True)),
                ('show_features', models.BooleanField(default=True)),
                ('show_gallery', models.BooleanField(default=True)),
                ('show_shop_preview', models.BooleanField(default=True)),
                ('show_contact', models.BooleanField(default=True)),
                ('is_system', models.BooleanField(default=False, verbose_name='system preset')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'theme preset',
                'verbose_name_plural': 'theme presets',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='Dealer',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(max_length=200, verbose_name='name')),
                ('slug', models.SlugField(max_length=100, unique=True, verbose_name='slug')),
                ('custom_domain', models.CharField(blank=True, max_length=255, null=True, unique=True)),
                ('subdomain', models.CharField(blank=True, max_length=63, null=True, unique=True)),
                ('is_active', models.BooleanField(default=True, verbose_name='active')),
                ('is_public_page_active', models.BooleanField(default=False, verbose_name='public page active')),
                ('email', models.EmailField(blank=True, max_length=254)),
                ('phone', models.CharField(blank=True, max_length=30)),
                ('address', models.TextField(blank=True)),
                ('contact_email', models.EmailField(blank=True, max_length=254)),
                ('contact_phone', models.CharField(blank=True, max_length=30)),
                ('contact_address', models.TextField(blank=True)),
                ('social_facebook', models.URLField(blank=True)),
                ('social_instagram', models.URLField(blank=True)),
                ('social_twitter', models.URLField(blank=True)),
                ('social_youtube', models.URLField(blank=True)),
                ('logo', models.URLField(blank=True)),
                ('hero_image', models.URLField(blank=True)),
                ('hero_title', models.CharField(blank=True, max_length=200)),
                ('hero_subtitle', models.CharField(blank=True, max_length=300)),
                ('about_text', models.TextField(blank=True)),
                ('features', models.JSONField(blank=True, default=list)),
                ('meta_title', models.CharField(blank=True, max_length=60)),
                ('meta_description', models.CharField(blank=True, max_length=160)),
                ('meta_keywords', models.CharField(blank=True, max_length=255)),
                ('favicon_url', models.URLField(blank=True)),
                ('theme_settings', models.JSONField(blank=True, help_text='Theme override document', null=True)),
                ('layout_settings', models.JSONField(blank=True, help_text='Layout override document', null=True)),
                ('custom_css', models.TextField(blank=True)),
                ('hierarchy_level', models.PositiveSmallIntegerField(default=0)),
                ('inherit_parent_products', models.BooleanField(default=False)),
                ('can_create_own_products', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('parent_dealer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='sub_dealers', to='dealers.dealer')),
                ('theme_preset', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='dealers', to='dealers.themepreset')),
            ],
            options={
                'verbose_name': 'dealer',
                'verbose_name_plural': 'dealers',
                'ordering': ['name'],
            },
        ),
        migrations.CreateModel(
            name='DealerDomain',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('domain', models.CharField(max_length=255, unique=True)),
                ('type', models.CharField(choices=[('custom', 'Custom domain'), ('subdomain', 'Subdomain')], default='custom', max_length=20)),
                ('verification_method', models.CharField(choices=[('dns', 'DNS TXT record'), ('file', 'File upload')], default='dns', max_length=10)),
                ('verification_token', models.CharField(max_length=64)),
                ('verified', models.BooleanField(default=False)),
                ('verified_at', models.DateTimeField(blank=True, null=True)),
                ('is_primary', models.BooleanField(default=False)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('dealer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='domains', to='dealers.dealer')),
            ],
            options={
                'verbose_name': 'dealer domain',
                'verbose_name_plural': 'dealer domains',
                'ordering': ['-is_primary', '-created_at'],
                'indexes': [models.Index(fields=['dealer', 'is_active'], name='domain_dealer_active_idx')],
            },
        ),
        migrations.CreateModel(
            name='DealerMembership',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('SUPER_ADMIN', 'Super admin'), ('DEALER_ADMIN', 'Dealer admin'), ('TRAINER', 'Trainer')], default='TRAINER', max_length=20)),
                ('is_active', models.BooleanField(default=True)),
                ('joined_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('dealer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='memberships', to='dealers.dealer')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='dealer_memberships', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'verbose_name': 'dealer membership',
                'verbose_name_plural': 'dealer memberships',
                'indexes': [models.Index(fields=['user', 'is_active'], name='membership_user_active_idx')],
                'unique_together': {('dealer', 'user')},
            },
        ),
    ]
