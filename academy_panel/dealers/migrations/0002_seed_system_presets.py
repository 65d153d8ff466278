"""
Data migration: системные пресеты тем.
"""

from django.db import migrations

SYSTEM_PRESETS = [
    {
        'name': 'Default',
        'description': 'Clean blue and green look',
    },
    {
        'name': 'Stadium Night',
        'description': 'Dark background with bright accents',
        'primary_color': '#22C55E',
        'secondary_color': '#0EA5E9',
        'accent_color': '#FACC15',
        'background_color': '#0F172A',
        'text_color': '#F8FAFC',
        'muted_color': '#94A3B8',
        'heading_font': 'Montserrat',
        'body_font': 'Roboto',
        'header_style': 'centered',
        'product_grid_cols': 4,
    },
    {
        'name': 'Classic Red',
        'description': 'Traditional club colours',
        'primary_color': '#DC2626',
        'secondary_color': '#1F2937',
        'accent_color': '#F59E0B',
        'heading_font': 'Playfair Display',
        'body_font': 'Lato',
        'footer_style': 'expanded',
    },
    {
        'name': 'Minimal',
        'description': 'Reduced layout without gallery',
        'primary_color': '#111827',
        'secondary_color': '#6B7280',
        'accent_color': '#2563EB',
        'heading_font': 'Poppins',
        'body_font': 'Nunito',
        'header_style': 'minimal',
        'footer_style': 'simple',
        'product_grid_cols': 2,
        'show_gallery': False,
    },
]


def create_system_presets(apps, schema_editor):
    ThemePreset = apps.get_model('dealers', 'ThemePreset')
    for preset in SYSTEM_PRESETS:
        fields = dict(preset)
        name = fields.pop('name')
        ThemePreset.objects.update_or_create(name=name, defaults={**fields, 'is_system': True})


def remove_system_presets(apps, schema_editor):
    ThemePreset = apps.get_model('dealers', 'ThemePreset')
    ThemePreset.objects.filter(is_system=True, name__in=[p['name'] for p in SYSTEM_PRESETS]).delete()


class Migration(migrations.Migration):

    dependencies = [
        ('dealers', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(create_system_presets, remove_system_presets),
    ]
