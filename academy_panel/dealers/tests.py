"""
Тесты dealers: определение дилера по host, middleware, темы, права.

Запуск: python manage.py test dealers -v2
"""
import time
from unittest import mock

from django.test import RequestFactory, TestCase, override_settings
from rest_framework.test import APITestCase

from dealers.context import clear_current_dealer, get_current_dealer, set_current_dealer
from dealers.middleware import DealerMiddleware
from dealers.models import Dealer, DealerDomain, DealerMembership, ThemePreset
from dealers.permissions import Permission, role_has_permission
from dealers.querysets import DealerContextRequired
from dealers.resolver import normalize_host, platform_subdomain, resolve_dealer_for_host
from dealers.theming import (
    DEFAULT_LAYOUT, DEFAULT_THEME, generate_theme_css, parse_override_document,
    resolve_theme,
)


def make_dealer(slug, **extra):
    defaults = {'name': slug.replace('-', ' ').title(), 'is_public_page_active': True}
    defaults.update(extra)
    return Dealer.objects.create(slug=slug, **defaults)


@override_settings(MAIN_DOMAIN='futbolokullari.com', DEFAULT_DEALER_SLUG='demo-spor-kulubu')
class ResolverTests(TestCase):

    def setUp(self):
        self.dealer = make_dealer('galata-spor', subdomain='galata', custom_domain='galataspor.com.tr')

    def test_normalize_host(self):
        self.assertEqual(normalize_host(' Galata.Futbolokullari.com:8000 '), 'galata.futbolokullari.com')
        self.assertEqual(normalize_host('[::1]:8000'), '::1')
        self.assertEqual(normalize_host(None), '')

    def test_platform_subdomain(self):
        self.assertEqual(platform_subdomain('galata.futbolokullari.com'), 'galata')
        self.assertIsNone(platform_subdomain('www.futbolokullari.com'))
        self.assertIsNone(platform_subdomain('a.b.futbolokullari.com'))
        self.assertIsNone(platform_subdomain('futbolokullari.com'))

    def test_custom_domain(self):
        self.assertEqual(resolve_dealer_for_host('galataspor.com.tr'), self.dealer)

    def test_platform_subdomain_match(self):
        self.assertEqual(resolve_dealer_for_host('galata.futbolokullari.com:443'), self.dealer)

    def test_verified_alias(self):
        DealerDomain.objects.create(dealer=self.dealer, domain='galata.club', verification_token='t', verified=True)
        self.assertEqual(resolve_dealer_for_host('galata.club'), self.dealer)

    def test_unverified_alias_is_ignored(self):
        DealerDomain.objects.create(dealer=self.dealer, domain='galata.club', verification_token='t')
        self.assertIsNone(resolve_dealer_for_host('galata.club'))

    def test_inactive_alias_is_ignored(self):
        DealerDomain.objects.create(
            dealer=self.dealer, domain='galata.club', verification_token='t', verified=True, is_active=False,
        )
        self.assertIsNone(resolve_dealer_for_host('galata.club'))

    def test_inactive_dealer_is_not_resolved(self):
        self.dealer.is_active = False
        self.dealer.save()
        self.assertIsNone(resolve_dealer_for_host('galataspor.com.tr'))

    def test_hidden_public_page_is_not_resolved(self):
        self.dealer.is_public_page_active = False
        self.dealer.save()
        self.assertIsNone(resolve_dealer_for_host('galata.futbolokullari.com'))

    def test_default_slug_used_only_without_match(self):
        default = make_dealer('demo-spor-kulubu')
        self.assertEqual(resolve_dealer_for_host('unknown.example.com'), default)
        self.assertEqual(resolve_dealer_for_host('galataspor.com.tr'), self.dealer)

    def test_reserved_label_falls_back_to_default(self):
        self.assertIsNone(resolve_dealer_for_host('www.futbolokullari.com'))


@override_settings(ALLOWED_HOSTS=['*'])
class DealerMiddlewareTests(TestCase):

    def setUp(self):
        DealerMiddleware.clear_cache()
        self.factory = RequestFactory()
        self.dealer = make_dealer('moda-spor', custom_domain='modaspor.com')
        self.seen = []

        def get_response(request):
            self.seen.append((request.dealer, get_current_dealer()))
            return 'ok'

        self.middleware = DealerMiddleware(get_response)

    def test_sets_request_dealer_and_context(self):
        request = self.factory.get('/api/public/site/', HTTP_HOST='modaspor.com')
        self.middleware(request)
        self.assertEqual(self.seen, [(self.dealer, self.dealer)])
        self.assertIsNone(get_current_dealer())

    def test_skip_paths(self):
        request = self.factory.get('/api/health/', HTTP_HOST='modaspor.com')
        self.middleware(request)
        self.assertEqual(self.seen, [(None, None)])

    def test_cache_is_cleared_on_dealer_save(self):
        self.middleware(self.factory.get('/', HTTP_HOST='modaspor.com'))
        self.assertIn('modaspor.com', DealerMiddleware._dealer_cache)
        self.dealer.name = 'Moda SK'
        self.dealer.save()
        self.assertEqual(DealerMiddleware._dealer_cache, {})

    def test_expired_entry_evicted_concurrently(self):
        stale = (self.dealer, time.monotonic() - 10_000)

        class EvictedCache(dict):
            # Другой поток удаляет запись между get и удалением
            def get(self, key, default=None):
                self.pop(key, None)
                return stale

        with mock.patch.object(DealerMiddleware, '_dealer_cache', EvictedCache()):
            self.middleware(self.factory.get('/', HTTP_HOST='modaspor.com'))
        self.assertEqual(self.seen, [(self.dealer, self.dealer)])

    def test_unknown_host_is_none(self):
        self.middleware(self.factory.get('/', HTTP_HOST='nobody.example.com'))
        self.assertEqual(self.seen, [(None, None)])

    def test_context_helpers(self):
        set_current_dealer(self.dealer)
        self.assertEqual(get_current_dealer(), self.dealer)
        clear_current_dealer()
        self.assertIsNone(get_current_dealer())


class ThemeResolutionTests(TestCase):

    def setUp(self):
        self.preset = ThemePreset.objects.create(
            name='Test Preset', primary_color='#FF0000', heading_font='Lato',
            header_style='centered', product_grid_cols=4,
        )
        self.dealer = make_dealer('tema-spor', theme_preset=self.preset)

    def test_defaults_without_preset(self):
        dealer = make_dealer('plain-spor')
        resolved = resolve_theme(dealer)
        self.assertEqual(resolved.theme, DEFAULT_THEME)
        self.assertEqual(resolved.layout, DEFAULT_LAYOUT)

    def test_preset_values(self):
        resolved = resolve_theme(self.dealer)
        self.assertEqual(resolved.theme['primaryColor'], '#FF0000')
        self.assertEqual(resolved.theme['headingFont'], 'Lato')
        self.assertEqual(resolved.layout['headerStyle'], 'centered')
        self.assertEqual(resolved.layout['productGridCols'], 4)

    def test_override_wins_over_preset(self):
        self.dealer.theme_settings = {'primaryColor': '#00FF00'}
        resolved = resolve_theme(self.dealer)
        self.assertEqual(resolved.theme['primaryColor'], '#00FF00')
        self.assertEqual(resolved.theme['headingFont'], 'Lato')

    def test_malformed_override_equals_preset(self):
        expected = resolve_theme(self.dealer).theme
        self.dealer.theme_settings = '{not json'
        self.assertEqual(resolve_theme(self.dealer).theme, expected)
        self.dealer.theme_settings = ['#000000']
        self.assertEqual(resolve_theme(self.dealer).theme, expected)

    def test_badly_typed_keys_are_dropped(self):
        self.dealer.theme_settings = {'primaryColor': 'red', 'textColor': '#111111'}
        resolved = resolve_theme(self.dealer)
        self.assertEqual(resolved.theme['primaryColor'], '#FF0000')
        self.assertEqual(resolved.theme['textColor'], '#111111')

    def test_theme_and_layout_fall_back_independently(self):
        self.dealer.theme_settings = 'broken'
        self.dealer.layout_settings = {'showGallery': False, 'productGridCols': 7}
        resolved = resolve_theme(self.dealer)
        self.assertEqual(resolved.theme['primaryColor'], '#FF0000')
        self.assertFalse(resolved.layout['showGallery'])
        self.assertEqual(resolved.layout['productGridCols'], 4)

    def test_parse_override_document(self):
        self.assertEqual(parse_override_document(None), {})
        self.assertEqual(parse_override_document('{"a": 1}'), {'a': 1})
        self.assertEqual(parse_override_document('[1]'), {})

    def test_css_contains_variables_and_custom_css(self):
        self.dealer.custom_css = '.hero { color: red; }'
        css = generate_theme_css(resolve_theme(self.dealer))
        self.assertIn('--theme-primary: #FF0000;', css)
        self.assertIn('--theme-grid-cols: 4;', css)
        self.assertTrue(css.rstrip().endswith('.hero { color: red; }'))

    def test_css_for_missing_theme_uses_defaults(self):
        self.assertIn(DEFAULT_THEME['primaryColor'], generate_theme_css(None))


class PermissionTests(TestCase):

    def test_role_map(self):
        Role = DealerMembership.Role
        self.assertTrue(role_has_permission(Role.DEALER_ADMIN, Permission.SHOP_MANAGE))
        self.assertTrue(role_has_permission(Role.TRAINER, Permission.ATTENDANCE_TAKE))
        self.assertFalse(role_has_permission(Role.TRAINER, Permission.STUDENTS_CREATE))
        self.assertTrue(role_has_permission(Role.SUPER_ADMIN, Permission.DEALERS_EDIT))
        self.assertFalse(role_has_permission(Role.SUPER_ADMIN, Permission.SHOP_VIEW))
        self.assertFalse(role_has_permission('UNKNOWN', Permission.SHOP_VIEW))

    def test_scoped_query_requires_dealer(self):
        with self.assertRaises(DealerContextRequired):
            DealerDomain.objects.for_dealer(None)


class DealerByDomainAPITests(APITestCase):

    def setUp(self):
        DealerMiddleware.clear_cache()
        self.dealer = make_dealer('kadikoy-fk', custom_domain='kadikoyfk.com')

    def test_found(self):
        response = self.client.get('/api/dealer/by-domain/', {'domain': 'kadikoyfk.com'})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data, {'id': str(self.dealer.pk), 'slug': 'kadikoy-fk', 'name': 'Kadikoy Fk'})
        self.assertIn('s-maxage=300', response['Cache-Control'])

    @override_settings(DEFAULT_DEALER_SLUG='')
    def test_not_found(self):
        response = self.client.get('/api/dealer/by-domain/', {'domain': 'nobody.example.com'})
        self.assertEqual(response.status_code, 404)
        self.assertEqual(response.data, {'error': 'Dealer not found'})

    def test_lookup_failure_is_500(self):
        with mock.patch('dealers.views.resolve_dealer_for_host', side_effect=RuntimeError('db down')):
            response = self.client.get('/api/dealer/by-domain/', {'domain': 'kadikoyfk.com'})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data, {'error': 'Internal server error'})


@override_settings(ALLOWED_HOSTS=['*'])
class PublicSiteAPITests(APITestCase):

    def setUp(self):
        DealerMiddleware.clear_cache()
        self.dealer = make_dealer('besiktas-okul', custom_domain='bjkokul.com', hero_title='Hos geldiniz')

    def test_by_slug(self):
        response = self.client.get('/api/public/besiktas-okul/site/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['hero_title'], 'Hos geldiniz')
        self.assertIn('--theme-primary', response.data['themeCss'])

    def test_by_host(self):
        response = self.client.get('/api/public/site/', HTTP_HOST='bjkokul.com')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['slug'], 'besiktas-okul')

    def test_hidden_page_is_404(self):
        self.dealer.is_public_page_active = False
        self.dealer.save()
        response = self.client.get('/api/public/besiktas-okul/site/')
        self.assertEqual(response.status_code, 404)

    def test_system_presets_listed(self):
        response = self.client.get('/api/themes/')
        self.assertEqual(response.status_code, 200)
        names = [p['name'] for p in response.data['presets']]
        self.assertIn('Stadium Night', names)


class CustomDomainHostTests(APITestCase):
    """Запросы на собственный домен дилера проходят с настройками по умолчанию."""

    def setUp(self):
        DealerMiddleware.clear_cache()
        self.dealer = make_dealer('kadikoy-spor', custom_domain='kadikoyspor.com')

    def test_custom_domain_host(self):
        response = self.client.get('/api/public/site/', HTTP_HOST='kadikoyspor.com')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['slug'], 'kadikoy-spor')

    def test_verified_alias_host(self):
        DealerDomain.objects.create(
            dealer=self.dealer, domain='kadikoy.club', verification_token='t', verified=True,
        )
        response = self.client.get('/api/public/site/', HTTP_HOST='kadikoy.club')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data['slug'], 'kadikoy-spor')

    @override_settings(DEFAULT_DEALER_SLUG='')
    def test_unknown_host_is_404(self):
        response = self.client.get('/api/public/site/', HTTP_HOST='nobody.example.com')
        self.assertEqual(response.status_code, 404)
