"""
Тесты инфраструктуры: health, заголовки ответа, логирование, фильтрация Sentry.
"""
import logging

from django.http import Http404
from django.test import TestCase, override_settings

from dealers.context import clear_current_dealer, set_current_dealer
from dealers.models import Dealer

from .safe_logging import DealerContextFilter
from .sentry_config import before_send_callback


class HealthCheckTests(TestCase):

    @override_settings(DEFAULT_DEALER_SLUG='demo-spor-kulubu')
    def test_healthy_without_default_dealer(self):
        response = self.client.get('/api/health/')
        self.assertEqual(response.status_code, 200)
        data = response.json()
        self.assertEqual(data['status'], 'healthy')
        self.assertEqual(data['checks']['database'], 'ok')
        self.assertEqual(data['checks']['default_dealer'], 'missing (non-critical)')

    @override_settings(DEFAULT_DEALER_SLUG='demo-spor-kulubu')
    def test_default_dealer_ok(self):
        Dealer.objects.create(name='Demo', slug='demo-spor-kulubu', is_public_page_active=True)
        data = self.client.get('/api/health/').json()
        self.assertEqual(data['checks']['default_dealer'], 'ok')

    def test_security_headers(self):
        response = self.client.get('/api/health/')
        self.assertEqual(response['X-Content-Type-Options'], 'nosniff')
        self.assertIn('X-Request-Duration', response)


class DealerContextFilterTests(TestCase):

    def make_record(self):
        return logging.LogRecord('shop', logging.INFO, __file__, 1, 'msg', None, None)

    def test_without_dealer(self):
        record = self.make_record()
        self.assertTrue(DealerContextFilter().filter(record))
        self.assertEqual(record.dealer, '-')

    def test_with_dealer(self):
        set_current_dealer(Dealer(name='Log FK', slug='log-fk'))
        try:
            record = self.make_record()
            DealerContextFilter().filter(record)
        finally:
            clear_current_dealer()
        self.assertEqual(record.dealer, 'log-fk')


class SentryFilterTests(TestCase):

    def test_customer_data_is_masked(self):
        event = {'request': {
            'data': {'customerPhone': '+90555', 'customerName': 'Ali'},
            'headers': {'Authorization': 'Bearer abc'},
        }}
        result = before_send_callback(event, {})
        self.assertEqual(result['request']['data']['customerPhone'], '[FILTERED]')
        self.assertEqual(result['request']['data']['customerName'], 'Ali')
        self.assertEqual(result['request']['headers']['Authorization'], '[FILTERED]')

    def test_http404_is_dropped(self):
        self.assertIsNone(before_send_callback({}, {'exc_info': (Http404, Http404(), None)}))
