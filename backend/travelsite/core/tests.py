from io import StringIO
from unittest.mock import AsyncMock, patch

import httpx
from django.core.management import call_command
from django.db import DatabaseError, connection
from django.conf import settings
from django.test import SimpleTestCase, TestCase, override_settings

from core.gate import (
    Decision,
    GateConfig,
    GateQueryError,
    PathCategory,
    RequestGate,
    SetupStatusClient,
)
from core.models import SITE_STATUS_KEY, Setting
from core.status import DatabaseStatusStore, StatusReadError, get_setup_status, set_setup_complete

STATUS_URL = 'http://127.0.0.1:8000/api/setup-check'


class FakeStore:
    def __init__(self, value=False, error=None):
        self.value = value
        self.error = error

    def read(self):
        if self.error:
            raise self.error
        return self.value


class FakeStatusClient:
    def __init__(self, complete):
        self.complete = complete
        self.calls = 0

    async def is_setup_complete(self, url):
        self.calls += 1
        return self.complete


def _gate_with_transport(handler) -> RequestGate:
    config = GateConfig.from_settings()
    return RequestGate(config, SetupStatusClient(timeout=config.timeout, transport=httpx.MockTransport(handler)))


class SetupStatusProviderTests(TestCase):
    def test_missing_document_reports_incomplete(self):
        self.assertEqual(get_setup_status(), {'isSetupComplete': False})

    def test_literal_true_reports_complete(self):
        Setting.objects.create(key=SITE_STATUS_KEY, value={'isSetupComplete': True})
        self.assertEqual(get_setup_status(), {'isSetupComplete': True})

    def test_missing_or_truthy_field_reports_incomplete(self):
        for value in ({}, {'isSetupComplete': 'true'}, {'isSetupComplete': 1}, {'isSetupComplete': False}):
            Setting.objects.update_or_create(key=SITE_STATUS_KEY, defaults={'value': value})
            self.assertEqual(get_setup_status(), {'isSetupComplete': False}, value)

    def test_malformed_value_raises_read_error(self):
        Setting.objects.create(key=SITE_STATUS_KEY, value=['isSetupComplete'])
        with self.assertRaises(StatusReadError):
            DatabaseStatusStore().read()
        self.assertEqual(get_setup_status(), {'isSetupComplete': False})

    @patch('core.status.Setting.objects.filter')
    def test_database_error_fails_closed(self, mock_filter):
        mock_filter.side_effect = DatabaseError('permission denied')
        with self.assertLogs('core.status', level='ERROR'):
            self.assertEqual(get_setup_status(), {'isSetupComplete': False})

    def test_injected_store(self):
        self.assertEqual(get_setup_status(FakeStore(True)), {'isSetupComplete': True})
        self.assertEqual(get_setup_status(FakeStore(error=StatusReadError('offline'))), {'isSetupComplete': False})

    def test_every_call_rereads_the_store(self):
        self.assertFalse(get_setup_status()['isSetupComplete'])
        set_setup_complete(True)
        self.assertTrue(get_setup_status()['isSetupComplete'])
        set_setup_complete(False)
        self.assertFalse(get_setup_status()['isSetupComplete'])


class SetupStatusClientTests(SimpleTestCase):
    def _client(self, handler):
        return SetupStatusClient(timeout=1, transport=httpx.MockTransport(handler))

    async def test_reads_boolean_and_disables_caching(self):
        seen = {}

        def handler(request):
            seen['cache'] = request.headers.get('cache-control')
            return httpx.Response(200, json={'isSetupComplete': False})

        self.assertFalse(await self._client(handler).fetch(STATUS_URL))
        self.assertEqual(seen['cache'], 'no-store')

    async def test_query_failures_raise_gate_query_error(self):
        def raise_timeout(request):
            raise httpx.ReadTimeout('timed out', request=request)

        handlers = [
            lambda request: httpx.Response(500, json={'isSetupComplete': False}),
            lambda request: httpx.Response(200, text='<html>oops</html>'),
            lambda request: httpx.Response(200, json={'status': 'ok'}),
            lambda request: httpx.Response(200, json={'isSetupComplete': 'false'}),
            lambda request: httpx.Response(200, json=[False]),
            raise_timeout,
        ]
        for handler in handlers:
            with self.assertRaises(GateQueryError):
                await self._client(handler).fetch(STATUS_URL)

    async def test_failures_fail_open(self):
        client = self._client(lambda request: httpx.Response(503))
        with self.assertLogs('core.gate', level='WARNING'):
            self.assertTrue(await client.is_setup_complete(STATUS_URL))


class RequestGateTests(SimpleTestCase):
    def _gate(self, complete=False):
        return RequestGate(GateConfig(), FakeStatusClient(complete))

    def test_classifies_paths_in_priority_order(self):
        gate = self._gate()
        cases = {
            '/static/css/site.css': PathCategory.INTERNAL,
            '/media/uploads/beach': PathCategory.INTERNAL,
            '/api/auth/session': PathCategory.INTERNAL,
            '/logo.svg': PathCategory.INTERNAL,
            '/favicon.ico': PathCategory.INTERNAL,
            '/images/Hero.JPG': PathCategory.INTERNAL,
            '/api/setup-check': PathCategory.STATUS_ENDPOINT,
            '/api/admin/check-index': PathCategory.STATUS_ENDPOINT,
            '/setup': PathCategory.WIZARD,
            '/': PathCategory.SITE,
            '/setup/extra': PathCategory.SITE,
            '/packages/bali': PathCategory.SITE,
            '/photos.png/details': PathCategory.SITE,
            '/brochure.pdf': PathCategory.SITE,
        }
        for path, category in cases.items():
            self.assertEqual(gate.classify(path), category, path)

    async def test_bypassed_paths_never_query_status(self):
        for complete in (True, False):
            gate = self._gate(complete)
            for path in ('/static/app.js', '/hero.png', '/api/auth/callback', '/api/setup-check', '/api/admin/check-index'):
                self.assertEqual(await gate.evaluate(path), Decision())
            self.assertEqual(gate.status_client.calls, 0)

    async def test_wizard_path(self):
        self.assertEqual(await self._gate(True).evaluate('/setup'), Decision(redirect_to='/'))
        self.assertTrue((await self._gate(False).evaluate('/setup')).passes)

    async def test_site_paths(self):
        self.assertEqual(await self._gate(False).evaluate('/packages'), Decision(redirect_to='/setup'))
        self.assertTrue((await self._gate(True).evaluate('/packages')).passes)

    async def test_repeated_requests_yield_same_decision(self):
        gate = self._gate(False)
        decisions = {await gate.evaluate('/blog') for _ in range(5)}
        self.assertEqual(decisions, {Decision(redirect_to='/setup')})
        self.assertEqual(gate.status_client.calls, 5)

    @override_settings(SETUP_STATUS_URL='http://status.internal/api/setup-check', SETUP_STATUS_TIMEOUT=1.5)
    def test_status_url_and_timeout_come_from_settings(self):
        gate = RequestGate.from_settings()
        self.assertEqual(gate.status_url, 'http://status.internal/api/setup-check')
        self.assertEqual(gate.status_client.timeout, 1.5)

    def test_lookalike_paths_are_gated(self):
        gate = self._gate()
        for path in ('/api/setup-checkout', '/api/setup-check/extra', '/api/authors', '/api/admin/check-indexes'):
            self.assertEqual(gate.classify(path), PathCategory.SITE, path)


class SetupGateMiddlewareTests(TestCase):
    @patch('core.gate.SetupStatusClient.fetch', new_callable=AsyncMock)
    def test_redirects_site_routes_when_setup_incomplete(self, mock_fetch):
        mock_fetch.return_value = False
        response = self.client.get('/packages')
        self.assertEqual(response.status_code, 302)
        self.assertEqual(response.url, '/setup')
        mock_fetch.assert_awaited_once_with(settings.SETUP_STATUS_URL)

    @patch('core.gate.SetupStatusClient.fetch', new_callable=AsyncMock)
    def test_passes_site_routes_when_setup_complete(self, mock_fetch):
        mock_fetch.return_value = True
        response = self.client.get('/')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json()['status'], 'ok')

    @patch('core.gate.SetupStatusClient.fetch', new_callable=AsyncMock)
    def test_static_and_status_paths_skip_the_check(self, mock_fetch):
        mock_fetch.return_value = False
        for path in ('/static/site.css', '/assets/logo.png', '/api/auth/login'):
            self.assertEqual(self.client.get(path).status_code, 404)
        self.assertEqual(self.client.get('/api/setup-check').status_code, 200)
        mock_fetch.assert_not_awaited()

    def test_status_endpoint_failure_fails_open(self):
        gate = _gate_with_transport(lambda request: httpx.Response(500))
        with patch('core.middleware.RequestGate.from_settings', return_value=gate):
            response = self.client.get('/')
            self.assertEqual(response.status_code, 200)
            self.assertEqual(self.client.get('/setup').url, '/')

    def test_host_header_does_not_pick_the_status_server(self):
        queried = []

        def handler(request):
            queried.append(str(request.url))
            return httpx.Response(200, json={'isSetupComplete': True})

        with patch('core.middleware.RequestGate.from_settings', return_value=_gate_with_transport(handler)):
            response = self.client.get('/', HTTP_HOST='169.254.169.254:80')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(queried, [settings.SETUP_STATUS_URL])

    def test_persisted_flag_drives_redirects(self):
        def serve_status(status):
            return _gate_with_transport(lambda request: httpx.Response(200, json=status))

        with patch('core.middleware.RequestGate.from_settings', return_value=serve_status(get_setup_status())):
            self.assertEqual(self.client.get('/blog').url, '/setup')
            self.assertEqual(self.client.get('/setup').status_code, 200)

        set_setup_complete(True)
        self.client = self.client_class()
        with patch('core.middleware.RequestGate.from_settings', return_value=serve_status(get_setup_status())):
            self.assertEqual(self.client.get('/setup').url, '/')
            self.assertEqual(self.client.get('/').status_code, 200)


@patch('core.gate.SetupStatusClient.fetch', new=AsyncMock(return_value=False))
class StatusEndpointTests(TestCase):
    def test_setup_check_reports_flag_without_caching(self):
        response = self.client.get('/api/setup-check')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'isSetupComplete': False})
        self.assertIn('no-store', response['Cache-Control'])

        set_setup_complete(True)
        self.assertEqual(self.client.get('/api/setup-check').json(), {'isSetupComplete': True})

    @patch('core.status.Setting.objects.filter')
    def test_setup_check_fails_closed_on_database_error(self, mock_filter):
        mock_filter.side_effect = DatabaseError('unavailable')
        response = self.client.get('/api/setup-check')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'isSetupComplete': False})

    def test_check_index_reports_existing_index(self):
        response = self.client.get('/api/admin/check-index')
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {'needsIndex': False})

    def test_check_index_reports_missing_index(self):
        with patch.object(connection.introspection, 'get_constraints', return_value={}):
            response = self.client.get('/api/admin/check-index')
        payload = response.json()
        self.assertTrue(payload['needsIndex'])
        self.assertEqual(payload['indexName'], 'media_active_type_idx')
        self.assertEqual([field['fieldPath'] for field in payload['fields']], ['deleted_at', 'type', 'uploaded_at'])

    def test_check_index_database_error(self):
        with patch.object(connection.introspection, 'get_constraints', side_effect=DatabaseError('boom')):
            with self.assertLogs('core.views', level='ERROR'):
                response = self.client.get('/api/admin/check-index')
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json(), {'error': 'An unexpected error occurred while checking setup.'})


class SetupStatusCommandTests(TestCase):
    def test_complete_and_reset(self):
        out = StringIO()
        call_command('setup_status', stdout=out)
        self.assertIn('Setup incomplete.', out.getvalue())

        out = StringIO()
        call_command('setup_status', '--complete', stdout=out)
        self.assertIn('Setup complete.', out.getvalue())
        self.assertEqual(Setting.objects.get(key=SITE_STATUS_KEY).value, {'isSetupComplete': True})

        out = StringIO()
        call_command('setup_status', '--reset', stdout=out)
        self.assertIn('Setup incomplete.', out.getvalue())
        self.assertFalse(get_setup_status()['isSetupComplete'])
