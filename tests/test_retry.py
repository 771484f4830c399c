from unittest.mock import Mock, patch

import requests

from elevates.exceptions import UpstreamServiceError
from elevates.utils.retry_utils import default_should_retry, get_status_code, retry_with_backoff
from tests.base import BaseTestCase


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"status {status_code}")
        self.status_code = status_code


@patch('elevates.utils.retry_utils.time.sleep')
class TestRetryWithBackoff(BaseTestCase):

    def test_success_needs_no_retry(self, sleep):
        self.assertEqual(retry_with_backoff(lambda: 'ok'), 'ok')
        sleep.assert_not_called()

    def test_rate_limit_is_retried_with_growing_delay(self, sleep):
        fn = Mock(side_effect=[StatusError(429), StatusError(503), 'done'])
        self.assertEqual(retry_with_backoff(fn), 'done')
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [1.0, 2.0])

    def test_delay_is_capped(self, sleep):
        fn = Mock(side_effect=[StatusError(500)] * 4 + ['done'])
        retry_with_backoff(fn, max_retries=4, initial_delay=4, max_delay=5)
        self.assertEqual([c.args[0] for c in sleep.call_args_list], [4, 5, 5, 5])

    def test_gives_up_after_max_retries(self, sleep):
        fn = Mock(side_effect=StatusError(500))
        with self.assertRaises(StatusError):
            retry_with_backoff(fn, max_retries=2)
        self.assertEqual(fn.call_count, 3)

    def test_auth_errors_are_not_retried(self, sleep):
        for status in (401, 403, 404):
            fn = Mock(side_effect=StatusError(status))
            with self.assertRaises(StatusError):
                retry_with_backoff(fn)
            self.assertEqual(fn.call_count, 1)
        sleep.assert_not_called()

    def test_network_errors_are_retried(self, sleep):
        fn = Mock(side_effect=[requests.ConnectionError('reset'), 'ok'])
        self.assertEqual(retry_with_backoff(fn), 'ok')

    def test_custom_predicate(self, sleep):
        fn = Mock(side_effect=[ValueError('flaky'), 'ok'])
        self.assertEqual(retry_with_backoff(fn, should_retry=lambda e: isinstance(e, ValueError)), 'ok')


class TestStatusCodes(BaseTestCase):

    def test_status_from_service_errors(self):
        self.assertEqual(get_status_code(UpstreamServiceError('x', status_code=429)), 429)
        self.assertIsNone(get_status_code(ValueError('x')))

    def test_status_from_requests_error(self):
        response = requests.Response()
        response.status_code = 502
        self.assertEqual(get_status_code(requests.HTTPError(response=response)), 502)

    def test_unknown_errors_are_not_retried(self):
        self.assertFalse(default_should_retry(ValueError('bad input')))
        self.assertTrue(default_should_retry(TimeoutError()))
