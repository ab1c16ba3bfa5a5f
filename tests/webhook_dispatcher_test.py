"""
Webhook delivery: retries, backoff, subscription filtering
"""

import unittest
from unittest.mock import MagicMock

import requests

from webhooks.dispatcher import WebhookDispatcher
from webhooks.models import EventKind, WebhookConfig, completed_event, progress_event, started_event

def response(status):
    r = MagicMock()
    r.status_code = status
    return r

class TestDelivery(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.sleeps = []
        self.dispatcher = WebhookDispatcher(session=self.session, backoff=0.5, timeout=3, sleep=self.sleeps.append)
        self.config = WebhookConfig(url="https://hooks.example.net/in", headers={"X-Token": "abc"}, max_retries=3)

    def test_posts_json_with_headers(self):
        self.session.post.return_value = response(200)
        event = started_event("job1", "https://example.com/")
        self.assertTrue(self.dispatcher.deliver(self.config, event))

        args, kwargs = self.session.post.call_args
        self.assertEqual(args[0], "https://hooks.example.net/in")
        self.assertEqual(kwargs["json"], event.to_wire())
        self.assertEqual(kwargs["headers"]["Content-Type"], "application/json")
        self.assertEqual(kwargs["headers"]["X-Token"], "abc")
        self.assertEqual(kwargs["timeout"], 3)
        self.assertEqual(self.dispatcher.delivered, 1)

    def test_retries_until_success(self):
        # Fails N-1 times then succeeds, N <= retries
        self.session.post.side_effect = [response(500), response(503), response(204)]
        ok = self.dispatcher.deliver(self.config, completed_event("job1", [], {}))
        self.assertTrue(ok)
        self.assertEqual(self.session.post.call_count, 3)
        self.assertEqual(self.sleeps, [0.5, 1.0])
        self.assertEqual(self.dispatcher.delivered, 1)
        self.assertEqual(self.dispatcher.failures, [])

    def test_transport_errors_are_retried(self):
        self.session.post.side_effect = [requests.exceptions.ConnectionError("refused"), response(200)]
        self.assertTrue(self.dispatcher.deliver(self.config, started_event("job1", "https://example.com/")))
        self.assertEqual(self.session.post.call_count, 2)

    def test_exhaustion_drops_event(self):
        self.session.post.return_value = response(500)
        ok = self.dispatcher.deliver(self.config, progress_event("job1", 1, 3, "https://example.com/"))
        self.assertFalse(ok)
        self.assertEqual(self.session.post.call_count, 4)
        self.assertEqual(self.sleeps, [0.5, 1.0, 2.0])
        self.assertEqual(len(self.dispatcher.failures), 1)
        failure = self.dispatcher.failures[0]
        self.assertEqual((failure.job_id, failure.kind, failure.attempts), ("job1", EventKind.PROGRESS, 4))
        self.assertIn("500", failure.error)

    def test_zero_retries_means_single_attempt(self):
        self.session.post.return_value = response(404)
        config = WebhookConfig(url="https://hooks.example.net/in", max_retries=0)
        self.assertFalse(self.dispatcher.deliver(config, started_event("job1", "https://example.com/")))
        self.assertEqual(self.session.post.call_count, 1)
        self.assertEqual(self.sleeps, [])

class TestQueuedDispatch(unittest.TestCase):
    def setUp(self):
        self.session = MagicMock()
        self.session.post.return_value = response(200)
        self.dispatcher = WebhookDispatcher(session=self.session, sleep=lambda s: None)
        self.dispatcher.start()

    def tearDown(self):
        self.dispatcher.stop(timeout=5)

    def test_subscription_filter(self):
        config = WebhookConfig.from_dict({"url": "https://hooks.example.net/in", "on": ["completed"]})
        self.assertFalse(self.dispatcher.dispatch(config, started_event("job1", "https://example.com/")))
        self.assertFalse(self.dispatcher.dispatch(config, progress_event("job1", 1, 1, "https://example.com/")))
        self.assertTrue(self.dispatcher.dispatch(config, completed_event("job1", [], {})))
        self.assertTrue(self.dispatcher.flush(timeout=5))

        statuses = [c.kwargs["json"]["status"] for c in self.session.post.call_args_list]
        self.assertEqual(statuses, ["completed"])

    def test_no_config_means_no_delivery(self):
        self.assertFalse(self.dispatcher.dispatch(None, started_event("job1", "https://example.com/")))
        self.assertTrue(self.dispatcher.flush(timeout=1))
        self.session.post.assert_not_called()

    def test_events_delivered_in_dispatch_order(self):
        config = WebhookConfig(url="https://hooks.example.net/in")
        self.dispatcher.dispatch(config, started_event("job1", "https://example.com/"))
        for i in range(1, 4):
            self.dispatcher.dispatch(config, progress_event("job1", i, 3, f"https://example.com/{i}"))
        self.dispatcher.dispatch(config, completed_event("job1", [], {}))
        self.assertTrue(self.dispatcher.flush(timeout=5))

        bodies = [c.kwargs["json"] for c in self.session.post.call_args_list]
        self.assertEqual([b["status"] for b in bodies], ["started", "progress", "progress", "progress", "completed"])
        self.assertEqual([b["pagesAnalyzed"] for b in bodies[1:4]], [1, 2, 3])
        self.assertEqual(self.dispatcher.delivered, 5)

class TestWebhookConfig(unittest.TestCase):
    def test_from_dict(self):
        config = WebhookConfig.from_dict({
            "url": "https://hooks.example.net/in",
            "headers": {"Authorization": "Bearer t"},
            "retries": 5,
            "on": ["started", "COMPLETED"],
        })
        self.assertEqual(config.max_retries, 5)
        self.assertEqual(config.events, frozenset({EventKind.STARTED, EventKind.COMPLETED}))
        self.assertEqual(dict(config.headers), {"Authorization": "Bearer t"})

    def test_defaults_subscribe_to_everything(self):
        config = WebhookConfig.from_dict({"url": "http://localhost:9000/hook"})
        self.assertTrue(all(config.subscribes(kind) for kind in EventKind))

    def test_invalid_configs(self):
        for data in (
            {"url": "ftp://hooks.example.net"},
            {"url": "https://hooks.example.net", "retries": -1},
            {"url": "https://hooks.example.net", "retries": "3"},
            {"url": "https://hooks.example.net", "on": ["finished"]},
            {"url": "https://hooks.example.net", "headers": ["x"]},
            "https://hooks.example.net",
        ):
            with self.assertRaises(ValueError, msg=data):
                WebhookConfig.from_dict(data)

if __name__ == '__main__':
    unittest.main()
