"""
Plugin pipeline hook ordering and failure isolation
"""

import unittest
from unittest.mock import MagicMock

from crawler.models import PageResult
from plugins.models import PluginDescriptor
from plugins.pipeline import PluginPipeline

def _boom(*args):
    raise RuntimeError("boom")

def make_plugin(name, calls=None, **hooks):
    """Plugin whose hooks append (name, hook) to calls."""
    calls = calls if calls is not None else []

    def recorder(hook, result=None):
        def fn(*args):
            calls.append((name, hook))
            return result
        return fn

    params = {
        "evaluate": recorder("evaluate", {"value": 1}),
        "summarize": lambda records: {"count": len(records)},
    }
    for hook in ("initialize", "destroy", "before_crawl", "after_crawl", "before_each", "after_each"):
        params[hook] = recorder(hook)
    params.update(hooks)
    return PluginDescriptor(name=name, **params)

class TestRegistration(unittest.TestCase):
    def test_duplicate_name_rejected(self):
        pipeline = PluginPipeline([make_plugin("a")])
        with self.assertRaises(ValueError):
            pipeline.register(make_plugin("a"))

    def test_register_after_initialize_rejected(self):
        pipeline = PluginPipeline([make_plugin("a")])
        pipeline.initialize_all()
        with self.assertRaises(RuntimeError):
            pipeline.register(make_plugin("b"))

    def test_descriptor_requires_evaluate_and_summarize(self):
        with self.assertRaises(ValueError):
            PluginDescriptor(name="x", evaluate=None, summarize=lambda r: {})
        with self.assertRaises(ValueError):
            PluginDescriptor(name="", evaluate=lambda p, t: {}, summarize=lambda r: {})

    def test_disabled_plugins_are_skipped(self):
        calls = []
        pipeline = PluginPipeline([
            make_plugin("a", calls),
            PluginDescriptor(name="off", evaluate=_boom, summarize=_boom, enabled=False),
        ])
        metrics, failures = pipeline.run_page_hooks(MagicMock(url="https://example.com/"), 1.0)
        self.assertEqual(pipeline.names, ["a"])
        self.assertEqual(list(metrics), ["a"])
        self.assertEqual(failures, [])

class TestLifecycle(unittest.TestCase):
    def test_initialize_and_destroy_run_once(self):
        calls = []
        pipeline = PluginPipeline([make_plugin("a", calls), make_plugin("b", calls)])
        pipeline.initialize_all()
        pipeline.initialize_all()
        pipeline.destroy_all()
        pipeline.destroy_all()
        self.assertEqual(calls, [
            ("a", "initialize"), ("b", "initialize"),
            ("b", "destroy"), ("a", "destroy"),
        ])

    def test_initialize_failure_is_recorded_not_raised(self):
        pipeline = PluginPipeline([make_plugin("bad", initialize=_boom), make_plugin("good")])
        failures = pipeline.initialize_all()
        self.assertEqual([(f.plugin, f.hook) for f in failures], [("bad", "initialize")])
        self.assertEqual(len(pipeline.lifecycle_failures), 1)

    def test_crawl_hook_failure_does_not_stop_later_plugins(self):
        calls = []
        pipeline = PluginPipeline([
            make_plugin("a", calls, before_crawl=_boom),
            make_plugin("b", calls),
        ])
        failures = pipeline.run_before_crawl(MagicMock())
        self.assertEqual(failures[0].plugin, "a")
        self.assertIn("RuntimeError: boom", failures[0].message)
        self.assertIn(("b", "before_crawl"), calls)

class TestPageHooks(unittest.TestCase):
    def test_hooks_run_in_phase_order(self):
        calls = []
        pipeline = PluginPipeline([make_plugin("a", calls), make_plugin("b", calls)])
        pipeline.run_page_hooks(MagicMock(url="https://example.com/"), 5.0)
        self.assertEqual(calls, [
            ("a", "before_each"), ("b", "before_each"),
            ("a", "evaluate"), ("b", "evaluate"),
            ("a", "after_each"), ("b", "after_each"),
        ])

    def test_failing_evaluate_only_drops_its_own_metrics(self):
        calls = []
        pipeline = PluginPipeline([
            make_plugin("a", calls, evaluate=_boom),
            make_plugin("b", calls),
        ])
        metrics, failures = pipeline.run_page_hooks(MagicMock(url="https://example.com/p"), 5.0)
        self.assertEqual(metrics, {"b": {"value": 1}})
        self.assertEqual(len(failures), 1)
        self.assertEqual((failures[0].plugin, failures[0].hook, failures[0].url), ("a", "evaluate", "https://example.com/p"))
        # after_each still runs for the failing plugin
        self.assertIn(("a", "after_each"), calls)

    def test_evaluate_returning_none_gives_empty_record(self):
        pipeline = PluginPipeline([make_plugin("a", evaluate=lambda page, t: None)])
        metrics, _ = pipeline.run_page_hooks(MagicMock(url="https://example.com/"), 1.0)
        self.assertEqual(metrics, {"a": {}})

class TestSummarize(unittest.TestCase):
    def test_summarize_receives_only_successful_records(self):
        received = {}

        def summarize_a(records):
            received["a"] = records
            return {"n": len(records)}

        pipeline = PluginPipeline([
            make_plugin("a", summarize=summarize_a),
            make_plugin("b"),
        ])
        pages = [
            PageResult(url="https://example.com/1", depth=0, metrics={"a": {"v": 1}, "b": {"v": 1}}, load_time=1),
            PageResult(url="https://example.com/2", depth=1, metrics={"b": {"v": 2}}, load_time=1),
        ]
        summary, failures = pipeline.run_summarize(pages)
        self.assertEqual(received["a"], [{"v": 1}])
        self.assertEqual(summary, {"a": {"n": 1}, "b": {"count": 2}})
        self.assertEqual(failures, [])

    def test_failing_summarize_is_absent_from_summary(self):
        pipeline = PluginPipeline([make_plugin("a", summarize=_boom), make_plugin("b")])
        summary, failures = pipeline.run_summarize([])
        self.assertEqual(summary, {"b": {"count": 0}})
        self.assertEqual((failures[0].plugin, failures[0].hook), ("a", "summarize"))

    def test_plugin_without_any_metrics_is_not_summarized(self):
        summarized = []

        def summarize_a(records):
            summarized.append(records)
            return {"n": len(records)}

        pipeline = PluginPipeline([make_plugin("a", summarize=summarize_a), make_plugin("b")])
        pages = [
            PageResult(url="https://example.com/1", depth=0, metrics={"b": {"v": 1}}, load_time=1),
            PageResult(url="https://example.com/2", depth=1, metrics={"b": {"v": 2}}, load_time=1),
        ]
        summary, failures = pipeline.run_summarize(pages)
        self.assertEqual(summarized, [])
        self.assertEqual(summary, {"b": {"count": 2}})
        self.assertEqual(len(failures), 1)
        self.assertEqual((failures[0].plugin, failures[0].hook), ("a", "summarize"))
        self.assertIn("evaluate failed on all 2 page(s)", failures[0].message)

if __name__ == '__main__':
    unittest.main()
