"""Observer registry fan-out tests."""

import logging

from TierFetch.cache.observers import ObserverRegistry


class Recorder:
    def __init__(self):
        self.seen = []

    def update(self, data):
        self.seen.append(data)


class Exploding:
    def update(self, data):
        raise RuntimeError("observer bug")


class TestFanOut:
    """Every subscriber receives each notification."""

    def test_all_observers_receive_data(self):
        registry = ObserverRegistry("test")
        first, second = Recorder(), Recorder()
        registry.subscribe(first)
        registry.subscribe(second)
        calls = []
        registry.subscribe_function(calls.append)

        delivered = registry.notify({"v": 1})

        assert delivered == 3
        assert first.seen == second.seen == calls == [{"v": 1}]

    def test_failing_observer_isolated(self, caplog):
        registry = ObserverRegistry("test")
        before, after = Recorder(), Recorder()
        registry.subscribe(before)
        registry.subscribe(Exploding())
        registry.subscribe(after)

        with caplog.at_level(logging.ERROR, logger="TierFetch.cache.observers"):
            delivered = registry.notify("payload")

        assert delivered == 2
        assert before.seen == after.seen == ["payload"]
        assert "observer bug" in caplog.text

    def test_failing_function_observer_isolated(self):
        registry = ObserverRegistry()
        recorder = Recorder()

        def broken(data):
            raise ValueError("nope")

        registry.subscribe_function(broken)
        registry.subscribe(recorder)

        assert registry.notify(1) == 1
        assert recorder.seen == [1]

    def test_unsubscribe_during_notify(self):
        registry = ObserverRegistry()
        recorder = Recorder()

        class OneShot:
            def __init__(self):
                self.count = 0

            def update(self, data):
                self.count += 1
                registry.unsubscribe(self)

        one_shot = OneShot()
        registry.subscribe(one_shot)
        registry.subscribe(recorder)

        registry.notify("a")
        registry.notify("b")

        assert one_shot.count == 1
        assert recorder.seen == ["a", "b"]


class TestSubscription:
    """subscribe/unsubscribe bookkeeping."""

    def test_unsubscribe_handle(self):
        registry = ObserverRegistry()
        recorder = Recorder()
        remove = registry.subscribe(recorder)

        assert recorder in registry
        remove()

        assert recorder not in registry
        assert registry.notify("x") == 0

    def test_subscribe_twice_counts_once(self):
        registry = ObserverRegistry()
        recorder = Recorder()
        registry.subscribe(recorder)
        registry.subscribe(recorder)

        assert registry.observer_count == 1
        registry.notify("x")
        assert recorder.seen == ["x"]

    def test_bound_method_function_observer_can_unsubscribe(self):
        registry = ObserverRegistry()
        recorder = Recorder()
        registry.subscribe_function(recorder.update)

        registry.unsubscribe_function(recorder.update)

        assert registry.function_observer_count == 0

    def test_null_observer_is_noop(self, caplog):
        registry = ObserverRegistry("nulls")

        with caplog.at_level(logging.WARNING, logger="TierFetch.cache.observers"):
            remove = registry.subscribe(None)
            remove_fn = registry.subscribe_function(None)

        remove()
        remove_fn()
        assert len(registry) == 0
        assert "null observer" in caplog.text

    def test_clear(self):
        registry = ObserverRegistry()
        registry.subscribe(Recorder())
        registry.subscribe_function(lambda data: None)

        assert len(registry) == 2
        registry.clear()
        assert len(registry) == 0
