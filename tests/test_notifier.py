"""Tests for whisker.reactive.notifier — the change publish/subscribe hub."""

from __future__ import annotations

import pytest

from whisker.reactive.notifier import ChangeNotifier, SubscriptionToken


class TestSubscriptions:
    """subscribe / unsubscribe bookkeeping."""

    def test_subscribe_returns_distinct_tokens(self) -> None:
        notifier = ChangeNotifier()
        a = notifier.subscribe(lambda: None)
        b = notifier.subscribe(lambda: None)
        assert isinstance(a, SubscriptionToken)
        assert a != b
        assert notifier.subscriber_count == 2

    def test_unsubscribe(self) -> None:
        notifier = ChangeNotifier()
        token = notifier.subscribe(lambda: None)
        assert notifier.unsubscribe(token) is True
        assert notifier.subscriber_count == 0

    def test_unsubscribe_twice_is_safe(self) -> None:
        notifier = ChangeNotifier()
        token = notifier.subscribe(lambda: None)
        notifier.unsubscribe(token)
        assert notifier.unsubscribe(token) is False

    def test_token_frozen(self) -> None:
        token = SubscriptionToken(id=1)
        with pytest.raises(AttributeError):
            token.id = 2  # type: ignore[misc]


class TestPublish:
    """publish() fan-out and failure isolation."""

    def test_calls_every_subscriber(self) -> None:
        notifier = ChangeNotifier()
        calls: list[str] = []
        notifier.subscribe(lambda: calls.append("a"))
        notifier.subscribe(lambda: calls.append("b"))

        assert notifier.publish() == 2
        assert sorted(calls) == ["a", "b"]

    def test_no_subscribers(self) -> None:
        assert ChangeNotifier().publish() == 0

    def test_failing_subscriber_does_not_block_others(self) -> None:
        notifier = ChangeNotifier()
        calls: list[str] = []

        def broken() -> None:
            raise RuntimeError("boom")

        notifier.subscribe(lambda: calls.append("before"))
        notifier.subscribe(broken)
        notifier.subscribe(lambda: calls.append("after"))

        assert notifier.publish() == 2
        assert calls == ["before", "after"]

    def test_failing_subscriber_is_unsubscribed(self, capsys: pytest.CaptureFixture[str]) -> None:
        notifier = ChangeNotifier()
        attempts = 0

        def broken() -> None:
            nonlocal attempts
            attempts += 1
            raise RuntimeError("boom")

        notifier.subscribe(broken)
        notifier.publish()
        notifier.publish()

        assert attempts == 1
        assert notifier.subscriber_count == 0
        assert "boom" in capsys.readouterr().err

    def test_unsubscribe_during_publish_skips_removed(self) -> None:
        """A handler removed earlier in the same pass is not called."""
        notifier = ChangeNotifier()
        calls: list[str] = []
        tokens: dict[str, SubscriptionToken] = {}

        def first() -> None:
            calls.append("first")
            notifier.unsubscribe(tokens["second"])

        tokens["first"] = notifier.subscribe(first)
        tokens["second"] = notifier.subscribe(lambda: calls.append("second"))
        tokens["third"] = notifier.subscribe(lambda: calls.append("third"))

        notifier.publish()
        assert calls == ["first", "third"]

    def test_self_unsubscribe_during_publish(self) -> None:
        notifier = ChangeNotifier()
        calls: list[str] = []
        token_box: list[SubscriptionToken] = []

        def once() -> None:
            calls.append("once")
            notifier.unsubscribe(token_box[0])

        token_box.append(notifier.subscribe(once))
        notifier.subscribe(lambda: calls.append("always"))

        notifier.publish()
        notifier.publish()
        assert calls == ["once", "always", "always"]

    def test_subscribe_during_publish_waits_for_next_pass(self) -> None:
        notifier = ChangeNotifier()
        calls: list[str] = []

        def adder() -> None:
            calls.append("adder")
            notifier.subscribe(lambda: calls.append("late"))

        notifier.subscribe(adder)
        notifier.publish()
        assert calls == ["adder"]
