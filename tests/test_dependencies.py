"""Tests for the dependency notification channel."""

import io
import json
import logging
import os
from unittest.mock import Mock

from tsloader.dependencies import DependencyBus
from tsloader.dependencies import ParentChannelReporter
from tsloader.models import DependencyMessage


class TestDependencyBus:
    """Test DependencyBus subscription and publishing."""

    def test_publish_reaches_all_subscribers(self):
        """Test every subscriber sees every message, in subscription order."""
        bus = DependencyBus()
        received = []
        bus.subscribe(lambda message: received.append(("first", message.path)))
        bus.subscribe(lambda message: received.append(("second", message.path)))

        bus.publish(DependencyMessage(path="file:///p/a.ts"))

        assert received == [("first", "file:///p/a.ts"), ("second", "file:///p/a.ts")]

    def test_has_subscribers(self):
        bus = DependencyBus()
        assert not bus.has_subscribers
        bus.subscribe(Mock())
        assert bus.has_subscribers

    def test_error_isolation(self, caplog):
        """Test that a failing handler doesn't stop the others."""
        bus = DependencyBus()
        after = Mock()

        def failing_handler(message):
            raise ValueError("parent went away")

        bus.subscribe(failing_handler)
        bus.subscribe(after)

        with caplog.at_level(logging.ERROR):
            bus.publish(DependencyMessage(path="file:///p/a.ts"))

        after.assert_called_once()
        assert "Error in dependency handler" in caplog.text
        assert "failing_handler" in caplog.text


class TestParentChannelReporter:
    def test_writes_json_lines(self):
        stream = io.StringIO()
        reporter = ParentChannelReporter(stream)

        reporter(DependencyMessage(path="file:///p/a.ts"))
        reporter(DependencyMessage(path="node:fs"))

        lines = stream.getvalue().splitlines()
        assert [json.loads(line) for line in lines] == [
            {"type": "dependency", "path": "file:///p/a.ts"},
            {"type": "dependency", "path": "node:fs"},
        ]

    def test_from_fd(self):
        read_fd, write_fd = os.pipe()
        reporter = ParentChannelReporter.from_fd(write_fd)
        try:
            reporter(DependencyMessage(path="file:///p/b.ts"))
            data = os.read(read_fd, 4096)
        finally:
            reporter.stream.close()
            os.close(read_fd)

        assert json.loads(data) == {"type": "dependency", "path": "file:///p/b.ts"}
