"""Call Context — tests for the connection-scoped call logger."""

import logging

from lightrpc.core.context import CALL_LOGGER_NAME, create_call_context


def test_context_fields():
    ctx = create_call_context("ws_1", "10.0.0.1", extra={"path": "/api/x"})
    assert ctx.conn_id == "ws_1"
    assert ctx.client_ip == "10.0.0.1"
    assert ctx.extra == {"path": "/api/x"}
    assert ctx.elapsed_ms >= 0


def test_logger_prefixes_and_tags_conn_id(caplog):
    ctx = create_call_context("http_1", prefix="HTTP")
    with caplog.at_level(logging.INFO, logger=CALL_LOGGER_NAME):
        ctx.logger.info("[API] math/add")
    record = caplog.records[-1]
    assert record.getMessage() == "[HTTP http_1] [API] math/add"
    assert record.conn_id == "http_1"


def test_debug_suppressed_unless_verbose(caplog):
    quiet = create_call_context("c1")
    verbose = create_call_context("c2", verbose=True)
    with caplog.at_level(logging.DEBUG, logger=CALL_LOGGER_NAME):
        quiet.logger.debug("hidden")
        verbose.logger.debug("shown")
    messages = [r.getMessage() for r in caplog.records]
    assert "[c2] shown" in messages
    assert not any("hidden" in m for m in messages)
