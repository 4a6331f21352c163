from __future__ import annotations

import io
import json
import logging

import pytest

from balances import logging as blog


@pytest.fixture(autouse=True)
def _fresh_context():
    blog.clear_context()
    yield
    blog.clear_context()


def test_json_lines_carry_context_and_extra() -> None:
    buf = io.StringIO()
    blog.configure(json=True, level="DEBUG", stream=buf)
    log = blog.get_logger("balances.test")

    with blog.run_scope("run-1") as rid:
        blog.bind(component="scanner", shard="2/4")
        log.info("shard done", extra={"observations": 12, "raw": b"\x01\x02", "big": 2**200})
    assert rid == "run-1"

    line = json.loads(buf.getvalue().strip().splitlines()[-1])
    assert line["msg"] == "shard done"
    assert line["run_id"] == "run-1"
    assert line["shard"] == "2/4"
    assert line["observations"] == 12
    assert line["raw"] == "0102"
    assert int(line["big"]) == 2**200
    # scope restored
    assert blog.context() == {}


def test_text_format_and_unbind() -> None:
    buf = io.StringIO()
    blog.configure(json=False, level="INFO", stream=buf)
    blog.bind(component="resolver", strategy="grouped")
    blog.unbind("strategy")
    blog.get_logger("balances.test").info("stage done", extra={"stage": "scan"})
    blog.get_logger("balances.test").debug("hidden")

    out = buf.getvalue()
    assert "component=resolver" in out
    assert "strategy=" not in out
    assert "stage=scan" in out
    assert "hidden" not in out


def test_configure_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BALANCES_LOG_FORMAT", "json")
    monkeypatch.setenv("BALANCES_LOG_LEVEL", "warning")
    buf = io.StringIO()
    blog.configure_from_env(stream=buf)
    assert logging.getLogger().level == logging.WARNING
    blog.get_logger("balances.test").warning("decode failed", extra={"token": "0x1"})
    assert json.loads(buf.getvalue())["token"] == "0x1"
