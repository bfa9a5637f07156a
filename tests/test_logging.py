"""Tests for logging setup and the JSON formatter."""

import json
import logging
import sys

import pytest

from omniledger import OmniLedger
from omniledger.core.config import Config
from omniledger.core.logging import JsonFormatter, configure_logging, get_logger
from omniledger.storage import InMemoryStorage


def _record(message, **extra):
    record = logging.LogRecord("omniledger.engine", logging.INFO, __file__, 1, message, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestJsonFormatter:
    def test_quotes_in_message_stay_valid_json(self):
        line = JsonFormatter().format(_record('Amount must be an integer, got "5"'))

        payload = json.loads(line)
        assert payload["message"] == 'Amount must be an integer, got "5"'
        assert payload["level"] == "INFO"
        assert payload["name"] == "omniledger.engine"

    def test_ledger_fields_are_emitted(self):
        record = _record("Committed", transaction_id=7, kind="transfer", account_ids=[1, 2], amount=40)

        payload = json.loads(JsonFormatter().format(record))

        assert payload["transaction_id"] == 7
        assert payload["kind"] == "transfer"
        assert payload["account_ids"] == [1, 2]
        assert payload["amount"] == 40

    def test_absent_fields_are_left_out(self):
        payload = json.loads(JsonFormatter().format(_record("hello")))

        assert "transaction_id" not in payload

    def test_exception_is_included(self):
        try:
            raise RuntimeError("disk full")
        except RuntimeError:
            record = logging.LogRecord(
                "omniledger", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )

        payload = json.loads(JsonFormatter().format(record))

        assert "disk full" in payload["exception"]


class TestConfigureLogging:
    def test_text_format(self, capsys):
        configure_logging(level=logging.INFO, fmt="text")
        get_logger("engine").info("Committed deposit #1")

        out = capsys.readouterr().out
        assert "INFO [omniledger.engine] Committed deposit #1" in out

    def test_json_format(self, capsys):
        configure_logging(level=logging.INFO, fmt="json")
        get_logger("engine").info('got "quoted"', extra={"transaction_id": 3})

        payload = json.loads(capsys.readouterr().out.strip())
        assert payload["message"] == 'got "quoted"'
        assert payload["transaction_id"] == 3

    def test_reconfigure_replaces_handler(self):
        configure_logging(fmt="text")
        logger = configure_logging(fmt="json")

        assert len(logger.handlers) == 1
        assert isinstance(logger.handlers[0].formatter, JsonFormatter)

    def test_unknown_format(self):
        with pytest.raises(ValueError, match="Unknown log format"):
            configure_logging(fmt="xml")

    @pytest.mark.asyncio
    async def test_engine_commits_log_as_json(self, capsys):
        client = OmniLedger(
            config=Config(log_format="json"), storage=InMemoryStorage(), log_level=logging.INFO
        )
        account = await client.open_account()
        capsys.readouterr()

        await client.deposit(account.id, 25)

        lines = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        committed = [line for line in lines if line["message"].startswith("Committed")]
        assert committed[0]["kind"] == "deposit"
        assert committed[0]["amount"] == 25
        assert committed[0]["account_ids"] == [account.id, account.id]
