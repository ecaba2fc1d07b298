"""Smoke tests with mocked Kafka surrounding system."""

from __future__ import annotations

import asyncio
import json
from datetime import UTC, datetime
from pathlib import Path
from typing import ClassVar

from click.testing import CliRunner
from tms_orchestrator.cli import cli
from tms_orchestrator.completion_signals import ReceivedCompletionSignal
from tms_orchestrator.configuration import KafkaSettings
from tms_orchestrator.execution_targets import DEFAULT_MANUAL_TARGET
from tms_orchestrator.storage import YamlDirectoryStore
from tms_orchestrator.test_runs import ExecutionResultSignal, TestRun, TestRunStatus


def _write_config(tmp_path: Path) -> Path:
    config = {
        "project": {"id": "QA"},
        "storage": {"root_dir": "store"},
        "kafka": {
            "bootstrap_servers": "broker-1:9092",
            "topic": "tms-results",
            "security": {
                "security.protocol": "SASL_SSL",
                "sasl.mechanism": "PLAIN",
                "sasl.username": "kafka-user",
                "sasl.password": "kafka-pass",
            },
        },
    }
    path = tmp_path / "config.json"
    path.write_text(json.dumps(config), encoding="utf-8")
    return path


_UNDECODABLE = "Completion signal is not valid JSON"


class _FakeSignalReader:
    last_settings: ClassVar[KafkaSettings | None] = None
    signals: ClassVar[list[ExecutionResultSignal | None]] = []

    def __init__(self, kafka_settings: KafkaSettings) -> None:
        _FakeSignalReader.last_settings = kafka_settings

    def consume(self, start_time: datetime | None = None):
        return iter(
            [
                ReceivedCompletionSignal(
                    key=None,
                    timestamp=datetime.now(UTC),
                    signal=signal,
                    decode_error=None if signal is not None else _UNDECODABLE,
                )
                for signal in _FakeSignalReader.signals
            ]
        )


def _seed_awaiting_runs(tmp_path: Path, *run_ids: str) -> YamlDirectoryStore:
    store = YamlDirectoryStore(tmp_path / "store", "QA")

    async def _seed() -> None:
        for run_id in run_ids:
            pending = TestRun(
                id=run_id,
                test_case_ids=("tc-1",),
                test_suite_id="",
                execution_target=DEFAULT_MANUAL_TARGET,
            )
            await store.test_runs.save(pending)
            await store.test_runs.save(
                pending.record_dispatch(TestRunStatus.AWAITING_EXTERNAL_RESULTS)
            )

    asyncio.run(_seed())
    return store


def test_consume_results_applies_kafka_signals_to_stored_runs(
    tmp_path: Path, monkeypatch
) -> None:
    config_path = _write_config(tmp_path)
    store = _seed_awaiting_runs(tmp_path, "run-1", "run-2")
    _FakeSignalReader.signals = [
        None,
        ExecutionResultSignal("run-1", True, "ci-1"),
        ExecutionResultSignal("run-1", True, "ci-1"),
        ExecutionResultSignal("run-2", False),
        ExecutionResultSignal("run-9", True),
    ]
    monkeypatch.setattr("tms_orchestrator.cli.CompletionSignalReader", _FakeSignalReader)

    result = CliRunner().invoke(cli, ["consume-results", "--config", str(config_path)])

    assert result.exit_code == 0, result.output
    assert result.stdout.splitlines() == [
        "run-1\tPASSED\tapplied",
        "run-1\tPASSED\tunchanged",
        "run-2\tFAILED\tapplied",
        "applied 3 of 5 signals",
    ]
    assert f"-\trejected\t{_UNDECODABLE}" in result.stderr
    assert "run-9\trejected" in result.stderr
    kafka_settings = _FakeSignalReader.last_settings
    assert kafka_settings is not None
    assert kafka_settings.topic == "tms-results"
    assert kafka_settings.bootstrap_servers == ("broker-1:9092",)
    assert kafka_settings.security["sasl.username"] == "kafka-user"
    runs = {run.id: run for run in asyncio.run(store.test_runs.find_all())}
    assert runs["run-1"].status is TestRunStatus.PASSED
    assert runs["run-2"].status is TestRunStatus.FAILED


def test_consume_results_requires_kafka_section(tmp_path: Path) -> None:
    config_path = tmp_path / "tms.yaml"
    config_path.write_text("project:\n  id: QA\n", encoding="utf-8")

    result = CliRunner().invoke(cli, ["consume-results", "--config", str(config_path)])

    assert result.exit_code == 1
    assert "'kafka' is required" in str(result.exception)
