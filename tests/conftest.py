"""Shared fixtures: a fake chain, a temp data dir and a ready scanner."""
from __future__ import annotations

from typing import Any

import pytest

from radar.config import ScanConfig
from radar.core.scan import ScanOrchestrator
from radar.core.storage import TokenStorage

from .fakes import FakeProvider, no_sleep


@pytest.fixture()
def provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture()
def storage(tmp_path) -> TokenStorage:
    return TokenStorage(tmp_path / "data", "chain-1")


@pytest.fixture()
def config(tmp_path) -> ScanConfig:
    return ScanConfig(
        chain_key="eth",
        data_path=str(tmp_path / "data"),
        max_retries=3,
        retry_wait_seconds=0.0,
        receipt_concurrency=2,
    )


@pytest.fixture()
def make_orchestrator(provider, storage, config):
    """Build (and initialize) a scanner over the fake chain; kwargs override config fields."""

    def factory(initialize: bool = True, **overrides: Any) -> ScanOrchestrator:
        for key, value in overrides.items():
            setattr(config, key, value)
        orch = ScanOrchestrator(provider, storage, config, sleep=no_sleep())
        if initialize:
            orch.initialize()
        return orch

    return factory
