"""Tests for the app factory, health route and lifespan."""

from __future__ import annotations

from fakes import FakeAnalyst, FakePriceSource, FakeRateSource
from fastapi import FastAPI
from fastapi.testclient import TestClient

from Portfolio_Pulse.config import PipelineSettings
from Portfolio_Pulse.models import RunStatus
from Portfolio_Pulse.pipeline.scheduler import BatchAnalysisRun
from Portfolio_Pulse.services.benchmark_rates import BcbRateService
from Portfolio_Pulse.web.app import create_app


class TestCreateApp:
    """Tests for create_app()."""

    def test_state_wired(self, app: FastAPI, web_settings: PipelineSettings) -> None:
        assert app.state.settings is web_settings
        assert isinstance(app.state.run, BatchAnalysisRun)
        assert app.state.run.status == RunStatus.IDLE
        assert app.state.driver_tasks == set()

    def test_injected_rate_source_not_owned(
        self, app: FastAPI, web_rate_source: FakeRateSource
    ) -> None:
        assert app.state.rate_source is web_rate_source
        assert app.state.owned_clients == []

    def test_health(self, client: TestClient) -> None:
        response = client.get("/api/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_docs_disabled(self, client: TestClient) -> None:
        assert client.get("/docs").status_code == 404


class TestLifespan:
    """Shutdown cancels drivers of unfinished runs and closes owned clients."""

    def test_shutdown_cancels_driver(self) -> None:
        settings = PipelineSettings(cooldown_seconds=3600.0)
        app = create_app(settings, price_source=FakePriceSource(), analyst=FakeAnalyst())

        with TestClient(app) as client:
            response = client.post(
                "/api/batch/runs",
                json={"instruments": [{"symbol": "AAA"}, {"symbol": "BBB"}]},
            )
            assert response.status_code == 202

        assert app.state.driver_tasks == set()
        assert app.state.run.status == RunStatus.RUNNING

    def test_shutdown_closes_default_rate_client(self) -> None:
        app = create_app(
            PipelineSettings(), price_source=FakePriceSource(), analyst=FakeAnalyst()
        )
        rate_source = app.state.rate_source
        assert isinstance(rate_source, BcbRateService)
        assert app.state.owned_clients == [rate_source]

        with TestClient(app) as client:
            assert client.get("/api/health").status_code == 200

        assert rate_source._client.is_closed
