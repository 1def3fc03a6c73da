"""Tests for the pipeline runner against the fake providers."""

from __future__ import annotations

from unittest.mock import patch

import pytest

from reel2canva.core.errors import ExternalServiceError, JobTimeoutError, PipelineError, ValidationError
from reel2canva.schemas.pipeline import StepName, StepStatus
from reel2canva.services.pipeline_log import PipelineLog
from reel2canva.services.pipeline_service import run_pipeline
from reel2canva.services.request_parser import parse_agent_request

from conftest import REEL_URL, FakeProviders

ALL_STEPS = [
    StepName.INSTAGRAM_RESOLVE,
    StepName.INSTAGRAM_DOWNLOAD,
    StepName.CANVA_UPLOAD,
    StepName.CANVA_DESIGN,
    StepName.CANVA_PLACE_VIDEO,
    StepName.CANVA_EXPORT,
    StepName.COMPLETE,
]


def _request(**extra):
    return parse_agent_request({"reelUrl": REEL_URL, **extra})


def _meta(logs, step):
    return next(entry.meta for entry in logs if entry.step == step)


class TestRunPipelineSuccess:
    @pytest.mark.asyncio
    async def test_all_steps_logged_in_order(self, test_settings, providers):
        async with providers.client() as client:
            result = await run_pipeline(_request(), test_settings, client=client)

        assert [entry.step for entry in result.logs] == ALL_STEPS
        assert all(entry.status == StepStatus.SUCCESS for entry in result.logs)
        assert result.logs[-1].step == StepName.COMPLETE
        assert len({entry.id for entry in result.logs}) == len(result.logs)

    @pytest.mark.asyncio
    async def test_result_ids_match_step_meta(self, test_settings, providers):
        async with providers.client() as client:
            result = await run_pipeline(_request(), test_settings, client=client)

        assert result.asset_id and result.design_id and result.export_id and result.download_url
        assert result.asset_id == _meta(result.logs, StepName.CANVA_UPLOAD)["assetId"]
        assert result.design_id == _meta(result.logs, StepName.CANVA_DESIGN)["designId"]
        export_meta = _meta(result.logs, StepName.CANVA_EXPORT)
        assert result.export_id == export_meta["exportId"]
        assert result.download_url == export_meta["downloadUrl"]

    @pytest.mark.asyncio
    async def test_external_calls_follow_step_order(self, test_settings, providers):
        async with providers.client() as client:
            await run_pipeline(_request(), test_settings, client=client)

        assert providers.routes() == [
            "oembed",
            "media",
            "video",
            "upload",
            "upload_status",
            "create_design",
            "pages",
            "place",
            "export",
            "export_status",
        ]

    @pytest.mark.asyncio
    async def test_request_tokens_override_defaults(self, test_settings, providers):
        async with providers.client() as client:
            await run_pipeline(
                _request(instagramAccessToken="ig-mine", canvaAccessToken="canva-mine"),
                test_settings,
                client=client,
            )

        for request in providers.requests:
            expected = "ig-mine" if request.url.host in ("graph.facebook.com", "cdn.test") else "canva-mine"
            assert request.headers["Authorization"] == f"Bearer {expected}"

    @pytest.mark.asyncio
    async def test_template_and_page_skip_creation(self, test_settings, providers):
        async with providers.client() as client:
            result = await run_pipeline(
                _request(canvaTemplateId="tmpl-7", canvaPageId="2", exportFormat="gif"),
                test_settings,
                client=client,
            )

        assert result.design_id == "tmpl-7"
        assert "create_design" not in providers.routes()
        assert "pages" not in providers.routes()
        assert "get_design" in providers.routes()
        place_url = next(url for route, url in providers.calls if route == "place")
        assert "/designs/tmpl-7/pages/2/elements" in place_url

    @pytest.mark.asyncio
    async def test_runs_are_not_deduplicated(self, test_settings):
        providers = FakeProviders()
        async with providers.client() as client:
            first = await run_pipeline(_request(), test_settings, client=client)
            second = await run_pipeline(_request(), test_settings, client=client)

        assert first.asset_id != second.asset_id
        assert first.design_id != second.design_id
        assert first.export_id != second.export_id


class TestRunPipelineFailure:
    @pytest.mark.asyncio
    async def test_resolve_404_stops_after_one_entry(self, test_settings):
        providers = FakeProviders(fail={"oembed": 404})
        async with providers.client() as client:
            with pytest.raises(ExternalServiceError) as exc:
                await run_pipeline(_request(), test_settings, client=client)

        logs = exc.value.logs
        assert len(logs) == 1
        assert logs[0].step == StepName.INSTAGRAM_RESOLVE
        assert logs[0].status == StepStatus.ERROR
        assert "404" in logs[0].message
        assert providers.routes() == ["oembed"]

    @pytest.mark.asyncio
    async def test_failure_mid_pipeline_keeps_earlier_entries(self, test_settings):
        providers = FakeProviders(fail={"place": 500})
        async with providers.client() as client:
            with pytest.raises(ExternalServiceError) as exc:
                await run_pipeline(_request(), test_settings, client=client)

        logs = exc.value.logs
        assert [entry.step for entry in logs] == ALL_STEPS[:5]
        assert [entry.status for entry in logs[:-1]] == [StepStatus.SUCCESS] * 4
        assert logs[-1].status == StepStatus.ERROR
        assert "place failed with 500" in exc.value.message
        assert "export" not in providers.routes()

    @pytest.mark.asyncio
    async def test_export_timeout(self, test_settings):
        test_settings.EXPORT_TIMEOUT = 0
        providers = FakeProviders(export_polls=1000)
        async with providers.client() as client:
            with pytest.raises(JobTimeoutError) as exc:
                await run_pipeline(_request(), test_settings, client=client)

        assert isinstance(exc.value, TimeoutError)
        assert exc.value.logs[-1].step == StepName.CANVA_EXPORT
        assert exc.value.logs[-1].status == StepStatus.ERROR

    @pytest.mark.asyncio
    async def test_failed_export_job(self, test_settings):
        providers = FakeProviders(export_status="failed")
        async with providers.client() as client:
            with pytest.raises(ExternalServiceError, match="render crashed"):
                await run_pipeline(_request(), test_settings, client=client)

    @pytest.mark.asyncio
    async def test_unexpected_error_is_generic(self, test_settings, providers):
        with patch(
            "reel2canva.services.instagram_service.download_video",
            side_effect=KeyError("secret internals"),
        ):
            async with providers.client() as client:
                with pytest.raises(PipelineError) as exc:
                    await run_pipeline(_request(), test_settings, client=client)

        assert exc.value.message == "Unexpected error during instagram:download"
        assert "secret" not in exc.value.logs[-1].message

    @pytest.mark.asyncio
    async def test_missing_credentials_make_no_calls(self, test_settings, providers):
        test_settings.INSTAGRAM_ACCESS_TOKEN = ""
        async with providers.client() as client:
            with pytest.raises(ValidationError):
                await run_pipeline(_request(), test_settings, client=client)
        assert providers.calls == []


class TestPipelineLog:
    def test_entries_keep_order_and_are_a_copy(self):
        log = PipelineLog(run_id="run-1")
        log.success(StepName.INSTAGRAM_RESOLVE, "resolved")
        log.error(StepName.INSTAGRAM_DOWNLOAD, "download failed", {"status": 403})

        entries = log.entries
        assert [e.status for e in entries] == [StepStatus.SUCCESS, StepStatus.ERROR]
        assert entries[1].meta == {"status": 403}
        entries.clear()
        assert len(log.entries) == 2

    def test_log_has_no_length(self):
        with pytest.raises(TypeError):
            len(PipelineLog())
