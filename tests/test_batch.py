"""
Tests for batch config loading and the BatchCoordinator
"""

import json
from unittest.mock import AsyncMock

import pytest

from snatch_core.batch import BatchCoordinator, build_job, load_batch_config, validate_batch_config
from snatch_core.browser import normalize_url, validate_url
from snatch_core.config import Config
from snatch_core.errors import NavigationError
from snatch_core.models import (
    ExtractedElement,
    OutputResult,
    PipelineOutcome,
    PipelineTiming,
    TransformResult,
)
from snatch_core.orchestrator import PipelineCapabilities, PipelineOrchestrator


FALLBACK = {
    "framework": "react",
    "styling": "tailwind",
    "output_dir": "./components",
    "include_assets": False,
    "verbose": False,
}


def write_json(tmp_path, data, name="batch.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


class TestLoadBatchConfig:
    """Batch file validation"""

    def test_valid_config(self, tmp_path):
        path = write_json(tmp_path, {
            "components": [
                {"url": "https://example.com", "selector": ".hero", "name": "Hero"},
                {"url": "https://example.com", "find": "pricing card", "name": "PricingCard"},
            ],
            "defaults": {"framework": "vue", "styling": "css-modules"},
        })

        result = load_batch_config(path)

        assert result.valid is True
        assert result.errors == []
        assert len(result.config["components"]) == 2

    def test_yaml_config(self, tmp_path):
        path = tmp_path / "batch.yaml"
        path.write_text(
            "components:\n"
            "  - url: https://example.com\n"
            "    selector: nav\n"
            "    name: Navigation\n"
            "defaults:\n"
            "  framework: svelte\n",
            encoding="utf-8",
        )

        result = load_batch_config(str(path))

        assert result.valid is True
        assert result.config["defaults"]["framework"] == "svelte"

    def test_missing_file(self, tmp_path):
        result = load_batch_config(str(tmp_path / "nope.json"))

        assert result.valid is False
        assert "not found" in result.errors[0]

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "batch.json"
        path.write_text("{ not json", encoding="utf-8")

        result = load_batch_config(str(path))

        assert result.valid is False
        assert "Failed to parse" in result.errors[0]

    def test_missing_components(self, tmp_path):
        result = load_batch_config(write_json(tmp_path, {}))

        assert result.valid is False
        assert "components" in result.errors[0]

    def test_empty_components(self, tmp_path):
        result = load_batch_config(write_json(tmp_path, {"components": []}))

        assert result.valid is False
        assert "empty" in result.errors[0]

    def test_all_component_errors_reported(self, tmp_path):
        path = write_json(tmp_path, {"components": [
            {"selector": ".a", "name": "A"},
            {"url": "https://example.com", "selector": ".b"},
            {"url": "https://example.com", "name": "lowercase", "selector": ".c"},
            {"url": "https://example.com", "name": "D"},
            {"url": "https://example.com", "name": "E", "selector": ".e", "find": "e"},
            {"url": "https://example.com", "name": "F", "selector": ".f", "framework": "angular"},
        ]})

        result = load_batch_config(path)

        assert result.valid is False
        joined = "\n".join(result.errors)
        assert "components[0]: missing required \"url\"" in joined
        assert "components[1]: missing required \"name\"" in joined
        assert "components[2]: name \"lowercase\" must be PascalCase" in joined
        assert "components[3]: needs either \"selector\" or \"find\"" in joined
        assert "components[4]: cannot have both" in joined
        assert "components[5]: invalid framework" in joined

    def test_invalid_defaults(self):
        errors = validate_batch_config({
            "components": [{"url": "https://example.com", "name": "A", "selector": ".a"}],
            "defaults": {"styling": "sass"},
        })

        assert len(errors) == 1
        assert errors[0].startswith("defaults: invalid styling \"sass\"")


class TestBuildJob:
    """Component > defaults > fallback"""

    def test_component_wins(self):
        job = build_job(
            {"url": "https://example.com", "selector": ".a", "name": "A", "framework": "svelte"},
            {"framework": "vue", "styling": "inline"},
            FALLBACK,
        )

        assert job.framework == "svelte"
        assert job.styling == "inline"
        assert job.output_dir == "./components"
        assert job.component_name == "A"
        assert job.selector == ".a"

    def test_defaults_over_fallback(self):
        job = build_job(
            {"url": "https://example.com", "find": "nav", "name": "Nav"},
            {"outputDir": "./ui", "includeAssets": True},
            FALLBACK,
        )

        assert job.output_dir == "./ui"
        assert job.include_assets is True
        assert job.find == "nav"
        assert job.framework == "react"

    def test_fallback_only(self):
        job = build_job({"url": "https://example.com", "selector": ".a", "name": "A"}, None, FALLBACK)

        assert job.framework == "react"
        assert job.styling == "tailwind"
        assert job.include_assets is False


def outcome(success, error=None):
    return PipelineOutcome(success=success, timing=PipelineTiming(), error=error)


class TestBatchCoordinator:
    def test_invalid_session_mode(self):
        with pytest.raises(ValueError):
            BatchCoordinator(session_mode="pooled")

    def test_fallback_from_config(self):
        config = Config(framework="vue", styling="inline", output_dir="./out")

        fallback = BatchCoordinator(config).fallback()

        assert fallback["framework"] == "vue"
        assert fallback["output_dir"] == "./out"

    @pytest.mark.asyncio
    async def test_jobs_run_in_order_with_merged_options(self):
        orchestrator = AsyncMock()
        orchestrator.run = AsyncMock(return_value=outcome(True))
        batch = {
            "components": [
                {"url": "https://a.com", "selector": ".a", "name": "A"},
                {"url": "https://b.com", "selector": ".b", "name": "B", "framework": "html"},
            ],
            "defaults": {"framework": "vue"},
        }

        result = await BatchCoordinator(orchestrator=orchestrator).run(batch)

        jobs = [c.args[0] for c in orchestrator.run.await_args_list]
        assert [j.url for j in jobs] == ["https://a.com", "https://b.com"]
        assert [j.framework for j in jobs] == ["vue", "html"]
        assert result.total == 2
        assert result.succeeded == 2
        assert [r.name for r in result.results] == ["A", "B"]

    @pytest.mark.asyncio
    async def test_failure_does_not_stop_batch(self):
        orchestrator = AsyncMock()
        orchestrator.run = AsyncMock(side_effect=[
            outcome(True),
            outcome(False, NavigationError("not a url", "Invalid URL: 'not a url'")),
            outcome(True),
        ])
        batch = {"components": [
            {"url": "https://a.com", "selector": ".a", "name": "A"},
            {"url": "not a url", "selector": ".b", "name": "B"},
            {"url": "https://c.com", "selector": ".c", "name": "C"},
        ]}

        result = await BatchCoordinator(orchestrator=orchestrator).run(batch)

        assert result.total == 3
        assert result.succeeded == 2
        assert result.failed == 1
        assert [r.success for r in result.results] == [True, False, True]
        assert result.results[1].error.startswith("[NAVIGATION_ERROR]")
        assert result.total_time >= 0

    @pytest.mark.asyncio
    async def test_orchestrator_exception_becomes_failed_job(self):
        orchestrator = AsyncMock()
        orchestrator.run = AsyncMock(side_effect=[RuntimeError("crashed"), outcome(True)])
        batch = {"components": [
            {"url": "https://a.com", "selector": ".a", "name": "A"},
            {"url": "https://b.com", "selector": ".b", "name": "B"},
        ]}

        result = await BatchCoordinator(orchestrator=orchestrator).run(batch)

        assert result.results[0].success is False
        assert result.results[0].error == "crashed"
        assert result.results[1].success is True

    @pytest.mark.asyncio
    async def test_malformed_component_fails_alone(self):
        orchestrator = AsyncMock()
        orchestrator.run = AsyncMock(return_value=outcome(True))
        batch = {"components": [
            {"url": "https://a.com", "selector": ".a", "name": "A"},
            "oops",
            {"url": "https://c.com", "selector": ".c", "name": "C"},
        ]}

        result = await BatchCoordinator(orchestrator=orchestrator).run(batch)

        assert result.total == 3
        assert result.succeeded == 2
        assert result.failed == 1
        assert [r.name for r in result.results] == ["A", "component-2", "C"]
        assert [r.success for r in result.results] == [True, False, True]
        assert result.results[1].error
        assert orchestrator.run.await_count == 2

    @pytest.mark.asyncio
    async def test_setup_failure_fails_every_job_without_raising(self):
        # No config and no orchestrator: building the pipeline fails
        batch = {"components": [
            {"url": "https://a.com", "selector": ".a", "name": "A"},
            "oops",
        ]}

        result = await BatchCoordinator().run(batch)

        assert result.total == 2
        assert result.failed == 2
        assert [r.name for r in result.results] == ["A", "component-2"]
        assert all(r.error for r in result.results)

    @pytest.mark.asyncio
    async def test_jobs_never_overlap(self):
        active = {"now": 0, "max": 0}

        async def run(job):
            active["now"] += 1
            active["max"] = max(active["max"], active["now"])
            active["now"] -= 1
            return outcome(True)

        orchestrator = AsyncMock()
        orchestrator.run = AsyncMock(side_effect=run)
        batch = {"components": [
            {"url": f"https://{n}.com", "selector": ".x", "name": n.upper()} for n in "abcd"
        ]}

        result = await BatchCoordinator(orchestrator=orchestrator).run(batch)

        assert result.succeeded == 4
        assert active["max"] == 1


class FakeSession:
    def __init__(self):
        self.page = object()
        self.closed = 0

    async def launch(self):
        return self.page

    async def navigate(self, url):
        validate_url(normalize_url(url))

    def get_page(self):
        return self.page

    async def close(self):
        self.closed += 1


class FakeSessions:
    def __init__(self):
        self.sessions = []

    async def acquire(self):
        session = FakeSession()
        self.sessions.append(session)
        return session


@pytest.mark.asyncio
async def test_batch_through_real_pipeline(tmp_path):
    """A bad URL in the middle fails only its own job"""
    sessions = FakeSessions()
    write = AsyncMock(return_value=OutputResult(files=[], assets=[], import_path="./x"))
    caps = PipelineCapabilities(
        sessions=sessions,
        snapshot=AsyncMock(),
        locate=AsyncMock(),
        resolve_ref=AsyncMock(),
        extract=AsyncMock(return_value=ExtractedElement(html="<nav></nav>", css="", tag_name="nav")),
        transform=AsyncMock(return_value=TransformResult(code="x", filename="X.tsx")),
        write=write,
        download_assets=AsyncMock(return_value=[]),
    )
    batch = {"components": [
        {"url": "https://a.com", "selector": "nav", "name": "A"},
        {"url": "not a url", "selector": "nav", "name": "B"},
        {"url": "https://c.com", "selector": "nav", "name": "C"},
    ], "defaults": {"outputDir": str(tmp_path)}}

    result = await BatchCoordinator(orchestrator=PipelineOrchestrator(caps)).run(batch)

    assert result.total == 3
    assert [r.name for r in result.results] == ["A", "B", "C"]
    assert [r.success for r in result.results] == [True, False, True]
    assert "NAVIGATION_ERROR" in result.results[1].error
    assert [s.closed for s in sessions.sessions] == [1, 1, 1]
    assert write.await_count == 2
