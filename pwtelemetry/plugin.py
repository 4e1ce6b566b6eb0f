from __future__ import annotations

import json
import re
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Iterator

import pytest

from pwtelemetry.collectors.worker_stats import WorkerStatCollector
from pwtelemetry.config.settings import Settings
from pwtelemetry.core.file_manager import SafeFileStore
from pwtelemetry.core.logger import get_logger
from pwtelemetry.core.logging import configure_logging
from pwtelemetry.instrumentation.interaction import Interactions, TrackedObject
from pwtelemetry.pipeline.merger import AggregationError, AggregationMerger
from pwtelemetry.pipeline.worker_files import worker_index_from_id
from pwtelemetry.reports.renderer import render_reports
from pwtelemetry.reports.templating import ReportGenerationError

if TYPE_CHECKING:
    from playwright.sync_api import Page, Response

logger = get_logger(__name__)

PLUGIN_NAME = "pwtelemetry-session"
FAILED_REQUESTS_PROPERTY = "failed-network-requests"
IGNORE_NETWORK_MARKER = "telemetry_ignore_network"

_UNSAFE_NAME_RE = re.compile(r"[^A-Za-z0-9_.-]+")


def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("pwtelemetry", "Playwright test telemetry")
    group.addoption(
        "--telemetry-network",
        action="store_true",
        dest="telemetry_network",
        default=False,
        help="Collect network traffic and render the network report (overrides RUN_NETWORK_REPORT).",
    )
    group.addoption(
        "--telemetry-heatmap",
        action="store_true",
        dest="telemetry_heatmap",
        default=False,
        help="Collect interactions and render heatmaps (overrides RUN_HEATMAP_REPORT).",
    )


def build_settings(config: pytest.Config) -> Settings:
    resolved = Settings()
    overrides: dict[str, Any] = {}
    if config.getoption("telemetry_network", False):
        overrides["RUN_NETWORK_REPORT"] = True
    if config.getoption("telemetry_heatmap", False):
        overrides["RUN_HEATMAP_REPORT"] = True
    return resolved.model_copy(update=overrides) if overrides else resolved


def is_xdist_worker(config: pytest.Config) -> bool:
    return hasattr(config, "workerinput")


def is_xdist_controller(config: pytest.Config) -> bool:
    return not is_xdist_worker(config) and config.getoption("dist", "no") != "no"


def normalize_test_name(nodeid: str) -> str:
    return _UNSAFE_NAME_RE.sub("_", nodeid).strip("_") or "test"


class TelemetryPlugin:
    """Per-process telemetry session.

    Workers record and flush. The controller merges the worker files and
    renders the reports once every worker has finished.
    """

    def __init__(self, config: pytest.Config, settings: Settings, store: SafeFileStore, worker_index: int):
        self.config = config
        self.settings = settings
        self.store = store
        self.worker_index = worker_index
        self.collector = WorkerStatCollector(settings, store, worker_index)
        self.merged: dict[str, Path | None] = {}
        self.rendered: dict[str, Path | None] = {}
        self.error: Exception | None = None

    @pytest.fixture
    def telemetry(self) -> WorkerStatCollector:
        return self.collector

    @pytest.fixture
    def monitored_page(self, request: pytest.FixtureRequest, page: Page) -> Iterator[Page]:
        listener: Callable[[Response], None] | None = None
        if self.collector.network_enabled and request.node.get_closest_marker(IGNORE_NETWORK_MARKER) is None:
            test_name = request.node.nodeid

            def listener(response: Response) -> None:
                self.collector.record_response(response.url, response.status, test_name)

            page.on("response", listener)

        yield page

        if listener is not None:
            page.remove_listener("response", listener)
        report = getattr(request.node, "rep_call", None)
        if self.settings.CAPTURE_FAILURE_SCREENSHOTS and report is not None and report.failed:
            self.capture_failure_screenshot(page, request.node.nodeid)

    @pytest.fixture
    def tracked_object(self) -> Callable[..., Interactions]:
        def factory(name: str, page: Any, root: Any = None) -> Interactions:
            return Interactions(self.collector, TrackedObject(name, page, root))

        return factory

    def capture_failure_screenshot(self, page: Any, nodeid: str) -> Path | None:
        target = self.settings.failure_screenshot_path / f"failure-{normalize_test_name(nodeid)}.png"
        self.store.ensure_dir(target.parent)
        try:
            page.screenshot(path=str(self.store.resolve(target)), full_page=True)
        except Exception:
            logger.exception("telemetry.failure_screenshot.failed", test=nodeid, path=str(target))
            return None
        logger.info("telemetry.failure_screenshot.captured", test=nodeid, path=str(target))
        return target

    @pytest.hookimpl(hookwrapper=True)
    def pytest_runtest_makereport(self, item: pytest.Item, call: pytest.CallInfo[None]) -> Iterator[None]:
        if call.when == "teardown" and self.collector.network_enabled:
            failed = self.collector.finish_test()
            if failed:
                item.user_properties.append((FAILED_REQUESTS_PROPERTY, json.dumps(failed)))
        outcome = yield
        report = outcome.get_result()
        setattr(item, f"rep_{report.when}", report)

    def pytest_runtest_logreport(self, report: pytest.TestReport) -> None:
        if report.when != "teardown":
            return
        for name, value in report.user_properties:
            if name != FAILED_REQUESTS_PROPERTY:
                continue
            failed = json.loads(value)
            logger.warning(
                "telemetry.test.failed_requests",
                test=report.nodeid,
                urls=len(failed),
                failures=sum(stats["fail"] for stats in failed.values()),
            )

    def pytest_sessionfinish(self, session: pytest.Session) -> None:
        if not self.settings.any_report_enabled:
            return
        try:
            if not is_xdist_controller(self.config):
                self.collector.flush()
            if not is_xdist_worker(self.config):
                self.merged = {kind.value: path for kind, path in AggregationMerger(self.settings, self.store).aggregate_all().items()}
                self.rendered = render_reports(self.settings, self.store)
        except (AggregationError, ReportGenerationError, OSError) as exc:
            logger.exception("telemetry.reporting.failed", error=str(exc))
            self.error = exc
            session.exitstatus = pytest.ExitCode.INTERNAL_ERROR

    def pytest_terminal_summary(self, terminalreporter: Any, exitstatus: int, config: pytest.Config) -> None:
        if is_xdist_worker(config) or not self.settings.any_report_enabled:
            return
        terminalreporter.section("telemetry")
        if self.error is not None:
            stage = getattr(self.error, "stage", "io")
            path = getattr(self.error, "path", None) or getattr(self.error, "filename", None)
            terminalreporter.write_line(f"telemetry reporting failed at stage '{stage}' ({path}): {self.error}", red=True)
            return
        for name, path in self.rendered.items():
            terminalreporter.write_line(f"{name} report: {path if path is not None else 'no data recorded'}")


def pytest_configure(config: pytest.Config) -> None:
    config.addinivalue_line(
        "markers",
        f"{IGNORE_NETWORK_MARKER}: do not record network responses for this test",
    )

    settings = build_settings(config)
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)

    if not settings.RUN_NETWORK_REPORT:
        logger.debug("telemetry.network.disabled", hint="set RUN_NETWORK_REPORT=true or pass --telemetry-network")
    if not settings.RUN_HEATMAP_REPORT:
        logger.debug("telemetry.heatmap.disabled", hint="set RUN_HEATMAP_REPORT=true or pass --telemetry-heatmap")

    worker_id = config.workerinput.get("workerid") if is_xdist_worker(config) else None
    plugin = TelemetryPlugin(
        config,
        settings,
        SafeFileStore(settings.workspace_root_path),
        worker_index_from_id(worker_id),
    )
    config.pluginmanager.register(plugin, PLUGIN_NAME)


def pytest_unconfigure(config: pytest.Config) -> None:
    plugin = config.pluginmanager.get_plugin(PLUGIN_NAME)
    if plugin is not None:
        config.pluginmanager.unregister(plugin, PLUGIN_NAME)
