from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    WORKSPACE_ROOT: str = "."
    REPORTS_PATH: str = "reports"
    NETWORK_REPORT_DIR: str = "network-traffic"
    HEATMAP_REPORT_DIR: str = "heatmap"
    FAILURE_SCREENSHOT_DIR: str = "screenshots"

    RUN_NETWORK_REPORT: bool = False
    RUN_HEATMAP_REPORT: bool = False
    CAPTURE_FAILURE_SCREENSHOTS: bool = False

    NETWORK_MERGED_FILENAME: str = "network-traffic-merged.json"
    NETWORK_REPORT_FILENAME: str = "network-report.html"
    INTERACTIONS_MERGED_FILENAME: str = "interactions-merged.json"
    SCREENSHOTS_MERGED_FILENAME: str = "screenshots-merged.json"
    HEATMAP_PAGE_FILENAME: str = "heatmap.html"
    HEATMAP_INDEX_FILENAME: str = "index.html"

    HEATMAP_RADIUS: int = 20
    HEATMAP_MAX_OPACITY: float = 0.5
    HEATMAP_MIN_OPACITY: float = 0.0
    HEATMAP_BLUR: float = 0.75
    HEATMAP_MAX_POINTS: int = 10
    HEATMAP_WEIGHTING: Literal["per_box", "per_event"] = "per_box"
    HEATMAP_EVENT_VALUE: int = 2

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=True, extra="ignore")

    @property
    def workspace_root_path(self) -> Path:
        return Path(self.WORKSPACE_ROOT).expanduser().resolve()

    @property
    def reports_path(self) -> Path:
        reports = Path(self.REPORTS_PATH).expanduser()
        if reports.is_absolute():
            return reports
        return self.workspace_root_path / reports

    @property
    def network_report_path(self) -> Path:
        return self.reports_path / self.NETWORK_REPORT_DIR

    @property
    def heatmap_report_path(self) -> Path:
        return self.reports_path / self.HEATMAP_REPORT_DIR

    @property
    def failure_screenshot_path(self) -> Path:
        return self.reports_path / self.FAILURE_SCREENSHOT_DIR

    @property
    def any_report_enabled(self) -> bool:
        return bool(self.RUN_NETWORK_REPORT or self.RUN_HEATMAP_REPORT)


settings = Settings()
