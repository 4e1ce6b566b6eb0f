from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Mapping

TEMPLATES_DIR = Path(__file__).parent / "templates"

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_]*)\s*\}\}")


class ReportGenerationError(RuntimeError):
    def __init__(self, message: str, report: str, stage: str, path: Path | None = None):
        super().__init__(message)
        self.report = report
        self.stage = stage
        self.path = path


def load_template(name: str) -> str:
    return (TEMPLATES_DIR / name).read_text(encoding="utf-8")


def render_template(template: str, values: Mapping[str, Any]) -> str:
    """Substitute ``{{name}}`` placeholders in a single pass.

    Inserted text is never scanned again, so a value that itself contains
    ``{{...}}`` is emitted literally. Unknown placeholders are left untouched.
    """

    def _replace(match: re.Match[str]) -> str:
        key = match.group(1)
        if key not in values:
            return match.group(0)
        return str(values[key])

    return _PLACEHOLDER_RE.sub(_replace, template)


def to_script_json(value: Any) -> str:
    # Keeps a serialized value from closing the surrounding <script> element.
    return json.dumps(value).replace("</", "<\\/")
