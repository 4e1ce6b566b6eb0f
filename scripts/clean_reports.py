from __future__ import annotations

from pwtelemetry.config.settings import settings
from pwtelemetry.core.file_manager import SafeFileStore
from pwtelemetry.core.logging import configure_logging


def main() -> None:
    configure_logging(settings.LOG_LEVEL, settings.LOG_FORMAT)
    store = SafeFileStore(settings.workspace_root_path)
    removed = store.clean_up_folders([settings.reports_path])
    print(f"Reports cleaned ({len(removed)} removed)")


if __name__ == "__main__":
    main()
