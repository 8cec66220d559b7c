"""Minimal demonstration of the command core."""

import json

from formatter_core import Application
from formatter_core.config.settings import settings
from formatter_core.infrastructure.logging.logger import install_excepthooks

if __name__ == "__main__":
    install_excepthooks(settings.resolved_log_dir)
    with Application() as app:
        for name, payload in [
            ("app:getVersion", None),
            ("models:list", {"refresh": False}),
            ("store:get", {"key": "maxHistoryItems"}),
            ("clipboard:copy", {"text": ""}),
        ]:
            print(name, json.dumps(app.dispatch(name, payload), ensure_ascii=False))
