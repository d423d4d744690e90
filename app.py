"""Compatibility module exposing the application instance."""

from __future__ import annotations

import os

from ziwo_admin_ui import create_app

app = create_app()


if __name__ == "__main__":
    app.run(
        host=os.getenv("ZIWO_UI_HOST", "127.0.0.1"),
        port=int(os.getenv("ZIWO_UI_PORT", "8080")),
        debug=False,
    )
