"""uvicorn entrypoint for the forkline API.

    uvicorn main:app --app-dir apps/api

or `python apps/api/main.py`, which binds API_HOST:API_PORT and reloads on
source changes when FORKLINE_ENV is local.

The app is built here rather than in forkline.app so that importing
create_app has no side effects; tests build their own instance.
"""

from pathlib import Path

import uvicorn

from forkline.app import add_request_id_middleware, create_app
from forkline.config import get_settings

app = create_app()
# Outermost, so error envelopes from every other layer carry X-Request-ID
add_request_id_middleware(app)

__all__ = ["app", "main"]


def main() -> None:
    settings = get_settings()
    uvicorn.run(
        "main:app",
        app_dir=str(Path(__file__).parent),
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.reload_on_change,
        log_config=None,
    )


if __name__ == "__main__":
    main()
