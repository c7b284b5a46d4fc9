"""
ASGI entry point for the transcription API.

    uvicorn server.asgi:app --port 8000
    python -m server.asgi          # HTTP_HOST / HTTP_PORT from the environment

.env is loaded before the app reads its configuration, so credentials
placed there reach AppConfig.load_from_env().
"""

import os

from dotenv import load_dotenv

load_dotenv()

from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app()


def main() -> None:
    import uvicorn  # pylint: disable=import-outside-toplevel

    uvicorn.run(
        "server.asgi:app",
        host=os.environ.get("HTTP_HOST", "0.0.0.0"),
        port=int(os.environ.get("HTTP_PORT", "8000")),
        log_level=app.state.config.log_level.lower(),
    )


if __name__ == "__main__":
    main()
