"""
ASGI entry point.

Used by uvicorn:
    uvicorn server.asgi:app --app-dir backend

.env is loaded before configuration is read.
"""

import uvicorn
from dotenv import load_dotenv

load_dotenv()

from server.app import create_app  # pylint: disable=wrong-import-position

app = create_app()


def main() -> None:
    """Console entry point for local runs."""
    uvicorn.run(app, host="0.0.0.0", port=8000, log_level="info")


if __name__ == "__main__":
    main()
