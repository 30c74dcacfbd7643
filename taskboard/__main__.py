"""Run the task board service with uvicorn."""

from __future__ import annotations

import os

import uvicorn

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 18180


def main() -> None:
    host = os.getenv("TASKBOARD_HOST", DEFAULT_HOST).strip() or DEFAULT_HOST
    port = int(os.getenv("TASKBOARD_PORT", str(DEFAULT_PORT)).strip() or DEFAULT_PORT)
    uvicorn.run("taskboard.main:app", host=host, port=port)


if __name__ == "__main__":
    main()
