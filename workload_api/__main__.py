"""Run the API with ``python -m workload_api``."""
from os import getenv

import uvicorn

from .logging_config import configure_logging


def main() -> None:
    configure_logging()
    uvicorn.run(
        "workload_api.api:app",
        host=getenv("API_HOST", "0.0.0.0"),
        port=int(getenv("API_PORT", "8000")),
        log_config=None,
    )


if __name__ == "__main__":
    main()
