"""Serve the storefront events API, with the demo order SIM attached."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from eventhub.api import create_fastapi_app
from eventhub.api.routes import control
from eventhub.logging_config import setup_logging
from sim import Sim


def main():
    """Load .env, wire the SIM into the control routes and start uvicorn."""
    load_dotenv(Path(__file__).resolve().parent.parent / ".env")
    setup_logging()

    host = os.getenv("API_HOST", "localhost")
    port = int(os.getenv("API_PORT", "8000"))

    # The SIM posts orders back to this same server
    control.set_sim_instance(Sim(api_url=f"http://{host}:{port}"))

    uvicorn.run(create_fastapi_app(), host=host, port=port, log_level="info")


if __name__ == "__main__":
    main()
