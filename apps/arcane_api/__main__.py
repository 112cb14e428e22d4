"""Entry point for running the Arcane Clash API."""
import logging

import uvicorn

if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    uvicorn.run(
        "apps.arcane_api.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
    )
