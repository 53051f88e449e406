"""Main entry point for the Order Processor."""

import os

import uvicorn

from order_processor.server import app

if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "8001")))
