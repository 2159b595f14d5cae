#!/usr/bin/env python3
"""Entry point for running the Team Survey server."""

import uvicorn

from teamsurvey.config import settings

if __name__ == "__main__":
    uvicorn.run(
        "teamsurvey.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.environment == "development",
    )
