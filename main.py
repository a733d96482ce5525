import os
import sys
from pathlib import Path

import uvicorn

# Add project root to path
PROJECT_ROOT = Path(__file__).parent
sys.path.insert(0, str(PROJECT_ROOT))

from accountability.logger import setup_logging


def main():
    """Main entry point for the Stay on One web service."""
    setup_logging()

    reload_enabled = os.getenv("STAY_ON_ONE_RELOAD", "0").lower() in {"1", "true", "yes"}
    host = os.getenv("STAY_ON_ONE_HOST", "127.0.0.1")
    port = int(os.getenv("STAY_ON_ONE_PORT", "8010"))

    uvicorn.run(
        "web.backend.app:app",
        host=host,
        port=port,
        reload=reload_enabled,
        reload_dirs=["web", "accountability"] if reload_enabled else None,
    )


if __name__ == "__main__":
    main()
