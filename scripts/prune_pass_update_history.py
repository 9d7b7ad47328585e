#!/usr/bin/env python3
"""
Daily sweep that deletes pass update history past the retention window.

Run from cron inside the backend container:
    docker exec -it passkit-backend-1 python -m scripts.prune_pass_update_history
"""

import logging
import sys
from pathlib import Path

# Add the app to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.services.pass_updates import prune_history


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    removed = prune_history()
    print(f"Pass updates pruned: {removed}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
