#!/usr/bin/env python3
"""
Daily sweep that emails Apple certificate expiry notices (30 days, 7 days, expired).

Run from cron inside the backend container:
    docker exec -it passkit-backend-1 python -m scripts.check_certificate_expiry
"""

import logging
import sys
from pathlib import Path

# Add the app to the path
sys.path.insert(0, str(Path(__file__).parent.parent))

from app.services.certificate_expiry import check_certificate_expiry


def main() -> int:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    sent = check_certificate_expiry()
    print(f"Expiry notices sent: 30 days={sent[30]}, 7 days={sent[7]}, expired={sent[0]}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
