#!/usr/bin/env python3
"""
Drive OAuth Token Script

Ensures a headless-usable, read-only Google Drive token exists:
- Reuses the stored token if its access token is still valid
- Refreshes the access token using the stored refresh token
- Runs interactive authorization if no (valid) token is stored

Run it once interactively to authorize, then from cron or container
start-up to keep the token fresh.

Usage:
    python scripts/generate_auth_token.py
    python scripts/generate_auth_token.py --status
    python scripts/generate_auth_token.py --secrets-dir /path/to/secrets

Prerequisites:
    - OAuth client secrets for a desktop application saved to
      secrets/credentials.json (or DRIVE_TOKEN_CREDENTIALS_FILE)
"""

import sys
from pathlib import Path

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from drive_token.cli import main

if __name__ == "__main__":
    sys.exit(main())
