#!/usr/bin/env python3
# nhrigs - NiceHash mining rig status page
# - Serves a status page for the rigs of one NiceHash organization.
# - Credentials via env (NICEHASH_API_KEY, NICEHASH_API_SECRET, NICEHASH_ORG_ID),
#   a .env file, or nhrigs-conf.json:
#   {
#     "api_key": "...",
#     "api_secret": "...",
#     "org_id": "...",
#     "port": 3000
#   }

import sys

from nhrigs.cli import main

if __name__ == "__main__":
    sys.exit(main())
