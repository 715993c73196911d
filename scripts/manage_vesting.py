#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""
Script to administer the EPIX vesting ledger.

Examples:
    manage_vesting.py --admin 0xAdmin init allocations.json
    manage_vesting.py fund
    manage_vesting.py start
    manage_vesting.py status --allocations allocations.json
"""

import sys
from pathlib import Path

# Add epix_claim to Python path
ROOT_DIR = str(Path(__file__).parent.parent.absolute())
sys.path.insert(0, ROOT_DIR)

from epix_claim.vesting.cli import main


if __name__ == "__main__":
    sys.exit(main())
