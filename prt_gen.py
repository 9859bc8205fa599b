#!/usr/bin/env python
"""CLI entry point for radiance transfer precomputation."""

import sys

from radiance_transfer.pipeline import main

if __name__ == "__main__":
    sys.exit(main())
