#!/usr/bin/env python
"""
Order wait-time CLI

Usage:
    python wait_time.py init-db
    python wait_time.py estimate ORD-1001
    python wait_time.py token MERCHANT01 ORD-1001
    python wait_time.py serve
"""

import sys

from order_wait.serving.cli import main

if __name__ == "__main__":
    sys.exit(main())
