#!/usr/bin/env python3
"""ccc - Run the control socket and hook receiver.

Usage:
    python run.py [--config config.yaml] [serve]
    python run.py kill <session>
    # Or: python -m ccc.app

The control socket defaults to ~/.ccc.sock; hooks POST to
http://127.0.0.1:5051/hook/<event>.
"""

import sys

from ccc.app import main

if __name__ == "__main__":
    sys.exit(main())
