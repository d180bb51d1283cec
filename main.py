#!/usr/bin/env python3

import sys

from route_sim.cli import main

if __name__ == "__main__":
    sys.exit(main())
