import sys

from route_sim.cli import main

sys.exit(main())
