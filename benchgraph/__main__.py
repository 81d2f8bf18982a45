import sys

from benchgraph.cli import main

sys.exit(main())
