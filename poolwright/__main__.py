import sys

from poolwright.cli import main

sys.exit(main())
