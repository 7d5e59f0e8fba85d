import sys

from taskrank.cli import main

sys.exit(main())
