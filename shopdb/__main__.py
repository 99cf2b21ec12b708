import sys

from shopdb.cli import main

sys.exit(main())
