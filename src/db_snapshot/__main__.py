import sys

from db_snapshot.cli import main

sys.exit(main())
