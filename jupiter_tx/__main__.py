import sys

from jupiter_tx.cli import main

sys.exit(main())
