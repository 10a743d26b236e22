import sys

from onchain.cli.main import main


sys.exit(main())
