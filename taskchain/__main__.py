import sys

from taskchain.main import main

sys.exit(main())
