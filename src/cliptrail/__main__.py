import sys

from cliptrail.main import main

sys.exit(main())
