import sys

from jlib_dashboard.app import main

sys.exit(main())
