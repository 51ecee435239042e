"""Allow ``python -m records_browser``."""

import sys

from records_browser.app import main

sys.exit(main())
