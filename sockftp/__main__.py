"""Allow ``python -m sockftp``."""

import sys

from sockftp.main import main

sys.exit(main())
