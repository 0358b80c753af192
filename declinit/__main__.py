"""Allow ``python -m declinit``."""

from declinit.main import main

raise SystemExit(main())
