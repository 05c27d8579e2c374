"""Allow ``python -m smartlife_dashboard``."""

from .cli import main

raise SystemExit(main())
