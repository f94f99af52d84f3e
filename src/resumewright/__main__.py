"""Allow running as ``python -m resumewright``."""
import sys

from .cli import main

sys.exit(main())
