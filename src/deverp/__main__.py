"""Allow ``python -m deverp``."""

from deverp.cli import main

main()
