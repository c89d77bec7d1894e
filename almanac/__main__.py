import sys

from almanac.resolver.cli import main

if __name__ == "__main__":
    sys.exit(main())
