import sys

from psychoscope.cli import main

if __name__ == "__main__":
    sys.exit(main())
