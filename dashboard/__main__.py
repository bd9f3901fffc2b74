import sys

from dashboard.runner import main

if __name__ == "__main__":
    sys.exit(main())
