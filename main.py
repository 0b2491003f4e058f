import os, sys
sys.path.insert(0, os.path.abspath(os.path.dirname(__file__)))

from raworc_mcp.cli import main

if __name__ == "__main__":
    # Run directly with `python main.py [flags]` without installing the package.
    sys.exit(main())
