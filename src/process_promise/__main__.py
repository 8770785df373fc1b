import sys

from process_promise.cli import main

sys.exit(main())
