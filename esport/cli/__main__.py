import sys

from esport.cli import main

sys.exit(main())
