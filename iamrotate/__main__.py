import sys

from iamrotate.cli import main

sys.exit(main())
