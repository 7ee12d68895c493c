"""Enable running cxxdb as a module: python -m cxxdb"""

import sys

from cxxdb import (
    cli,
)

if __name__ == "__main__":
    # pylint: disable=no-value-for-parameter
    sys.exit(cli())
