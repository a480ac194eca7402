"""Makes `import flocksim` from a source checkout resolve to src/flocksim."""

import os

_src = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "src", "flocksim")
if os.path.isdir(_src):
    __path__.insert(0, _src)
