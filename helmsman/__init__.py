__path__ = __import__("pkgutil").extend_path(__path__, __name__)  # NOQA: F-821
__title__ = 'helmsman'
__author__ = 'Eiko Reishin (影皇嶺臣)'
__license__ = 'MIT'
# Placeholder, modified by dynamic-versioning.
__version__ = "0.0.0"

from .arguments import *
from .builder import *
from .context import *
from .engine import *
from .faults import *
from .filters import *
from .hosting import *
from .metadata import *
from .services import *

VersionInfo = __import__("collections").namedtuple("VersionInfo", (
    "major",
    "minor",
    "micro",
    "releaselevel",
    "serial",
    "metadata"
))

# Placeholder, modified by dynamic-versioning.
version_info = VersionInfo(0, 0, 0, "final", 0, "")

__all__ = (
    "__path__",
    "__title__",
    "__author__",
    "__license__",
    "__version__",
    "version_info"
)

# Load the exposed API of the declarations
__all__ += arguments.__all__  # type: ignore[attr-defined]
# Load the exposed API of the action builder
__all__ += builder.__all__  # type: ignore[attr-defined]
# Load the exposed API of the invocation context
__all__ += context.__all__  # type: ignore[attr-defined]
# Load the exposed API of the parser engine
__all__ += engine.__all__  # type: ignore[attr-defined]
# Load the exposed API of the faults
__all__ += faults.__all__  # type: ignore[attr-defined]
# Load the exposed API of the filters
__all__ += filters.__all__  # type: ignore[attr-defined]
# Load the exposed API of the hosting layer
__all__ += hosting.__all__  # type: ignore[attr-defined]
# Load the exposed API of the metadata extractor
__all__ += metadata.__all__  # type: ignore[attr-defined]
# Load the exposed API of the service container
__all__ += services.__all__  # type: ignore[attr-defined]
