"""mimikry: rebuild every matching upstream image version from your own templates.

Lists the tags of an upstream repository (``postgres`` by default), keeps the
plain numeric versions that satisfy a constraint, renders a build context per
version, then builds, tags and pushes the images in ascending order while
removing superseded local images as it goes.
"""

__version__ = "0.3.0"

from mimikry.core.constraint import Constraint
from mimikry.core.coordinator import PipelineCoordinator
from mimikry.core.orchestrator import Orchestrator
from mimikry.models.versioning import Version
from mimikry.cli.app import app as cli

__all__ = ["Constraint", "Orchestrator", "PipelineCoordinator", "Version", "cli", "__version__"]
