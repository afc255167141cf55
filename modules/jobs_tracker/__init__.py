# Keep this TINY so importing the package never drags in the service layer.
from . import lib  # so: from modules.jobs_tracker import lib
from .main import JobsTracker, build  # so: from modules.jobs_tracker import build

__all__ = ["JobsTracker", "build", "lib"]
