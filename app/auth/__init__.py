from .permissions import *
from .identity import *
