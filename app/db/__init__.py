from .db_manager import *
from .unit_of_work import *
from .deps import *
