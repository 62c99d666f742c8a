# common/__init__.py
from .api_error import *
from .context_vars import *
from .config import *
from .logger import logger, get_app_logger, AppLogger
