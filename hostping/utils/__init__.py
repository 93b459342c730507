from .net import is_admin, resolve_host
from .log import setup_logging, get_logger, parse_level
