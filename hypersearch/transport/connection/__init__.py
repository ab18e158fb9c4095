from .connection import Connection as Connection
from .protocols import StaleStreamError as StaleStreamError
