from .files import QueueDirs, QueueFile
from .processor import QueueProcessor

__all__ = ["QueueDirs", "QueueFile", "QueueProcessor"]
