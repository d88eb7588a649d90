from .publisher import Publisher, PublisherStats
from .writer import ChannelWriter

__all__ = ["ChannelWriter", "Publisher", "PublisherStats"]
