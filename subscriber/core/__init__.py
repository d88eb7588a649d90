from .reader import Backoff, ChannelReader
from .subscriber import ByteSink, Subscriber, SubscriberState, SubscriberStats

__all__ = ["Backoff", "ChannelReader", "ByteSink", "Subscriber", "SubscriberState", "SubscriberStats"]
