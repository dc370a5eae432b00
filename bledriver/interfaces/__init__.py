from .event_sink import DeviceEventSink
from .publisher import Publisher
from .command_sink import CommandEvent, CommandSink

__all__ = ["DeviceEventSink", "Publisher", "CommandEvent", "CommandSink"]
