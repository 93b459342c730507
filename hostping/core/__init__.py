from .models import AppConfig, HTTPConfig, ICMPConfig, Packet, PacketMeta, RawPacket, TimedPacket
from .pinger import Driver, Pinger, StandardPinger, new
from .scope import CancelScope, Handoff
from .timing import Timer, retry_transient
