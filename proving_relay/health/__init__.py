from .contact_tracker import ContactTracker as ContactTracker
from .health_listener import HealthListener as HealthListener
from .heartbeat import Heartbeat as Heartbeat
