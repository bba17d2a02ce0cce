"""SQS subscriber lifecycle states."""
from enum import Enum


class SubscriberState(str, Enum):
    RUNNING = "RUNNING"
    STOPPING = "STOPPING"
    STOPPED = "STOPPED"
