from edgescore.queue.broker import Job, Queue, QueueBroker, QueuePolicy

__all__ = ["Job", "Queue", "QueueBroker", "QueuePolicy"]
