"""Background delivery of scheduled messages and token upkeep."""

from threadly.scheduling.delivery import DeliveryReport, DeliveryScheduler
from threadly.scheduling.supervisor import BackgroundSupervisor


__all__ = ["BackgroundSupervisor", "DeliveryReport", "DeliveryScheduler"]
