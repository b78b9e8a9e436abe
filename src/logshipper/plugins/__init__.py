"""
Output plugins for logshipper.
"""

from .sinks import BaseSink
from .sinks.awslogs import AwsLogsSink, AwsLogsSinkConfig, ShipmentReport

__all__ = ["AwsLogsSink", "AwsLogsSinkConfig", "BaseSink", "ShipmentReport"]
