"""
Twin Sensor Hub: sliding-window anomaly scoring for paired mobile motion sensors.
"""

__version__ = "0.1.0"
