"""MQTT Receiver para reportes energéticos.

Estructura modular:
- message_handler.py: decodificación + admisión de un mensaje
- receiver.py: cliente paho-mqtt y suscripción al topic
"""

from .message_handler import HandlerStats, ReportMessageHandler
from .receiver import MQTTReportReceiver

__all__ = [
    "HandlerStats",
    "MQTTReportReceiver",
    "ReportMessageHandler",
]
