from .mqtt_provider import MqttProvider, CommandPublishError

__all__ = [
    "MqttProvider",
    "CommandPublishError",
]
