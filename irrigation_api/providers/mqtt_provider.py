import asyncio
import json
import logging
from typing import Dict, Any, Optional
import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)

class CommandPublishError(Exception):
    """A command could not be handed to the MQTT broker"""

class MqttProvider:
    """Publish-only command channel to field controllers using paho-mqtt"""
    
    def __init__(
        self,
        host: str,
        port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        client_id: str = "irrigation-api",
        qos: int = 1,
        publish_timeout: float = 5.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.client_id = client_id
        self.qos = qos
        self.publish_timeout = publish_timeout
        self._client = None
        
        self.mock_mode = not host
        
        if self.mock_mode:
            logger.warning("MQTT provider running in MOCK MODE - broker not configured")
        else:
            logger.info(f"MQTT provider using broker {host}:{port}")
    
    @property
    def client(self) -> mqtt.Client:
        """Get or create the paho client"""
        if self._client is None:
            self._client = mqtt.Client(
                mqtt.CallbackAPIVersion.VERSION2,
                client_id=self.client_id,
            )
            if self.username:
                self._client.username_pw_set(self.username, self.password or None)
            self._client.reconnect_delay_set(min_delay=1, max_delay=30)
            self._client.on_connect = self._on_connect
            self._client.on_disconnect = self._on_disconnect
        return self._client
    
    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if reason_code.is_failure:
            logger.warning(f"MQTT connection refused by {self.host}:{self.port}: {reason_code}")
        else:
            logger.info(f"MQTT client connected to {self.host}:{self.port}")
    
    def _on_disconnect(self, client, userdata, flags, reason_code, properties=None):
        logger.info(f"MQTT client disconnected rc={reason_code} (auto-reconnect active)")
    
    def connect(self) -> None:
        """Start the network loop and connect without blocking startup"""
        if self.mock_mode:
            return
        
        self.client.loop_start()
        try:
            self.client.connect_async(self.host, self.port, keepalive=30)
        except Exception as e:
            # The API keeps serving; publishes fail until the broker shows up
            logger.warning(f"MQTT broker {self.host}:{self.port} not reachable: {str(e)}")
    
    def disconnect(self) -> None:
        if self._client is None:
            return
        self._client.disconnect()
        self._client.loop_stop()
        logger.info("MQTT client stopped")
    
    def is_connected(self) -> bool:
        if self.mock_mode:
            return True
        return self._client is not None and self._client.is_connected()
    
    async def publish(self, topic: str, payload: Dict[str, Any]) -> None:
        """Publish a JSON command; raises CommandPublishError when the broker does not take it"""
        message = json.dumps(payload)
        
        if self.mock_mode:
            logger.info(f"MOCK: publish to {topic}: {message}")
            return
        
        if not self.is_connected():
            raise CommandPublishError(f"MQTT client not connected to {self.host}:{self.port}")
        
        info = self.client.publish(topic, message, qos=self.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise CommandPublishError(f"Publish to {topic} failed: {mqtt.error_string(info.rc)}")
        
        if self.qos > 0:
            loop = asyncio.get_running_loop()
            try:
                await loop.run_in_executor(None, info.wait_for_publish, self.publish_timeout)
            except (RuntimeError, ValueError) as e:
                raise CommandPublishError(f"Publish to {topic} failed: {str(e)}") from e
            if not info.is_published():
                raise CommandPublishError(f"Publish to {topic} not acknowledged within {self.publish_timeout}s")
        
        logger.debug(f"MQTT publish topic={topic} payload={message}")
