"""Configuration management using pydantic-settings"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file='.env', case_sensitive=False, extra='ignore')

    # Node Configuration
    node_id: int = 0
    node_host: str = 'localhost'
    base_port: int = 3000  # node i listens on base_port + i

    # Cluster Configuration
    total_nodes: int = 1
    faulty_nodes: int = 0
    initial_value: int = 1
    is_faulty: bool = False

    # Ben-Or Timing
    round_window_ms: int = 100          # wait for R / P messages
    round_delay_ms: int = 100           # pause between rounds
    violated_round_delay_ms: int = 10   # pause between rounds when F > N/2
    readiness_poll_ms: int = 50

    # Transport
    request_timeout: float = 2.0  # seconds

    # Monitoring
    log_level: str = 'INFO'

    @property
    def round_window(self) -> float:
        return self.round_window_ms / 1000.0

    @property
    def round_delay(self) -> float:
        return self.round_delay_ms / 1000.0

    @property
    def violated_round_delay(self) -> float:
        return self.violated_round_delay_ms / 1000.0

    @property
    def readiness_poll(self) -> float:
        return self.readiness_poll_ms / 1000.0

    def peer_ids(self) -> List[int]:
        """Ids of every other node in the cluster"""
        return [i for i in range(self.total_nodes) if i != self.node_id]


settings = Settings()
