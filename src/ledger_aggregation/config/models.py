import json
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Dict, Optional

from ledger_aggregation.crypto.ciphertext import MAX_RING_MODULUS, Encoding


class LedgerBackend(str, Enum):
    MEMORY = "memory"
    FILE = "file"
    GATEWAY = "gateway"


@dataclass
class EngineConfig:
    """
    Parameters of the aggregation round engine.

    Attributes:
        client_count: Quorum at the start of every round.
        encoding: Ciphertext encoding (``ring`` or ``scaled``).
        modulus: q for the ring encoding.
        scale: Scale carried by scaled-encoding ciphertexts.
        latest_key: Ledger key the aggregate and the decrypted result go to.
        private_collection: Collection holding the private partial.
        equality_tolerance: Absolute tolerance for scaled-encoding equality.
        degenerate_epsilon: Outlier denominators within this fraction of the spread are degenerate.
        require_signatures: Reject proposals without a valid client signature.
    """

    client_count: int = 10
    encoding: Encoding = Encoding.RING
    modulus: int = 800
    scale: float = float(2**20)
    latest_key: str = "latest_model"
    private_collection: str = "axCollection"
    equality_tolerance: float = 0.0
    degenerate_epsilon: float = 1e-12
    require_signatures: bool = False

    def __post_init__(self) -> None:
        self.encoding = Encoding(self.encoding)
        if self.client_count <= 0:
            raise ValueError("client_count must be positive")
        if self.modulus <= 1 or self.modulus > MAX_RING_MODULUS:
            raise ValueError("modulus must satisfy 1 < q <= 2**62")
        if self.scale <= 0:
            raise ValueError("scale must be positive")
        if self.equality_tolerance < 0:
            raise ValueError("equality_tolerance must be non-negative")
        if self.degenerate_epsilon < 0:
            raise ValueError("degenerate_epsilon must be non-negative")
        if not self.latest_key.strip():
            raise ValueError("latest_key cannot be empty")
        if not self.private_collection.strip():
            raise ValueError("private_collection cannot be empty")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EngineConfig":
        if not data:
            return cls()
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            if key == "client_count":
                kwargs[key] = int(value)
            elif key == "encoding":
                try:
                    kwargs[key] = Encoding(str(value))
                except ValueError as exc:
                    raise ValueError(f"Unknown encoding '{value}'") from exc
            elif key == "modulus":
                kwargs[key] = int(value)
            elif key in ("scale", "equality_tolerance", "degenerate_epsilon"):
                kwargs[key] = float(value)
            elif key in ("latest_key", "private_collection"):
                kwargs[key] = str(value)
            elif key == "require_signatures":
                kwargs[key] = bool(value)
            else:
                raise ValueError(f"Unknown engine config key '{key}'")
        return cls(**kwargs)


@dataclass
class LedgerConfig:
    backend: LedgerBackend = LedgerBackend.MEMORY
    storage_path: Optional[str] = None
    gateway_url: str = "http://localhost:9000"
    timeout_seconds: float = 10.0
    retries: int = 2
    backoff_seconds: float = 0.5

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "LedgerConfig":
        if not data:
            return cls()
        try:
            backend = LedgerBackend(str(data.get("backend", "memory")))
        except ValueError as exc:
            raise ValueError(f"Unknown ledger backend '{data.get('backend')}'") from exc
        storage_path = data.get("storage_path")
        if backend == LedgerBackend.FILE and not storage_path:
            raise ValueError("File ledger backend requires storage_path")
        timeout = float(data.get("timeout_seconds", 10.0))
        if timeout <= 0:
            raise ValueError("timeout_seconds must be positive")
        retries = int(data.get("retries", 2))
        if retries < 0:
            raise ValueError("retries must be non-negative")
        backoff = float(data.get("backoff_seconds", 0.5))
        if backoff < 0:
            raise ValueError("backoff_seconds must be non-negative")
        return cls(
            backend=backend,
            storage_path=str(storage_path) if storage_path else None,
            gateway_url=str(data.get("gateway_url", "http://localhost:9000")),
            timeout_seconds=timeout,
            retries=retries,
            backoff_seconds=backoff,
        )


@dataclass
class ServiceConfig:
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"
    json_logs: bool = False
    client_keys_dir: Optional[str] = None
    metrics_port: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "ServiceConfig":
        if not data:
            return cls()
        port = int(data.get("port", 8080))
        if port <= 0 or port > 65535:
            raise ValueError("Service port must be within 1-65535")
        metrics_port = data.get("metrics_port")
        if metrics_port is not None:
            metrics_port = int(metrics_port)
            if metrics_port <= 0 or metrics_port > 65535:
                raise ValueError("metrics_port must be within 1-65535")
        keys_dir = data.get("client_keys_dir")
        return cls(
            host=str(data.get("host", "0.0.0.0")),
            port=port,
            log_level=str(data.get("log_level", "INFO")).upper(),
            json_logs=bool(data.get("json_logs", False)),
            client_keys_dir=str(keys_dir) if keys_dir else None,
            metrics_port=metrics_port,
        )


@dataclass
class AppConfig:
    engine: EngineConfig = field(default_factory=EngineConfig)
    ledger: LedgerConfig = field(default_factory=LedgerConfig)
    service: ServiceConfig = field(default_factory=ServiceConfig)

    @classmethod
    def from_file(cls, path: Path) -> "AppConfig":
        return cls.from_dict(json.loads(Path(path).read_text()))

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "AppConfig":
        data = data or {}
        unknown = set(data) - {"engine", "ledger", "service"}
        if unknown:
            raise ValueError(f"Unknown config sections: {sorted(unknown)}")
        return cls(
            engine=EngineConfig.from_dict(data.get("engine")),
            ledger=LedgerConfig.from_dict(data.get("ledger")),
            service=ServiceConfig.from_dict(data.get("service")),
        )
