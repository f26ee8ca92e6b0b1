"""
Runtime context for a ProofGate deployment.

Reads a YAML file into GatewayConfig and wires the scheme, used-proof
store, audit log, signing key and verifier into a VerificationGateway.

    scheme: privacy-pools
    guard_path: .proofgate/used.jsonl
    audit_path: .proofgate/audit.jsonl
    key_path: .proofgate/audit.key
    audit_rejections: false
    verifier:
      backend: contract          # contract | accept-all | reject-all
      rpc_url: http://127.0.0.1:8545
      address: "0x..."
      returns_bool: false
      timeout_seconds: 30

Relative paths resolve against the config file's directory.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from proofgate.core.crypto import Ed25519KeyManager
from proofgate.core.exceptions import ConfigError
from proofgate.core.models import DEFAULT_SCHEME, ProofScheme, get_scheme
from proofgate.gateway.engine import VerificationGateway
from proofgate.guard.replay_guard import open_guard
from proofgate.ledger.audit_log import AuditLog
from proofgate.verification.backends import ContractVerifier, StaticVerifier, TimeoutVerifier
from proofgate.verification.verifier import ExternalVerifier


_TOP_LEVEL_KEYS = {
    "scheme", "guard_path", "audit_path", "key_path", "audit_rejections", "verifier",
}
_VERIFIER_KEYS = {"backend", "rpc_url", "address", "returns_bool", "timeout_seconds"}
_BACKENDS      = {"contract", "accept-all", "reject-all"}


@dataclass
class VerifierConfig:
    backend:         str = "contract"
    rpc_url:         Optional[str] = None
    address:         Optional[str] = None
    returns_bool:    bool = False
    timeout_seconds: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VerifierConfig":
        if not isinstance(data, dict):
            raise ConfigError("'verifier' must be a mapping")
        unknown = set(data) - _VERIFIER_KEYS
        if unknown:
            raise ConfigError("Unknown verifier config keys", {"keys": ", ".join(sorted(unknown))})

        config = cls(**data)
        if config.backend not in _BACKENDS:
            raise ConfigError(
                f"Unknown verifier backend '{config.backend}'",
                {"valid": ", ".join(sorted(_BACKENDS))},
            )
        if config.backend == "contract" and not (config.rpc_url and config.address):
            raise ConfigError("contract verifier requires 'rpc_url' and 'address'")
        if config.timeout_seconds is not None and (
            isinstance(config.timeout_seconds, bool)
            or not isinstance(config.timeout_seconds, (int, float))
            or config.timeout_seconds <= 0
        ):
            raise ConfigError("verifier.timeout_seconds must be a positive number")
        return config


@dataclass
class GatewayConfig:
    scheme:           str = DEFAULT_SCHEME.name
    guard_path:       Optional[Path] = None
    audit_path:       Optional[Path] = None
    key_path:         Optional[Path] = None
    audit_rejections: bool = False
    verifier:         VerifierConfig = field(default_factory=VerifierConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "GatewayConfig":
        if not isinstance(data, dict):
            raise ConfigError("Gateway config must be a mapping")
        unknown = set(data) - _TOP_LEVEL_KEYS
        if unknown:
            raise ConfigError("Unknown config keys", {"keys": ", ".join(sorted(unknown))})
        if "verifier" not in data:
            raise ConfigError("Gateway config requires a 'verifier' section")

        def _path(key: str) -> Optional[Path]:
            value = data.get(key)
            if value is None:
                return None
            path = Path(value)
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            return path

        audit_rejections = data.get("audit_rejections", False)
        if not isinstance(audit_rejections, bool):
            raise ConfigError("audit_rejections must be true or false")

        config = cls(
            scheme=           data.get("scheme", DEFAULT_SCHEME.name),
            guard_path=       _path("guard_path"),
            audit_path=       _path("audit_path"),
            key_path=         _path("key_path"),
            audit_rejections= audit_rejections,
            verifier=         VerifierConfig.from_dict(data["verifier"]),
        )
        get_scheme(config.scheme)
        return config

    @classmethod
    def from_yaml(cls, config_file: Path) -> "GatewayConfig":
        """Load config from YAML file."""
        config_file = Path(config_file)
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except FileNotFoundError:
            raise ConfigError(f"Config file not found: {config_file}") from None
        except yaml.YAMLError as exc:
            raise ConfigError(f"Invalid YAML in {config_file}: {exc}") from exc
        return cls.from_dict(data or {}, base_dir=config_file.parent)


def build_verifier(config: VerifierConfig, scheme: ProofScheme) -> ExternalVerifier:
    if config.backend == "contract":
        verifier: ExternalVerifier = ContractVerifier.from_rpc(
            config.rpc_url, config.address, scheme, config.returns_bool
        )
    else:
        verifier = StaticVerifier(valid=config.backend == "accept-all")

    if config.timeout_seconds is not None:
        verifier = TimeoutVerifier(verifier, config.timeout_seconds)
    return verifier


@dataclass
class GatewayContext:
    """Everything a running gateway needs, built from one config."""

    config:      GatewayConfig
    key_manager: Ed25519KeyManager
    gateway:     VerificationGateway

    @classmethod
    def from_config(cls, config_file: Path) -> "GatewayContext":
        """Create runtime context from a YAML configuration file."""
        return cls.from_gateway_config(GatewayConfig.from_yaml(config_file))

    @classmethod
    def from_gateway_config(cls, config: GatewayConfig) -> "GatewayContext":
        scheme = get_scheme(config.scheme)

        if config.key_path is not None:
            key_manager = Ed25519KeyManager.load_or_generate(config.key_path)
        else:
            key_manager = Ed25519KeyManager.generate()

        gateway = VerificationGateway(
            verifier=         build_verifier(config.verifier, scheme),
            guard=            open_guard(config.guard_path),
            audit_log=        AuditLog(key_manager, config.audit_path),
            scheme=           scheme,
            audit_rejections= config.audit_rejections,
        )
        return cls(config=config, key_manager=key_manager, gateway=gateway)

    def __repr__(self) -> str:
        return (
            f"GatewayContext(scheme={self.config.scheme!r}, "
            f"used={len(self.gateway.guard)}, "
            f"audit_records={len(self.gateway.audit_log)})"
        )
