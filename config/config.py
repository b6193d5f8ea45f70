import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "VOTING_CONFIG"


@dataclass
class ZKConfig:
    backend: str = "simulated"
    circuit_name: str = "vote"
    build_dir: Path = field(default_factory=lambda: Path("circuits/build"))
    setup_dir: Path = field(default_factory=lambda: Path("circuits/setup"))
    snarkjs_bin: str = "snarkjs"
    proof_timeout: int = 60
    ptau_power: int = 14
    simulated_key_hex: Optional[str] = None

    def __post_init__(self):
        self.build_dir = Path(self.build_dir)
        self.setup_dir = Path(self.setup_dir)
        if self.backend not in ("simulated", "snarkjs"):
            raise ValueError(f"Unknown proof backend: {self.backend}")

    @property
    def wasm_file(self) -> Path:
        return self.build_dir / f"{self.circuit_name}_js" / f"{self.circuit_name}.wasm"

    @property
    def zkey_file(self) -> Path:
        return self.build_dir / f"{self.circuit_name}_final.zkey"

    @property
    def vkey_file(self) -> Path:
        return self.build_dir / "verification_key.json"


@dataclass
class RegistrarConfig:
    verify_timeout: float = 30.0
    verify_workers: int = 4


@dataclass
class SystemConfig:
    zk_config: ZKConfig = field(default_factory=ZKConfig)
    registrar_config: RegistrarConfig = field(default_factory=RegistrarConfig)

    log_dir: Path = field(default_factory=lambda: Path("logs"))
    log_level: str = "INFO"
    enable_debug_mode: bool = False

    def __post_init__(self):
        self.log_dir = Path(self.log_dir)
        if self.enable_debug_mode:
            self.log_level = "DEBUG"


def load_config(config_path: Optional[Path] = None) -> SystemConfig:
    """Load configuration from file or return default"""
    if config_path is None:
        config_path = Path(os.environ.get(CONFIG_ENV_VAR, "config.yaml"))
    config_path = Path(config_path)

    if config_path.exists():
        try:
            with open(config_path, 'r') as f:
                config_data = yaml.safe_load(f) or {}

            zk_data = config_data.get('zk_proofs', {})
            zk_config = ZKConfig(
                backend=zk_data.get('backend', 'simulated'),
                circuit_name=zk_data.get('circuit_name', 'vote'),
                build_dir=Path(zk_data.get('build_dir', 'circuits/build')),
                setup_dir=Path(zk_data.get('setup_dir', 'circuits/setup')),
                snarkjs_bin=zk_data.get('snarkjs_bin', 'snarkjs'),
                proof_timeout=zk_data.get('proof_timeout', 60),
                ptau_power=zk_data.get('ptau_power', 14),
                simulated_key_hex=zk_data.get('simulated_key_hex')
            )

            registrar_data = config_data.get('registrar', {})
            registrar_config = RegistrarConfig(
                verify_timeout=registrar_data.get('verify_timeout', 30.0),
                verify_workers=registrar_data.get('verify_workers', 4)
            )

            return SystemConfig(
                zk_config=zk_config,
                registrar_config=registrar_config,
                log_dir=Path(config_data.get('log_dir', 'logs')),
                log_level=config_data.get('log_level', 'INFO'),
                enable_debug_mode=config_data.get('enable_debug_mode', False)
            )
        except (OSError, yaml.YAMLError, ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Could not load config file {config_path}: {e}")
            logger.warning("Using default configuration")

    return SystemConfig()


def save_config(config: SystemConfig, config_path: Optional[Path] = None):
    """Save configuration to YAML file"""
    if config_path is None:
        config_path = Path("config.yaml")

    config_data = {
        'zk_proofs': {
            'backend': config.zk_config.backend,
            'circuit_name': config.zk_config.circuit_name,
            'build_dir': str(config.zk_config.build_dir),
            'setup_dir': str(config.zk_config.setup_dir),
            'snarkjs_bin': config.zk_config.snarkjs_bin,
            'proof_timeout': config.zk_config.proof_timeout,
            'ptau_power': config.zk_config.ptau_power,
            'simulated_key_hex': config.zk_config.simulated_key_hex
        },
        'registrar': {
            'verify_timeout': config.registrar_config.verify_timeout,
            'verify_workers': config.registrar_config.verify_workers
        },
        'log_dir': str(config.log_dir),
        'log_level': config.log_level,
        'enable_debug_mode': config.enable_debug_mode
    }

    Path(config_path).parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w') as f:
        yaml.dump(config_data, f, default_flow_style=False)
