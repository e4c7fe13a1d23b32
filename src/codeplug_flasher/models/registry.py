"""
Model registry for supported radios.

Provides a single source of truth for:
- The closed set of supported models (RadioModel)
- Model configurations (memory layout, block sizes, baud rate)
- Driver construction for a model tag

Usage:
    from codeplug_flasher.models import list_models, get_model, create_radio

    config = get_model("bf-888")
    driver = create_radio("kt-8900", backend, dry_run=True)
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Union

from codeplug_flasher.protocol import bf888, kt8900
from codeplug_flasher.protocol.driver import RadioDriver
from codeplug_flasher.protocol.errors import UnsupportedModelError
from codeplug_flasher.protocol.transport import RadioBackend


class RadioModel(Enum):
    """Supported radio models, keyed by their selector tag."""
    BF888 = "bf-888"
    KT8900 = "kt-8900"


@dataclass(frozen=True)
class ModelConfig:
    """
    Unified configuration for a radio model.

    Consolidates protocol parameters and memory layout.
    """
    # Basic identification
    name: str
    model: RadioModel
    vendor: str = "Baofeng"

    # Protocol configuration
    baud_rate: int = 9600
    timeout: float = 2.0

    # Clone memory info
    mem_size: int = 0
    upload_size: int = 0
    read_block_size: int = 0
    write_block_size: int = 0

    # Pause after closing a session before the radio accepts the next one
    settle_delay: float = 0.2

    notes: List[str] = field(default_factory=list)


# ============================================================================
# MODEL REGISTRY - All known models
# ============================================================================

_MODEL_REGISTRY: Dict[RadioModel, ModelConfig] = {}


def _register_model(config: ModelConfig) -> None:
    """Register a model configuration."""
    _MODEL_REGISTRY[config.model] = config


def _init_registry() -> None:
    """Initialize the model registry with known models."""

    # BF-888S: handshake once per session, sparse write ranges
    _register_model(ModelConfig(
        name="BF-888",
        model=RadioModel.BF888,
        vendor="Baofeng",
        timeout=bf888.DEFAULT_TIMEOUT,
        mem_size=bf888.MEM_SIZE,
        upload_size=bf888.write_region_size(),
        read_block_size=bf888.BLOCK_SIZE,
        write_block_size=bf888.BLOCK_SIZE,
        settle_delay=0.2,
        notes=[
            "16 channels at 0x0010, 16 bytes each",
            "Writes only 0x0000-0x0110, 0x02B0-0x02C0, 0x0380-0x03E0",
            "Ident must start with P3107",
        ],
    ))

    # KT-8900: identifies before each operation, needs a long settle delay
    _register_model(ModelConfig(
        name="KT-8900",
        model=RadioModel.KT8900,
        vendor="QYT",
        timeout=kt8900.DEFAULT_TIMEOUT,
        mem_size=kt8900.MEM_SIZE,
        upload_size=kt8900.UPLOAD_MEM_SIZE,
        read_block_size=kt8900.READ_BLOCK_SIZE,
        write_block_size=kt8900.WRITE_BLOCK_SIZE,
        settle_delay=2.0,
        notes=[
            "Identification retried up to 3 times",
            "First upload block is sent without its leading ACK",
            "Write ACK may be 0x06 or 0x05",
        ],
    ))


# Initialize registry on module load
_init_registry()


# ============================================================================
# PUBLIC API
# ============================================================================

def parse_model(tag: Union[str, RadioModel]) -> RadioModel:
    """
    Resolve a model selector.

    Accepts the tag ("bf-888"), the enum name ("BF888") or the display
    name ("BF-888"), case-insensitively.

    Raises:
        UnsupportedModelError: If the selector names no supported model
    """
    if isinstance(tag, RadioModel):
        return tag

    wanted = str(tag).strip().lower()
    for model in RadioModel:
        config = _MODEL_REGISTRY[model]
        if wanted in (model.value, model.name.lower(), config.name.lower()):
            return model

    raise UnsupportedModelError(f"Unsupported radio model: {tag}")


def list_models() -> List[ModelConfig]:
    """
    List all registered models.

    Returns:
        Model configs in declaration order.
    """
    return [_MODEL_REGISTRY[model] for model in RadioModel]


def get_model(tag: Union[str, RadioModel]) -> ModelConfig:
    """
    Get configuration for a specific model.

    Raises:
        UnsupportedModelError: If the selector names no supported model
    """
    return _MODEL_REGISTRY[parse_model(tag)]


def env_dry_run(tag: Union[str, RadioModel]) -> bool:
    """
    Whether the environment forces dry-run mode on the driver for a model.

    Only the BF-888 driver honours an environment switch (BF888_DRY_RUN).
    """
    return parse_model(tag) is RadioModel.BF888 and bf888.dry_run_from_env()


def create_radio(
    tag: Union[str, RadioModel],
    backend: RadioBackend,
    **options,
) -> RadioDriver:
    """
    Build the driver for a model, bound to ``backend``.

    Args:
        tag: Model selector
        backend: Byte channel the driver will own
        **options: Driver keyword options (dry_run, checksum_validators, timeout)

    Raises:
        UnsupportedModelError: If the selector names no supported model
    """
    model = parse_model(tag)
    if model is RadioModel.BF888:
        return bf888.BF888Driver(backend, **options)
    if model is RadioModel.KT8900:
        return kt8900.KT8900Driver(backend, **options)
    raise UnsupportedModelError(f"No driver for radio model: {model.value}")
