"""Settings for pixel conversion and block compression"""

import json
from dataclasses import dataclass, asdict, field, fields
from pathlib import Path
from typing import Union

# Colour endpoint fits, fastest first
ALGORITHMS = ("range_fit", "cluster_fit", "iterative_cluster_fit")


@dataclass(frozen=True)
class CompressionParams:
    """Quality parameters handed to the block compressor"""
    algorithm: str = "iterative_cluster_fit"
    uniform_weighting: bool = True
    weigh_colour_by_alpha: bool = True

    def __post_init__(self):
        if self.algorithm not in ALGORITHMS:
            raise ValueError(
                f"Unknown compression algorithm '{self.algorithm}', expected one of: {', '.join(ALGORITHMS)}"
            )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CodecSettings:
    """Configuration for decode_to_canonical / encode_from_canonical"""

    # A8 encode reads byte 0 (blue) instead of alpha, matching older tools
    legacy_a8_encode: bool = False

    compression: CompressionParams = field(default_factory=CompressionParams)

    def __post_init__(self):
        if not isinstance(self.compression, CompressionParams):
            raise ValueError(f"compression must be CompressionParams, got {type(self.compression).__name__}")

    def to_dict(self) -> dict:
        """Convert settings to a plain dictionary (JSON-serializable)"""
        return asdict(self)

    @classmethod
    def from_dict(cls, settings_dict: dict) -> 'CodecSettings':
        """
        Build settings from a dictionary, e.g. one produced by to_dict().

        Raises:
            ValueError: On unknown keys or invalid values
        """
        known = {f.name for f in fields(cls)}
        unknown = set(settings_dict) - known
        if unknown:
            raise ValueError(f"Unknown settings: {', '.join(sorted(unknown))}")

        values = dict(settings_dict)
        compression = values.get('compression')
        if isinstance(compression, dict):
            compression_known = {f.name for f in fields(CompressionParams)}
            compression_unknown = set(compression) - compression_known
            if compression_unknown:
                raise ValueError(
                    f"Unknown compression settings: {', '.join(sorted(compression_unknown))}"
                )
            values['compression'] = CompressionParams(**compression)
        return cls(**values)

    @classmethod
    def from_json(cls, settings_path: Union[str, Path]) -> 'CodecSettings':
        """Load settings from a JSON file"""
        with open(settings_path, 'r') as f:
            settings_dict = json.load(f)
        return cls.from_dict(settings_dict)


DEFAULT_SETTINGS = CodecSettings()
