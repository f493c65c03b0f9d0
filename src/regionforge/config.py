"""Configuration management for RegionForge.

Each scan and merge operation takes an explicit configuration record
instead of reading process-wide flags. Configuration can come from:
- Default values
- A TOML configuration file
- Command-line arguments (the CLI builds the records directly)

Example:
    >>> from regionforge.config import Config
    >>> config = Config.load("regionforge.toml")
    >>> config.low_mapq.threshold
    10
"""

from __future__ import annotations

import tomllib
from enum import Enum
from pathlib import Path
from typing import Any

import attrs

from regionforge.core.runs import Direction

# =============================================================================
# Default Configuration Values
# =============================================================================

# Homopolymer scan defaults
DEFAULT_HOMOPOLYMER_MIN_LENGTH = 5

# N-region scan defaults
DEFAULT_N_REGION_MIN_LENGTH = 1
DEFAULT_AMBIGUOUS_BASES = "Nn"

# qpileup region scan defaults
DEFAULT_REGION_MIN_LENGTH = 100
DEFAULT_MAPQ_THRESHOLD = 10
DEFAULT_BAM_COUNT = 1


# =============================================================================
# Validators
# =============================================================================


def _positive(instance: Any, attribute: attrs.Attribute, value: int) -> None:
    if value < 1:
        raise ValueError(f"{attribute.name} must be >= 1, got {value}")


def _non_negative(instance: Any, attribute: attrs.Attribute, value: float) -> None:
    if value < 0:
        raise ValueError(f"{attribute.name} must be >= 0, got {value}")


# =============================================================================
# Configuration Classes
# =============================================================================


@attrs.define
class HomopolymerConfig:
    """Configuration for homopolymer scans.

    Attributes:
        min_length: Shortest homopolymer reported.
    """

    min_length: int = attrs.field(default=DEFAULT_HOMOPOLYMER_MIN_LENGTH, validator=_positive)


@attrs.define
class NRegionConfig:
    """Configuration for ambiguous-base (N) region scans.

    Attributes:
        min_length: Shortest N run reported.
        bases: Characters counted as ambiguous.
    """

    min_length: int = attrs.field(default=DEFAULT_N_REGION_MIN_LENGTH, validator=_positive)
    bases: str = attrs.field(default=DEFAULT_AMBIGUOUS_BASES)

    @bases.validator
    def _check_bases(self, attribute: attrs.Attribute, value: str) -> None:
        if not value:
            raise ValueError("bases must contain at least one character")


@attrs.define
class LowMapqConfig:
    """Configuration for low mapping quality scans.

    Attributes:
        threshold: Positions with average mapq below this are in a region.
        min_length: Shortest region reported.
    """

    threshold: int = attrs.field(default=DEFAULT_MAPQ_THRESHOLD, validator=_non_negative)
    min_length: int = attrs.field(default=DEFAULT_REGION_MIN_LENGTH, validator=_positive)


@attrs.define
class ReadDepthConfig:
    """Configuration for abnormal read depth scans.

    Attributes:
        threshold: Read depth per BAM compared against.
        direction: Report positions below or above the threshold. There is
            no default; a scan needs one of the two.
        divisor: Number of BAM files summed into the pileup.
        min_length: Shortest region reported.
    """

    threshold: float = attrs.field(default=0, validator=_non_negative)
    direction: Direction | None = attrs.field(
        default=None, converter=attrs.converters.optional(Direction)
    )
    divisor: int = attrs.field(default=DEFAULT_BAM_COUNT, validator=_positive)
    min_length: int = attrs.field(default=DEFAULT_REGION_MIN_LENGTH, validator=_positive)

    @property
    def label(self) -> str:
        """Short description such as ``below-10``."""
        threshold = int(self.threshold) if float(self.threshold).is_integer() else self.threshold
        return f"{self.direction.value}-{threshold}"


@attrs.define
class MergeConfig:
    """Configuration for simple merging.

    Attributes:
        merge_adjacent: Also merge intervals that meet end-to-start.
    """

    merge_adjacent: bool = False


@attrs.define
class MotifConfig:
    """Configuration for motif searches.

    Attributes:
        workers: Number of patterns searched concurrently; None runs
            one worker per pattern.
    """

    workers: int | None = attrs.field(
        default=None, validator=attrs.validators.optional(_positive)
    )


@attrs.define
class Config:
    """Main configuration container for RegionForge.

    Attributes:
        homopolymer: Homopolymer scan configuration.
        n_region: N-region scan configuration.
        low_mapq: Low mapping quality scan configuration.
        read_depth: Read depth scan configuration.
        merge: Simple merge configuration.
        motif: Motif search configuration.
    """

    homopolymer: HomopolymerConfig = attrs.Factory(HomopolymerConfig)
    n_region: NRegionConfig = attrs.Factory(NRegionConfig)
    low_mapq: LowMapqConfig = attrs.Factory(LowMapqConfig)
    read_depth: ReadDepthConfig = attrs.Factory(ReadDepthConfig)
    merge: MergeConfig = attrs.Factory(MergeConfig)
    motif: MotifConfig = attrs.Factory(MotifConfig)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Build a configuration from nested dictionaries.

        Raises:
            ValueError: If a section or key is not recognised.
        """
        sections = attrs.fields_dict(cls)
        kwargs: dict[str, Any] = {}
        for name, values in data.items():
            if name not in sections:
                raise ValueError(f"Unknown configuration section: [{name}]")
            section_cls = sections[name].default.factory
            known = {field.name for field in attrs.fields(section_cls)}
            unknown = set(values) - known
            if unknown:
                raise ValueError(
                    f"Unknown key(s) in [{name}]: {', '.join(sorted(unknown))}"
                )
            kwargs[name] = section_cls(**values)
        return cls(**kwargs)

    @classmethod
    def load(cls, path: Path | str | None = None) -> Config:
        """Load configuration from a TOML file.

        Args:
            path: Path to configuration file. If None, returns defaults.

        Returns:
            Loaded configuration object.

        Raises:
            FileNotFoundError: If configuration file doesn't exist.
            ValueError: If configuration file is invalid.
        """
        if path is None:
            return cls()

        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "rb") as f:
            try:
                data = tomllib.load(f)
            except tomllib.TOMLDecodeError as e:
                raise ValueError(f"Invalid configuration file {path}: {e}") from e
        return cls.from_dict(data)

    def to_dict(self) -> dict[str, Any]:
        """Convert configuration to dictionary.

        Returns:
            Dictionary representation of configuration.
        """
        return attrs.asdict(
            self,
            value_serializer=lambda inst, field, value: (
                value.value if isinstance(value, Enum) else value
            ),
        )
