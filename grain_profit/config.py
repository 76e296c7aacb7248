"""Engine configuration using Pydantic v2 models.

Holds the tunables of the scenario engine: the yield and price ranges the
profit matrix spans, per-commodity default prices and rounding increments,
and logging. Every section has defaults reproducing the long-standing
behaviour, so ``EngineConfig()`` with no arguments is a valid configuration.

Examples:
    Defaults::

        config = EngineConfig()
        config.price_for("CORN")      # Decimal('4.66')

    From a YAML file, overriding one value::

        config = EngineConfig.from_yaml(Path("engine.yaml"))
        config = EngineConfig.from_dict({"scenarios": {"default_yield_steps": 9}}, config)
"""

from decimal import Decimal
import logging
from pathlib import Path
import sys
from typing import Any, Dict, Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator
import yaml


def deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """Recursively merge override dictionary into base dictionary.

    Args:
        base: Base dictionary providing default values.
        override: Override dictionary whose values take precedence.

    Returns:
        New merged dictionary (neither input is mutated).
    """
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class ScenarioConfig(BaseModel):
    """Ranges spanned by the yield x price scenario grid.

    Yields run from ``yield_min_pct`` to ``yield_max_pct`` of APH; prices from
    ``price_min_pct`` to ``price_max_pct`` of the base price. When APH is not
    set, yields follow a fixed ladder starting at ``fallback_yield_start``.
    """

    default_yield_steps: int = Field(default=7, ge=2, description="Yield scenarios per matrix")
    default_price_steps: int = Field(default=7, ge=2, description="Price scenarios per matrix")
    yield_min_pct: Decimal = Field(default=Decimal("0.50"), gt=0, description="Lowest yield / APH")
    yield_max_pct: Decimal = Field(default=Decimal("1.20"), gt=0, description="Highest yield / APH")
    price_min_pct: Decimal = Field(default=Decimal("0.60"), gt=0, description="Lowest price / base")
    price_max_pct: Decimal = Field(default=Decimal("1.40"), gt=0, description="Highest price / base")
    fallback_yield_start: Decimal = Field(
        default=Decimal("100"), ge=0, description="First yield (bu/acre) when APH is unset"
    )
    fallback_yield_step: Decimal = Field(
        default=Decimal("20"), gt=0, description="Yield increment (bu/acre) when APH is unset"
    )

    @model_validator(mode="after")
    def validate_ranges(self):
        """Ensure each range is increasing.

        Raises:
            ValueError: If a minimum is not below its maximum.
        """
        if self.yield_min_pct >= self.yield_max_pct:
            raise ValueError(
                f"yield_min_pct ({self.yield_min_pct}) must be below "
                f"yield_max_pct ({self.yield_max_pct})"
            )
        if self.price_min_pct >= self.price_max_pct:
            raise ValueError(
                f"price_min_pct ({self.price_min_pct}) must be below "
                f"price_max_pct ({self.price_max_pct})"
            )
        return self


class CommodityPricing(BaseModel):
    """Default price anchor and quote increment for one commodity."""

    default_price: Decimal = Field(gt=0, description="Base price ($/bu) when no policy exists")
    price_increment: Decimal = Field(
        default=Decimal("0.05"), gt=0, description="Scenario prices round to this step"
    )


def _default_commodities() -> Dict[str, CommodityPricing]:
    return {
        "CORN": CommodityPricing(default_price=Decimal("4.66"), price_increment=Decimal("0.05")),
        "SOYBEANS": CommodityPricing(
            default_price=Decimal("11.20"), price_increment=Decimal("0.10")
        ),
        "WHEAT": CommodityPricing(default_price=Decimal("5.50"), price_increment=Decimal("0.05")),
    }


class LoggingConfig(BaseModel):
    """Logging configuration.

    Controls logging behavior including level, output destinations,
    and message formatting.
    """

    enabled: bool = Field(default=True, description="Enable logging")
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Optional[str] = Field(
        default=None, description="Log file path (None=no file logging)"
    )
    console_output: bool = Field(default=True, description="Log to console")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format",
    )


class EngineConfig(BaseModel):
    """Complete configuration for the accrual and scenario engines.

    Examples:
        Minimal usage::

            config = EngineConfig()

        Different default step counts::

            config = EngineConfig(scenarios=ScenarioConfig(default_yield_steps=9))
    """

    scenarios: ScenarioConfig = Field(default_factory=ScenarioConfig)
    commodities: Dict[str, CommodityPricing] = Field(default_factory=_default_commodities)
    fallback_price: Decimal = Field(
        default=Decimal("5.00"), gt=0, description="Base price for commodities not listed"
    )
    fallback_increment: Decimal = Field(
        default=Decimal("0.05"), gt=0, description="Price increment for commodities not listed"
    )
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @field_validator("commodities")
    @classmethod
    def normalize_commodity_keys(
        cls, v: Dict[str, CommodityPricing]
    ) -> Dict[str, CommodityPricing]:
        """Upper-case commodity names so lookups are case-insensitive.

        Args:
            v: Commodity pricing keyed by name.

        Returns:
            The same mapping keyed by upper-cased name.
        """
        return {str(key).upper(): value for key, value in v.items()}

    # ------------------------------------------------------------------ #
    #  Lookups
    # ------------------------------------------------------------------ #

    def _pricing(self, commodity: str) -> Optional[CommodityPricing]:
        key = getattr(commodity, "value", commodity)
        return self.commodities.get(str(key).upper())

    def price_for(self, commodity: str) -> Decimal:
        """Default base price for a commodity."""
        pricing = self._pricing(commodity)
        return pricing.default_price if pricing else self.fallback_price

    def increment_for(self, commodity: str) -> Decimal:
        """Scenario price rounding increment for a commodity."""
        pricing = self._pricing(commodity)
        return pricing.price_increment if pricing else self.fallback_increment

    # ------------------------------------------------------------------ #
    #  Loading / saving
    # ------------------------------------------------------------------ #

    @classmethod
    def from_yaml(cls, path: Path) -> "EngineConfig":
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file.

        Returns:
            EngineConfig object with validated parameters.

        Raises:
            FileNotFoundError: If config file doesn't exist.
            ValidationError: If configuration is invalid.
        """
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        # Remove private anchors if present
        data = {k: v for k, v in data.items() if not k.startswith("_")}

        return cls(**data)

    @classmethod
    def from_dict(
        cls, data: Dict[str, Any], base_config: Optional["EngineConfig"] = None
    ) -> "EngineConfig":
        """Create config from dictionary, optionally overriding base config.

        Args:
            data: Dictionary with configuration parameters.
            base_config: Optional base configuration to override.

        Returns:
            EngineConfig object with validated parameters.
        """
        if base_config is None:
            return cls(**data)

        merged = deep_merge(base_config.model_dump(), data)
        return cls(**merged)

    def to_yaml(self, path: Path) -> None:
        """Save configuration to YAML file.

        Args:
            path: Path where to save the configuration.
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(
                self.model_dump(mode="json"), f, default_flow_style=False, sort_keys=False
            )

    def setup_logging(self) -> None:
        """Configure the ``grain_profit`` logger from the logging settings.

        Sets up handlers for console and/or file output.
        """
        if not self.logging.enabled:
            return

        logger = logging.getLogger("grain_profit")
        logger.setLevel(getattr(logging, self.logging.level))
        logger.handlers.clear()

        formatter = logging.Formatter(self.logging.format)

        if self.logging.console_output:
            console_handler = logging.StreamHandler(sys.stdout)
            console_handler.setFormatter(formatter)
            logger.addHandler(console_handler)

        if self.logging.log_file:
            log_path = Path(self.logging.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(log_path)
            file_handler.setFormatter(formatter)
            logger.addHandler(file_handler)
