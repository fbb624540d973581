"""Option models for partition requests and file/inline config loading."""

from __future__ import annotations

import json
from collections.abc import Mapping, Sequence
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .types import ConfigurationError, UnsupportedError

Method = Literal[
    "auto", "roundrobin", "lpt", "kk", "dp", "backtracking", "flow", "ilp", "metaheuristic"
]
SelectionStrategy = Literal["speed", "quality", "balanced"]
MetaheuristicType = Literal["genetic", "simulated-annealing", "tabu-search"]


class _OptionsModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="forbid",
        frozen=True,
    )


class HybridOptions(_OptionsModel):
    enable: bool = False
    refine_iters: int | None = Field(default=None, ge=0)


class LptConfig(_OptionsModel):
    use_refinement: bool | None = None
    max_refinement_iters: int | None = Field(default=None, ge=0)
    use_advanced: bool = False


class MetaheuristicConfig(_OptionsModel):
    type: MetaheuristicType = "genetic"
    population_size: int = Field(default=50, ge=2)
    mutation_rate: float = Field(default=0.1, ge=0, le=1)
    crossover_rate: float = Field(default=0.8, ge=0, le=1)
    elite_size: int = Field(default=5, ge=1)
    initial_temperature: float = Field(default=1000.0, gt=0)
    cooling_rate: float = Field(default=0.95, gt=0, lt=1)
    min_temperature: float = Field(default=0.1, gt=0)
    tabu_size: int = Field(default=20, ge=0)
    aspiration: bool = True


class BacktrackingConfig(_OptionsModel):
    max_recursion_depth: int | None = Field(default=None, ge=1, le=500)
    max_iters: int = Field(default=10000, ge=1)


class DpConfig(_OptionsModel):
    max_items: int = Field(default=20, ge=1)
    max_total_sum: float = Field(default=10000, gt=0)


class AlgorithmConfig(_OptionsModel):
    lpt: LptConfig = Field(default_factory=LptConfig)
    metaheuristic: MetaheuristicConfig = Field(default_factory=MetaheuristicConfig)
    backtracking: BacktrackingConfig = Field(default_factory=BacktrackingConfig)
    dp: DpConfig = Field(default_factory=DpConfig)


class PartitionOptions(_OptionsModel):
    method: Method = "auto"
    time_limit_ms: float = Field(default=30000, ge=0)
    seed: int | None = Field(default=None, ge=0)
    max_iters: int = Field(default=1000, ge=0)
    tolerance: float = Field(default=1e-6, ge=0)
    early_stop_delta: float = Field(default=0, ge=0)
    preferred_algorithms: list[str] | None = None
    disallowed_algorithms: list[str] | None = None
    selection_strategy: SelectionStrategy | None = None
    hybrid: HybridOptions | None = None
    allow_placeholder_algorithms: bool = False
    algorithm_config: AlgorithmConfig = Field(default_factory=AlgorithmConfig)

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(mode="json")


def normalize_options(options: PartitionOptions | Mapping[str, Any] | None) -> PartitionOptions:
    """Validate caller options into a frozen ``PartitionOptions``.

    Raises ``ConfigurationError`` on unknown keys or out-of-range values.
    """
    if options is None:
        return PartitionOptions()
    if isinstance(options, PartitionOptions):
        return options
    if not isinstance(options, Mapping):
        raise UnsupportedError(
            f"options must be a mapping, got {type(options).__name__}"
        )
    try:
        return PartitionOptions.model_validate(dict(options))
    except PydanticValidationError as e:
        problems = [
            {"loc": ".".join(str(p) for p in err["loc"]), "msg": err["msg"]}
            for err in e.errors()
        ]
        raise ConfigurationError(
            f"Invalid partition options: {problems[0]['loc']}: {problems[0]['msg']}",
            details={"errors": problems},
        ) from e


def _coerce_scalar(val: str) -> int | float | bool | str:
    lower = val.lower()
    if lower in ("true", "false"):
        return lower == "true"
    try:
        if "." in val or "e" in lower:
            return float(val)
        return int(val)
    except ValueError:
        return val


def _set_dotted(cfg: dict[str, Any], key: str, value: Any) -> None:
    parts = key.split(".")
    node = cfg
    for part in parts[:-1]:
        child = node.get(part)
        if not isinstance(child, dict):
            child = {}
            node[part] = child
        node = child
    node[parts[-1]] = value


def load_config(
    config_path: Path | None, inline_kv: Sequence[str] | None = None
) -> dict[str, Any]:
    cfg: dict[str, Any] = {}
    if config_path:
        text = config_path.read_text(encoding="utf-8")
        if config_path.suffix.lower() in (".yaml", ".yml"):
            import yaml  # lazy

            cfg = dict(yaml.safe_load(text) or {})
        else:
            cfg = dict(json.loads(text))
    if inline_kv:
        for item in inline_kv:
            if "=" not in item:
                continue
            k, v = item.split("=", 1)
            _set_dotted(cfg, k.strip(), _coerce_scalar(v.strip()))
    return cfg
