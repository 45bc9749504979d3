import logging
import pandas as pd
from dataclasses import dataclass, field
from typing import Any, Iterator

from stat_resampler.errors import FitFailure, InvalidArgument
from stat_resampler.models.base import FittedModel, ModelSpec

logger = logging.getLogger(__name__)


@dataclass
class GroupedFit:
    """One fitted model per stratum, keyed by the stratum value."""
    group: str
    models: dict[Any, FittedModel] = field(default_factory=dict)
    failures: dict[Any, str] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.models)

    def __iter__(self) -> Iterator[Any]:
        return iter(self.models)

    def __getitem__(self, key: Any) -> FittedModel:
        return self.models[key]

    def items(self):
        return self.models.items()

    def tidy(self, conf_level: float = 0.95, exponentiate: bool = False) -> pd.DataFrame:
        """Stack each stratum's coefficient table, keyed by the group column."""
        frames = []
        for key, model in self.models.items():
            df = model.tidy(conf_level=conf_level, exponentiate=exponentiate)
            df.insert(0, self.group, key)
            frames.append(df)
        if not frames:
            return pd.DataFrame(columns=[self.group, "term", "estimate"])
        return pd.concat(frames, ignore_index=True)

    def summary_statistics(self) -> pd.DataFrame:
        rows = [{self.group: key, **m.summary_statistics()} for key, m in self.models.items()]
        return pd.DataFrame(rows)


def fit_by_group(
    data: pd.DataFrame,
    group: str,
    spec: ModelSpec,
    min_rows: int = 2,
) -> GroupedFit:
    """Fit ``spec`` separately within each value of ``group``.

    An unresolved formula is resolved within each stratum, so a category
    missing from one stratum does not break its fit. Strata that fail to fit, or have
    fewer than ``min_rows`` rows, are listed in ``failures``.
    """
    if group not in data.columns:
        raise InvalidArgument(f"Group field '{group}' not in dataset")

    result = GroupedFit(group=group)
    for key, stratum in data.groupby(group, sort=True):
        stratum = stratum.reset_index(drop=True)
        if len(stratum) < min_rows:
            result.failures[key] = f"only {len(stratum)} rows"
            continue
        try:
            result.models[key] = spec.fit(stratum)
        except FitFailure as e:
            logger.debug("Fit failed for %s=%r: %s", group, key, e)
            result.failures[key] = str(e)

    if result.failures:
        logger.warning(
            "%d of %d strata failed to fit",
            len(result.failures), len(result.failures) + len(result.models),
        )
    return result
