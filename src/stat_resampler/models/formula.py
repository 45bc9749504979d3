import re
import pandas as pd
from dataclasses import dataclass, field, replace
from typing import Any

from stat_resampler.errors import InvalidArgument

_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")
_QUOTED = re.compile(r"Q\((['\"])(.*?)\1\)")
_DROP_INTERCEPT = re.compile(r"-\s*1(?![\w.])")


def quote(name: str) -> str:
    """Render a column name as a patsy term, wrapping it in Q() when needed."""
    if _IDENTIFIER.match(name):
        return name
    return f"Q({name!r})"


def _matching_paren(text: str, start: int) -> int:
    """Index of the parenthesis closing ``text[start]``, skipping quoted text."""
    depth = 0
    quote_char = None
    for i in range(start, len(text)):
        ch = text[i]
        if quote_char:
            if ch == quote_char and text[i - 1] != "\\":
                quote_char = None
        elif ch in ("'", '"'):
            quote_char = ch
        elif ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth == 0:
                return i
    raise ValueError(f"Unbalanced parentheses in {text!r}")


def clean_term_name(raw: str) -> str:
    """Strip patsy contrast wrappers from a coefficient name.

    ``C(group, Treatment(reference='a'), levels=[...])[T.b]`` becomes
    ``group[T.b]`` and ``Q('room type')`` becomes ``room type``.
    """
    out = []
    i = 0
    while i < len(raw):
        at_call = raw.startswith("C(", i) and (i == 0 or not (raw[i - 1].isalnum() or raw[i - 1] == "_"))
        if not at_call:
            out.append(raw[i])
            i += 1
            continue
        end = _matching_paren(raw, i + 1)
        inner = raw[i + 2:end]
        # field is everything up to the first top-level comma
        depth = 0
        cut = len(inner)
        for j, ch in enumerate(inner):
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
            elif ch == "," and depth == 0:
                cut = j
                break
        out.append(inner[:cut].strip())
        i = end + 1
    return _QUOTED.sub(lambda m: m.group(2), "".join(out))


def _sorted_levels(values: list) -> list:
    try:
        return sorted(values)
    except TypeError:
        return sorted(values, key=str)


@dataclass
class FormulaSpec:
    """Declarative description of a regression formula.

    ``predictors`` lists main-effect fields. Fields named in ``categorical``
    (or holding strings, booleans or pandas categoricals) are expanded into
    k-1 treatment indicators against a reference level. The reference is the
    value given in ``references`` or, failing that, the most frequent observed
    value. ``smooth`` fields are handled by additive models and are left out
    of the parametric formula.
    """
    outcome: str
    predictors: tuple = ()
    categorical: tuple = ()
    interactions: tuple = ()
    smooth: tuple = ()
    references: dict = field(default_factory=dict)
    intercept: bool = True
    levels: dict = field(default_factory=dict)  # filled by resolve()
    bounds: dict = field(default_factory=dict)  # smooth field -> (min, max)
    resolved: bool = False

    def __post_init__(self):
        self.predictors = tuple(self.predictors)
        self.categorical = tuple(self.categorical)
        self.interactions = tuple(tuple(t) for t in self.interactions)
        self.smooth = tuple(self.smooth)
        for term in self.interactions:
            if len(term) < 2:
                raise InvalidArgument(f"Interaction needs at least two fields: {term}")

    @classmethod
    def parse(cls, formula: str, categorical: tuple = (), **kwargs) -> "FormulaSpec":
        """Build a spec from ``"y ~ a + b + a:b"``; ``s(x)`` marks a smooth term."""
        if "~" not in formula:
            raise InvalidArgument(f"Formula needs an outcome: {formula!r}")
        lhs, rhs = formula.split("~", 1)
        predictors, interactions, smooth = [], [], []
        rhs, n_dropped = _DROP_INTERCEPT.subn("", rhs)
        intercept = not n_dropped
        if "-" in rhs:
            raise InvalidArgument(
                f"Unsupported term removal in formula {formula!r}; only '- 1' is supported"
            )
        for token in (t.strip() for t in rhs.split("+")):
            if not token:
                continue
            if token == "0":
                intercept = False
            elif token == "1":
                continue
            elif token.startswith("s(") and token.endswith(")"):
                smooth.append(token[2:-1].strip())
            elif ":" in token:
                interactions.append(tuple(p.strip() for p in token.split(":")))
            elif "*" in token:
                parts = tuple(p.strip() for p in token.split("*"))
                predictors.extend(p for p in parts if p not in predictors)
                interactions.append(parts)
            else:
                predictors.append(token)
        return cls(
            outcome=lhs.strip(),
            predictors=tuple(predictors),
            categorical=tuple(categorical),
            interactions=tuple(interactions),
            smooth=tuple(smooth),
            intercept=intercept,
            **kwargs,
        )

    @property
    def fields(self) -> list[str]:
        """Every column the formula reads, outcome first."""
        names = [self.outcome]
        for name in (*self.predictors, *(f for t in self.interactions for f in t), *self.smooth):
            if name not in names:
                names.append(name)
        return names

    def resolve(self, data: pd.DataFrame) -> "FormulaSpec":
        """Fix categorical levels, references and smooth ranges from ``data``.

        Returns a new spec; resolving once on the full dataset keeps
        coefficient names and spline bases identical across resamples.
        """
        missing = [f for f in self.fields if f not in data.columns]
        if missing:
            raise InvalidArgument(f"Formula fields not in dataset: {missing}")

        categorical = list(self.categorical)
        for name in self.fields[1:]:
            if name in categorical or name in self.smooth:
                continue
            col = data[name]
            if (col.dtype == object or col.dtype == bool
                    or isinstance(col.dtype, pd.CategoricalDtype)
                    or pd.api.types.is_string_dtype(col)):
                categorical.append(name)

        levels: dict[str, list] = {}
        references: dict[str, Any] = {}
        for name in categorical:
            col = data[name].dropna()
            observed = _sorted_levels(col.unique().tolist())
            if not observed:
                raise InvalidArgument(f"Categorical field '{name}' has no observed values")
            if name in self.references:
                ref = self.references[name]
                if hasattr(ref, "item"):
                    ref = ref.item()  # numpy scalar -> python, for a clean repr
                if ref not in observed:
                    raise InvalidArgument(
                        f"Reference {ref!r} is not an observed level of '{name}'"
                    )
            else:
                counts = col.value_counts()
                top = counts.max()
                ref = next(level for level in observed if counts.get(level, 0) == top)
            levels[name] = observed
            references[name] = ref

        bounds = {
            name: (float(data[name].min()), float(data[name].max()))
            for name in self.smooth
        }
        return replace(
            self,
            categorical=tuple(categorical),
            references=references,
            levels=levels,
            bounds=bounds,
            resolved=True,
        )

    def with_reference(self, name: str, reference: Any) -> "FormulaSpec":
        """Return an unresolved copy using ``reference`` for ``name``."""
        refs = dict(self.references)
        refs[name] = reference
        categorical = self.categorical if name in self.categorical else (*self.categorical, name)
        return replace(self, categorical=categorical, references=refs, levels={}, bounds={},
                       resolved=False)

    def render(self, name: str) -> str:
        """Patsy expression for a single field."""
        if name not in self.categorical:
            return quote(name)
        args = [quote(name)]
        if name in self.references:
            ref = self.references[name]
            if hasattr(ref, "item"):
                ref = ref.item()
            args.append(f"Treatment(reference={ref!r})")
        if name in self.levels:
            args.append(f"levels={self.levels[name]!r}")
        return f"C({', '.join(args)})"

    def rhs(self) -> str:
        terms = [self.render(p) for p in self.predictors if p not in self.smooth]
        terms += [":".join(self.render(f) for f in t) for t in self.interactions]
        if not self.intercept:
            terms.insert(0, "0")
        return " + ".join(terms) if terms else "1"

    def to_formula(self) -> str:
        """Render the parametric part as a patsy formula string."""
        return f"{quote(self.outcome)} ~ {self.rhs()}"

    def __str__(self) -> str:
        smooth = "".join(f" + s({s})" for s in self.smooth)
        return f"{self.outcome} ~ {self.rhs()}{smooth}"
