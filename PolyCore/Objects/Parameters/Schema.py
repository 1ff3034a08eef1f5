from dataclasses import dataclass, field
from typing import Dict, Iterable, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from PolyCore.Objects.Parameters.Monomial import MonomialIndex
from PolyCore.Objects.Parameters.Polynomial import PolyArray

ROLES = ("material", "geometric")


@dataclass(frozen=True)
class Parameter:
    """
    Named scalar design/physical parameter.

    Attributes:
        name: Unique parameter name
        nominal: Reference value, the expansion point of every polynomial
        role: 'material' or 'geometric'
        spread: Expected deviation magnitude from nominal (used to judge
            series truncation). Defaults to 10% of |nominal|, or 1.0 when
            the nominal value is zero.
    """
    name: str
    nominal: float
    role: str = "material"
    spread: Optional[float] = None

    def __post_init__(self):
        if not self.name:
            raise ValueError("Parameter name must be non-empty")
        if self.role not in ROLES:
            raise ValueError(f"Parameter role must be one of {ROLES}, got '{self.role}'")
        object.__setattr__(self, "nominal", float(self.nominal))
        if self.spread is None:
            spread = 0.1 * abs(self.nominal) if self.nominal != 0.0 else 1.0
            object.__setattr__(self, "spread", spread)
        elif self.spread < 0:
            raise ValueError(f"Parameter spread must be non-negative, got {self.spread}")


@dataclass(frozen=True)
class ParameterSchema:
    """
    Ordered, immutable parameter vector definition.

    Slot order is fixed at construction and shared by every matrix of an
    assembly run. Polynomials are written in the deviations
    ``delta = p - nominal``.
    """
    parameters: Tuple[Parameter, ...] = field(default_factory=tuple)

    def __post_init__(self):
        params = tuple(self.parameters)
        object.__setattr__(self, "parameters", params)
        names = [p.name for p in params]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate parameter names in schema: {names}")

    @classmethod
    def from_dict(cls, mapping: Mapping[str, Union[Tuple, Mapping]]) -> "ParameterSchema":
        """
        Build a schema from ``{name: (nominal, role)}`` or
        ``{name: {'nominal': ..., 'role': ..., 'spread': ...}}``.
        """
        params = []
        for name, entry in mapping.items():
            if isinstance(entry, Mapping):
                params.append(Parameter(name, **entry))
            elif isinstance(entry, (tuple, list)):
                params.append(Parameter(name, *entry))
            else:
                params.append(Parameter(name, entry))
        return cls(tuple(params))

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(p.name for p in self.parameters)

    @property
    def size(self) -> int:
        return len(self.parameters)

    @property
    def nominal(self) -> np.ndarray:
        return np.array([p.nominal for p in self.parameters], dtype=float)

    @property
    def spread(self) -> np.ndarray:
        return np.array([p.spread for p in self.parameters], dtype=float)

    def __len__(self):
        return self.size

    def __contains__(self, name) -> bool:
        return name in self.names

    def __getitem__(self, name: str) -> Parameter:
        return self.parameters[self.slot(name)]

    def slot(self, name: str) -> int:
        try:
            return self.names.index(name)
        except ValueError:
            raise KeyError(f"Unknown parameter '{name}'") from None

    def of_role(self, role: str) -> Tuple[str, ...]:
        return tuple(p.name for p in self.parameters if p.role == role)

    def values(self, values: Union[None, Mapping[str, float], Sequence[float]] = None) -> Dict[str, float]:
        """Absolute values per name; missing names take their nominal value."""
        out = {p.name: p.nominal for p in self.parameters}
        if values is None:
            return out
        if isinstance(values, Mapping):
            for name, v in values.items():
                if name not in out:
                    raise KeyError(f"Unknown parameter '{name}'")
                out[name] = float(v)
            return out
        values = np.asarray(values, dtype=float).ravel()
        if values.size != self.size:
            raise ValueError(f"Expected {self.size} parameter values, got {values.size}")
        return dict(zip(self.names, values.tolist()))

    def deltas(self, values: Union[None, Mapping[str, float], Sequence[float]] = None) -> np.ndarray:
        """Deviation vector ``p - nominal`` in slot order."""
        absolute = self.values(values)
        return np.array([absolute[n] for n in self.names], dtype=float) - self.nominal

    def index(self, degree: int) -> MonomialIndex:
        return MonomialIndex(self.size, degree)

    def variable(self, index: MonomialIndex, name: str) -> PolyArray:
        """Parameter `name` as a polynomial, ``nominal + delta``."""
        return PolyArray.variable(index, self.slot(name), self[name].nominal)

    def check_names(self, names: Iterable[str], role: Optional[str] = None, where: str = ""):
        """Raise ValueError when a name is missing or has the wrong role."""
        for name in names:
            if name not in self:
                raise ValueError(f"{where}references unknown parameter '{name}'")
            if role is not None and self[name].role != role:
                raise ValueError(
                    f"{where}uses parameter '{name}' as {role}, schema declares it {self[name].role}")
