#!/usr/bin/python3
# -*- coding: utf-8 -*-

"""
    pyVLEToolbox - A collection of Phase Equilibrium Utilities
              Copyright (C) 2022, Mark Burgoyne

    This program is free software: you can redistribute it and/or modify
    it under the terms of the GNU General Public License as published by
    the Free Software Foundation, either version 3 of the License, or
    (at your option) any later version.

    This program is distributed in the hope that it will be useful,
    but WITHOUT ANY WARRANTY; without even the implied warranty of
    MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
    GNU General Public License for more details.

    The GNU General Public License can be found in the LICENSE directory,
    and at  <https://www.gnu.org/licenses/>.

          Contact author at mark.w.burgoyne@gmail.com
"""

from dataclasses import dataclass
from typing import Sequence, Tuple
import numpy as np


def _frozen(values, ndim):
    arr = np.array(values, dtype=float, copy=True)
    if arr.ndim != ndim:
        raise ValueError(f"Expected a {ndim}-dimensional parameter array, got shape {arr.shape}")
    arr.setflags(write=False)
    return arr


@dataclass(frozen=True, eq=False)
class SingleParam:
    """ Named scalar-per-component parameter table.

        name: Description of the parameter, e.g. 'critical temperature'
        components: Component names, in model order
        values: One value per component (stored as a read-only array)

        >>> tc = SingleParam('critical temperature', ['propane', 'n-butane'], [369.89, 425.125])
        >>> tc['n-butane']
        425.125
    """
    name: str
    components: Tuple[str, ...]
    values: np.ndarray

    def __init__(self, name: str, components: Sequence[str], values: Sequence[float]):
        values = _frozen(values, 1)
        if len(components) != values.size:
            raise ValueError(f"{name}: {len(components)} components but {values.size} values")
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'components', tuple(components))
        object.__setattr__(self, 'values', values)

    def __getitem__(self, key):
        if isinstance(key, str):
            key = self.components.index(key)
        return float(self.values[key])

    def __len__(self):
        return len(self.components)

    def subset(self, indices: Sequence[int]) -> 'SingleParam':
        indices = list(indices)
        return SingleParam(self.name, [self.components[i] for i in indices], self.values[indices])

    def __repr__(self):
        pairs = ", ".join(f'"{c}" => {v:g}' for c, v in zip(self.components, self.values))
        return f'SingleParam("{self.name}")[{pairs}]'


@dataclass(frozen=True, eq=False)
class PairParam:
    """ Named symmetric pair-interaction table (e.g. binary interaction parameters k_ij)

        values: Square matrix indexed in component order, symmetrized on construction
    """
    name: str
    components: Tuple[str, ...]
    values: np.ndarray

    def __init__(self, name: str, components: Sequence[str], values):
        values = np.array(values, dtype=float)
        n = len(components)
        if values.shape != (n, n):
            raise ValueError(f"{name}: expected a {n}x{n} matrix, got shape {values.shape}")
        if not np.allclose(values, values.T, rtol=0.0, atol=1e-14):
            raise ValueError(f"{name}: pair parameters must be symmetric")
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'components', tuple(components))
        object.__setattr__(self, 'values', _frozen(0.5 * (values + values.T), 2))

    @classmethod
    def zeros(cls, name: str, components: Sequence[str]) -> 'PairParam':
        n = len(components)
        return cls(name, components, np.zeros((n, n)))

    @classmethod
    def from_pairs(cls, name: str, components: Sequence[str], pairs: dict) -> 'PairParam':
        """ Builds the table from {(comp_i, comp_j): value}, missing pairs default to zero"""
        components = list(components)
        values = np.zeros((len(components), len(components)))
        for (ci, cj), v in pairs.items():
            i, j = components.index(ci), components.index(cj)
            values[i, j] = values[j, i] = v
        return cls(name, components, values)

    def __getitem__(self, key):
        i, j = key
        if isinstance(i, str):
            i = self.components.index(i)
        if isinstance(j, str):
            j = self.components.index(j)
        return float(self.values[i, j])

    def subset(self, indices: Sequence[int]) -> 'PairParam':
        indices = list(indices)
        return PairParam(self.name, [self.components[i] for i in indices],
                         self.values[np.ix_(indices, indices)])

    def __repr__(self):
        return f'PairParam("{self.name}")[{", ".join(self.components)}]'


@dataclass(frozen=True, eq=False)
class AssocParam:
    """ Named association-site interaction table (e.g. association energies ε_ij^ab)

        name: Description of the parameter
        components: Component names, in model order
        sites: Site names of each component, e.g. [('e', 'H'), ()] for water with an inert
        values: {((comp_i, site_a), (comp_j, site_b)): value}. Missing site pairs are zero,
                each pair applies in both directions

        Values are held as one symmetric matrix over every (component, site) in model order.

        >>> eps = AssocParam('epsilon', ['water'], [('e', 'H')], {(('water', 'e'), ('water', 'H')): 2500.7})
        >>> eps[('water', 'H'), ('water', 'e')]
        2500.7
    """
    name: str
    components: Tuple[str, ...]
    sites: Tuple[Tuple[str, ...], ...]
    values: np.ndarray

    def __init__(self, name: str, components: Sequence[str], sites: Sequence[Sequence[str]], values: dict):
        if len(sites) != len(components):
            raise ValueError(f"{name}: {len(components)} components but site lists for {len(sites)}")
        components = tuple(components)
        sites = tuple(tuple(s) for s in sites)
        object.__setattr__(self, 'name', name)
        object.__setattr__(self, 'components', components)
        object.__setattr__(self, 'sites', sites)
        matrix = np.zeros((self.n_sites, self.n_sites))
        for (a, b), v in values.items():
            i, j = self._index(a), self._index(b)
            matrix[i, j] = matrix[j, i] = v
        object.__setattr__(self, 'values', _frozen(matrix, 2))

    @property
    def n_sites(self) -> int:
        return sum(len(s) for s in self.sites)

    def _index(self, key):
        comp, site = key
        i = self.components.index(comp) if isinstance(comp, str) else comp
        try:
            a = self.sites[i].index(site)
        except ValueError:
            raise KeyError(f"{self.name}: component {self.components[i]} has no site '{site}'")
        return sum(len(s) for s in self.sites[:i]) + a

    def __getitem__(self, key):
        a, b = key
        return float(self.values[self._index(a), self._index(b)])

    def subset(self, indices: Sequence[int]) -> 'AssocParam':
        indices = list(indices)
        components = [self.components[i] for i in indices]
        sites = [self.sites[i] for i in indices]
        keys = [(self.components[i], s) for i in indices for s in self.sites[i]]
        values = {}
        for m, a in enumerate(keys):
            for b in keys[m:]:
                v = self[a, b]
                if v != 0.0:
                    values[(a, b)] = v
        return AssocParam(self.name, components, sites, values)

    def __repr__(self):
        pairs = ", ".join(f'{c}: ({", ".join(s)})' for c, s in zip(self.components, self.sites))
        return f'AssocParam("{self.name}")[{pairs}]'
