"""
pyvletoolbox
===================================

-----------------------------------------------
A collection of Phase Equilibrium Utilities
-----------------------------------------------

Phase equilibria of pure substances and mixtures from any equation of state that can return its
reduced residual Helmholtz energy a_res(V, T, n). Cubic equations of state (van der Waals,
Redlich-Kwong, Soave-Redlich-Kwong and Peng-Robinson) are included.

Each capability lives in its own module, requiring seperate imports

Includes functions to perform calculations including;

- Volume roots at given pressure, temperature and composition, and their phase identification
- Pure component vapor pressures, saturation curves and enthalpies of vaporization
- Pure component, mixture and liquid-liquid (UCST) critical points
- Two-phase and multiphase Rachford-Rice, and isothermal two-phase flash
- Bubble and dew point pressures
- Liquid-liquid and vapor-liquid-liquid equilibria
- Azeotrope pressures and compositions
- Critical lines, UCST curves, three-phase lines and upper critical end points

"""

submodules = [
    'azeotrope',
    'bubble',
    'classes',
    'constants',
    'critical',
    'eos',
    'errors',
    'flash',
    'initial',
    'lle',
    'locus',
    'params',
    'saturation',
    'shared_fns',
    'validate',
    'volume'
]

__all__ = submodules 

import importlib

def __dir__():
    return __all__


def __getattr__(name):
    if name in submodules:
        return importlib.import_module(f'pyvletoolbox.{name}')
    else:
        try:
            return globals()[name]
        except KeyError:
            raise AttributeError(
                f"Module 'pyvletoolbox' has no attribute '{name}'"
            )
