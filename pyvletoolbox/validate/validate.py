from pyvletoolbox.classes import class_dic
import numpy as np

def validate_methods(names, variables):
    for m, method in enumerate(names):
        if type(variables[m]) == str:
            try:
                variables[m] = class_dic[method][variables[m].upper()]
            except KeyError:
                raise ValueError(f"An incorrect {method} was specified: '{variables[m]}'. "
                                 f"Use one of {[e.name.lower() for e in class_dic[method]]}")
    if len(variables) == 1:
        return variables[0]
    else:
        return variables

def validate_composition(nc, z):
    """ Returns a normalized mole fraction copy of z, checking it against the model component count"""
    z = np.array(z, dtype=float, copy=True).ravel()
    if z.size != nc:
        raise ValueError(f"Composition has {z.size} entries but the model has {nc} components")
    if not np.all(np.isfinite(z)) or np.any(z < 0):
        raise ValueError(f"Composition must be finite and non-negative: {z}")
    total = np.sum(z)
    if total <= 0:
        raise ValueError("Composition must contain at least one non-zero amount")
    return z / total

def validate_temperature(T):
    T = float(T)
    if not np.isfinite(T) or T <= 0:
        raise ValueError(f"Temperature must be positive and finite, got {T}")
    return T
