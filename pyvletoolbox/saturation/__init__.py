from pyvletoolbox.saturation.saturation import SaturationResult, saturation_pressure, saturation_curve, enthalpy_vaporization
