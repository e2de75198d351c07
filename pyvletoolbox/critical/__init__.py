from pyvletoolbox.critical.critical import CriticalPointResult, crit_pure, crit_mix, ucst_mix, criticality_residuals
