from pyvletoolbox.locus.locus import LocusCurve, UCEPResult, trace, crit_locus, ucst_curve, vlle_curve, ucep_mix
