from pyvletoolbox.eos.eos import (
    HelmholtzModel, PureComponentModel, CubicModel, vdW, RK, SRK, PR, cubic_model,
    no_alpha, rk_alpha, soave_alpha, pr_alpha
)
