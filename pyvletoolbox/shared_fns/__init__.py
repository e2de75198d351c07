from pyvletoolbox.shared_fns.shared_fns import (
    expand_fractions, in_simplex, fd_jacobian, NewtonResult, damped_newton
)
