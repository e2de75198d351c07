from pyvletoolbox.volume.volume import solve_volume, identify_phase
