from pyvletoolbox.errors.errors import (
    PhaseEquilibriumError, VolumeNotFound, SaturationNotFound, CriticalPointNotFound, FlashInfeasible,
    BubblePointNotFound, DewPointNotFound, PhaseSplitNotFound, NoAzeotrope, reraise_as
)
