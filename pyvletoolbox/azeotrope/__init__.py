from pyvletoolbox.azeotrope.azeotrope import AzeotropeResult, azeotrope_pressure
