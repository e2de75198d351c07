from pyvletoolbox.initial.initial import InitialGuess, CubicInitialGuess
