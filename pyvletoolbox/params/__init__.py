from pyvletoolbox.params.params import SingleParam, PairParam, AssocParam
